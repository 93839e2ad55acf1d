from __future__ import annotations

import asyncio

from tcp_echo import ClientConfig, ClientState, EchoClient, Hook, Status
from tcp_echo import echo_client as echo_client_module
from tcp_echo.config import GREETING
from tcp_echo.handle import INVALID


def make_client(**kwargs) -> EchoClient:
    return EchoClient(ClientConfig(host="10.0.0.9", port=5000, **kwargs))


async def test_init_starts_connect(fake_connect) -> None:
    client = make_client()

    handle = client.init()

    assert client.state.handle is handle
    assert client.state.retries == 0
    assert handle.session is client
    assert handle.hooks == Hook.ERR
    await asyncio.sleep(0)
    assert fake_connect.calls == [("10.0.0.9", 5000)]


async def test_greeting_sent_on_connect(fake_connect) -> None:
    client = make_client()
    handle = client.init()
    await asyncio.sleep(0)

    transport = fake_connect.transports[0]
    assert bytes(transport.written) == b"Hello STM32 LwIP Client!\n"
    assert transport.flushes == 1
    assert handle.hooks == Hook.ERR | Hook.RECV | Hook.SENT
    assert GREETING == b"Hello STM32 LwIP Client!\n"


async def test_custom_greeting(fake_connect) -> None:
    client = make_client(greeting=b"hi\n")
    client.init()
    await asyncio.sleep(0)

    assert bytes(fake_connect.transports[0].written) == b"hi\n"


async def test_echoes_received_data_once(fake_connect) -> None:
    client = make_client()
    client.init()
    await asyncio.sleep(0)
    transport, conn = fake_connect.transports[0], fake_connect.conns[0]
    transport.written.clear()

    conn.data_received(b"echo of greeting")
    await asyncio.sleep(0.01)

    assert bytes(transport.written) == b"echo of greeting"
    assert transport.flushes == 2
    assert conn.handle.flow.unacked == 0


async def test_server_fin_closes(fake_connect) -> None:
    client = make_client()
    handle = client.init()
    await asyncio.sleep(0)
    transport, conn = fake_connect.transports[0], fake_connect.conns[0]

    conn.eof_received()

    assert client.state.handle is None
    assert client.closed.is_set()
    assert handle.state == INVALID
    assert transport.close_calls == 1


async def test_connect_failure_tears_down(fake_connect) -> None:
    fake_connect.error = ConnectionRefusedError()
    client = make_client()
    handle = client.init()
    await asyncio.sleep(0)

    assert client.state.handle is None
    assert client.closed.is_set()
    assert handle.state == INVALID


async def test_error_clears_handle_without_close(fake_connect) -> None:
    client = make_client()
    client.init()
    await asyncio.sleep(0)
    transport, conn = fake_connect.transports[0], fake_connect.conns[0]
    transport.closing = True

    conn.connection_lost(ConnectionResetError())

    assert client.state.handle is None
    assert client.closed.is_set()
    assert transport.close_calls == 0


async def test_state_record_survives_teardown(fake_connect) -> None:
    state = ClientState()
    state.retries = 3
    client = EchoClient(ClientConfig(host="10.0.0.9", port=5000), state=state)

    client.init()
    assert state.retries == 0
    await asyncio.sleep(0)
    fake_connect.conns[0].eof_received()

    assert client.state is state
    assert state.handle is None


async def test_out_of_memory_does_nothing(fake_connect, monkeypatch) -> None:
    def no_memory(*args, **kwargs):
        raise MemoryError

    monkeypatch.setattr(echo_client_module, "ConnectionHandle", no_memory)
    client = make_client()

    assert client.init() is None
    await asyncio.sleep(0)

    assert client.state.handle is None
    assert fake_connect.calls == []


async def test_sent_and_poll_hooks_are_noops(fake_connect) -> None:
    client = make_client()
    handle = client.init()

    assert client.on_sent(handle, 10) == Status.OK
    assert client.on_poll(handle) == Status.OK


async def test_unexpected_status_takes_no_action(fake_connect) -> None:
    client = make_client()
    handle = client.init()
    await asyncio.sleep(0)
    transport = fake_connect.transports[0]
    transport.written.clear()

    assert client.on_data(handle, b"abc", Status.RST) == Status.OK
    assert transport.written == b""
    assert client.state.handle is handle
