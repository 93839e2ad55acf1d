"""Shared fixtures for tcp_echo tests."""

import asyncio

import pytest

from tcp_echo import Config, EchoServer, Status
from tcp_echo.tcp_conn import TcpConn


class FakeTransport(asyncio.Transport):
    """In-memory transport recording everything the handle does to it."""

    def __init__(self, peername=("10.0.0.2", 40000), sockname=("10.0.0.1", 7)):
        super().__init__()
        self.extra = {"peername": peername, "sockname": sockname}
        self.written = bytearray()
        self.flushes = 0
        self.close_calls = 0
        self.abort_calls = 0
        self.closing = False
        self.reading = True
        self.buffered = 0

    def get_extra_info(self, name, default=None):
        return self.extra.get(name, default)

    def write(self, data):
        self.written += data

    def writelines(self, list_of_data):
        self.flushes += 1
        for data in list_of_data:
            self.write(data)

    def close(self):
        self.close_calls += 1
        self.closing = True

    def abort(self):
        self.abort_calls += 1
        self.closing = True

    def is_closing(self):
        return self.closing

    def pause_reading(self):
        self.reading = False

    def resume_reading(self):
        self.reading = True

    def is_reading(self):
        return self.reading

    def get_write_buffer_size(self):
        return self.buffered


class RecordingSession:
    """Session that records notifications and acknowledges nothing by itself."""

    def __init__(self, reply=None):
        self.data = []
        self.sent = []
        self.polls = 0
        self.errors = []
        self.reply = reply

    def on_data(self, handle, data, status):
        self.data.append((data, status))
        if self.reply is not None:
            return self.reply
        return Status.OK

    def on_sent(self, handle, length):
        self.sent.append(length)

    def on_poll(self, handle):
        self.polls += 1

    def on_error(self, status):
        self.errors.append(status)


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def echo_server():
    return EchoServer(Config(poll_interval=0.01))


@pytest.fixture
def accept():
    """Feed a new fake connection to a server's acceptor."""

    def _accept(server, transport=None):
        transport = transport or FakeTransport()
        conn = TcpConn(on_accept=server.accept, snd_buf=server.config.snd_buf, window=server.config.window)
        conn.connection_made(transport)
        return conn, transport

    return _accept


@pytest.fixture
async def fake_connect(monkeypatch):
    """
    Make loop.create_connection hand out FakeTransports instead of dialling out.
    Set .error on the returned object to make the next connect fail.
    """

    class Connector:
        def __init__(self):
            self.transports = []
            self.conns = []
            self.calls = []
            self.error = None

        async def create_connection(self, protocol_factory, host, port):
            self.calls.append((host, port))
            if self.error is not None:
                raise self.error
            transport = FakeTransport(peername=(host, port), sockname=("10.0.0.1", 50000))
            protocol = protocol_factory()
            protocol.connection_made(transport)
            self.transports.append(transport)
            self.conns.append(protocol)
            return transport, protocol

    connector = Connector()
    loop = asyncio.get_running_loop()
    monkeypatch.setattr(loop, "create_connection", connector.create_connection)
    return connector
