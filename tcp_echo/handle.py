"""
ConnectionHandle is the session's view of one TCP connection.

Sessions never touch the asyncio transport directly. They attach themselves to a handle (the hooks they
want to hear about are given as a Hook mask), and talk back to the connection through a small set of
calls: recved() to give receive window back, write() to enqueue bytes, output() to push everything
enqueued onto the wire, close() and abort() to end it.

The asyncio side (TcpConn) feeds events into the underscore-prefixed dispatch methods. All of this runs
inside event loop callbacks, nothing here awaits.

Once a handle is invalidated (closed, aborted or failed) no hook fires for it again.
"""
import asyncio
import itertools
import logging
from typing import Callable

from ._types import Hook, SessionHooks, Status, status_from_exception
from .config import TCP_SND_BUF, TCP_WND
from .flow_control import FlowControl
from .util import format_addr, get_local_addr, get_remote_addr

logger = logging.getLogger(__name__)

CLOSED = "closed"
CONNECTING = "connecting"
ESTABLISHED = "established"
INVALID = "invalid"

ConnectedCallback = Callable[["ConnectionHandle", Status], Status]

_handle_ids = itertools.count(1)


class ConnectionHandle:

    def __init__(self,
                 loop: asyncio.AbstractEventLoop | None = None,
                 snd_buf: int = TCP_SND_BUF,
                 window: int = TCP_WND):
        self.id = next(_handle_ids)
        self.loop = loop or asyncio.get_running_loop()
        self.snd_buf = snd_buf
        self.window = window
        self.state = CLOSED

        self.transport: asyncio.Transport | None = None
        self.flow: FlowControl | None = None
        self.peername: tuple[str, int] | None = None
        self.sockname: tuple[str, int] | None = None

        # Bound session and the notifications it asked for
        self.session: SessionHooks | None = None
        self.hooks = Hook.NONE
        self.poll_interval: float | None = None
        self._poll_timer: asyncio.TimerHandle | None = None

        # Enqueued but not yet handed to the transport
        self._unsent: list[bytes | memoryview] = []
        self._unsent_len = 0
        # Counters used to confirm sent bytes
        self._written = 0
        self._confirmed = 0

        self._on_connected: ConnectedCallback | None = None
        self._connect_task: asyncio.Task | None = None

    def __repr__(self) -> str:
        return f"<ConnectionHandle #{self.id} {self.state} peer={format_addr(self.peername)}>"

    @property
    def valid(self) -> bool:
        return self.state != INVALID

    @property
    def sndbuf(self) -> int:
        """Free space in the send buffer, in bytes."""
        if self.state != ESTABLISHED or self.transport is None:
            return 0
        used = self._unsent_len + self.transport.get_write_buffer_size()
        return max(0, self.snd_buf - used)

    # hook registration

    def attach(self,
               session: SessionHooks,
               hooks: Hook = Hook.ALL,
               poll_interval: float | None = None) -> None:
        self.session = session
        self.hooks = hooks
        if poll_interval is not None:
            self.poll_interval = poll_interval
        self._start_poll()

    def enable(self, hooks: Hook) -> None:
        self.hooks |= hooks
        self._start_poll()

    def detach(self) -> None:
        self.session = None
        self.hooks = Hook.NONE
        self.poll_interval = None
        self._cancel_poll()

    # calls made by sessions

    def recved(self, length: int) -> None:
        if self.flow is not None:
            self.flow.ack(length)

    def write(self, data: bytes | bytearray | memoryview, copy: bool = True) -> Status:
        if self.state == INVALID:
            return Status.CLSD
        if self.state != ESTABLISHED:
            return Status.CONN

        length = len(data)
        if length == 0:
            return Status.OK
        if self.flow.write_paused or length > self.sndbuf:
            logger.debug("%r send buffer full (%d bytes requested, %d free)", self, length, self.sndbuf)
            return Status.MEM

        self._unsent.append(bytes(data) if copy else data)
        self._unsent_len += length
        return Status.OK

    def output(self) -> Status:
        if self.state == INVALID:
            return Status.CLSD
        if self.state != ESTABLISHED:
            return Status.CONN
        if not self._unsent:
            return Status.OK

        self.transport.writelines(self._unsent)
        self._written += self._unsent_len
        self._unsent = []
        self._unsent_len = 0
        self.loop.call_soon(self._check_sent)
        return Status.OK

    def close(self) -> Status:
        """
        Close the connection, sending whatever is still enqueued first. Safe to call more than once.
        """
        if self.state == INVALID:
            return Status.OK
        if self._connect_task is not None:
            self._connect_task.cancel()
            self._connect_task = None

        unsent = self._unsent
        transport = self.transport
        self._invalidate()
        if transport is not None:
            if unsent:
                transport.writelines(unsent)
            transport.close()
        logger.debug("%r closed", self)
        return Status.OK

    def abort(self) -> None:
        """
        Reset the connection without flushing. A still attached error hook hears about it with ABRT.
        """
        if self.state == INVALID:
            return
        if self._connect_task is not None:
            self._connect_task.cancel()
            self._connect_task = None

        session, hooks = self.session, self.hooks
        transport = self.transport
        self._invalidate()
        if transport is not None:
            transport.abort()
        logger.debug("%r aborted", self)
        if session is not None and Hook.ERR in hooks:
            session.on_error(Status.ABRT)

    def connect(self,
                host: str,
                port: int,
                on_connected: ConnectedCallback,
                timeout: float | None = None) -> Status:
        """
        Start a non-blocking connect. on_connected runs inside the loop once the attempt finishes,
        with OK or with the failure status.
        """
        if self.state == INVALID:
            return Status.CLSD
        if self.state != CLOSED:
            return Status.ISCONN

        self.state = CONNECTING
        self._on_connected = on_connected
        self._connect_task = self.loop.create_task(self._connect(host, port, timeout))
        return Status.OK

    async def _connect(self, host: str, port: int, timeout: float | None) -> None:
        from .tcp_conn import TcpConn

        try:
            coro = self.loop.create_connection(lambda: TcpConn(handle=self), host, port)
            if timeout is None:
                await coro
            else:
                await asyncio.wait_for(coro, timeout)
        except OSError as exc:
            logger.debug("%r connect to %s:%d failed: %s", self, host, port, exc)
            self._connect_failed(status_from_exception(exc))
        finally:
            self._connect_task = None

    def _connect_failed(self, status: Status) -> None:
        if self.state != CONNECTING:
            return
        self.state = CLOSED
        self._connect_task = None
        on_connected, self._on_connected = self._on_connected, None
        if on_connected is not None:
            on_connected(self, status)
        # Nothing left to reuse once a connect attempt failed
        if self.state != INVALID:
            self._invalidate()

    # dispatch, driven by TcpConn

    def _connection_made(self, transport: asyncio.Transport) -> None:
        if self.state == INVALID:
            # closed while the connect was still in flight
            transport.abort()
            return

        self.transport = transport
        self.flow = FlowControl(transport, self.window)
        self.peername = get_remote_addr(transport)
        self.sockname = get_local_addr(transport)
        self.state = ESTABLISHED
        self._connect_task = None
        self._start_poll()

        on_connected, self._on_connected = self._on_connected, None
        if on_connected is not None:
            status = on_connected(self, Status.OK)
            if status != Status.OK and self.valid:
                self.abort()

    def _deliver(self, data: bytes | None) -> None:
        """Inbound bytes, or None once the peer has sent its FIN."""
        if self.state != ESTABLISHED:
            return
        if data:
            self.flow.consume(len(data))

        if self.session is not None and Hook.RECV in self.hooks:
            status = self.session.on_data(self, data, Status.OK)
            if status != Status.OK and self.valid:
                logger.warning("%r receive hook returned %s, aborting", self, status.name)
                self.abort()
            return

        # Nobody listening: take the bytes off the window and drop them
        if data is None:
            self.close()
        else:
            self.recved(len(data))

    def _deliver_error(self, status: Status) -> None:
        if self.state == INVALID:
            return
        session, hooks = self.session, self.hooks
        transport = self.transport
        self._invalidate()
        if transport is not None and not transport.is_closing():
            transport.abort()
        logger.debug("%r failed: %s", self, status.name)
        if session is not None and Hook.ERR in hooks:
            session.on_error(status)

    def _write_paused(self) -> None:
        if self.flow is not None:
            self.flow.pause_writing()

    def _write_resumed(self) -> None:
        if self.flow is not None:
            self.flow.resume_writing()
        self._check_sent()

    def _check_sent(self) -> None:
        if self.state != ESTABLISHED:
            return
        confirmed = self._written - self.transport.get_write_buffer_size()
        length = confirmed - self._confirmed
        if length <= 0:
            return
        self._confirmed = confirmed
        if self.session is not None and Hook.SENT in self.hooks:
            self.session.on_sent(self, length)

    def _start_poll(self) -> None:
        if (self._poll_timer is None and self.poll_interval
                and Hook.POLL in self.hooks and self.state == ESTABLISHED):
            self._poll_timer = self.loop.call_later(self.poll_interval, self._poll_tick)

    def _cancel_poll(self) -> None:
        if self._poll_timer is not None:
            self._poll_timer.cancel()
            self._poll_timer = None

    def _poll_tick(self) -> None:
        self._poll_timer = None
        if self.state != ESTABLISHED:
            return
        self._check_sent()
        if self.session is not None and Hook.POLL in self.hooks:
            self.session.on_poll(self)
        self._start_poll()

    def _invalidate(self) -> None:
        self.state = INVALID
        self._cancel_poll()
        self.session = None
        self.hooks = Hook.NONE
        self._unsent = []
        self._unsent_len = 0
        self._on_connected = None
