"""
TCP echo server.

EchoServer is the acceptor: it owns the listening endpoint and admits at most config.max_sessions connections
(one by default, a simple single-client model). Every admitted connection gets a ServerSession which copies
what arrives into its buffer and writes it straight back.

Payloads larger than the session buffer are acknowledged and dropped, and so is an echo that doesn't fit the
send buffer. Both are counted on the session, neither is retried.
"""
import asyncio
import logging

from ._types import Hook, Status
from .config import Config
from .handle import ConnectionHandle
from .server_state import ServerState
from .tcp_conn import TcpConn
from .util import format_addr

logger = logging.getLogger(__name__)


class ServerSession:

    def __init__(self, server: "EchoServer", handle: ConnectionHandle, buffer_size: int):
        self.server = server
        self.handle: ConnectionHandle | None = handle
        self.id = handle.id
        self.peername = handle.peername
        self.buffer = bytearray(buffer_size)
        self.buflen = 0
        self.echoed = 0
        self.dropped = 0

    def __repr__(self) -> str:
        return f"<ServerSession #{self.id} peer={format_addr(self.peername)}>"

    @property
    def capacity(self) -> int:
        return len(self.buffer)

    def on_data(self, handle: ConnectionHandle, data: bytes | None, status: Status) -> Status:
        if status == Status.OK and data:
            # Window goes back for every delivery, echoed or not
            handle.recved(len(data))

            if len(data) <= self.capacity:
                self.buffer[:len(data)] = data
                self.buflen = len(data)
                self.send()
            else:
                self.dropped += len(data)
                logger.debug("%r dropping %d byte payload, buffer holds %d", self, len(data), self.capacity)

        elif status == Status.OK:
            # FIN from the client
            logger.info("Client %s closed the connection", format_addr(self.peername))
            self.server.close_connection(handle, self)

        else:
            logger.debug("%r ignoring delivery with status %s", self, status.name)

        # Anything but OK makes the handle abort under us
        return Status.OK

    def send(self) -> None:
        handle = self.handle
        status = handle.write(memoryview(self.buffer)[:self.buflen], copy=True)
        if status == Status.OK:
            handle.output()
            self.echoed += self.buflen
        else:
            self.dropped += self.buflen
            logger.debug("%r echo of %d bytes not sent: %s", self, self.buflen, status.name)

    def on_sent(self, handle: ConnectionHandle, length: int) -> Status:
        return Status.OK

    def on_poll(self, handle: ConnectionHandle) -> Status:
        """Periodic tick, kept for keep-alives and idle timeouts."""
        return Status.OK

    def on_error(self, status: Status) -> None:
        # The handle is already gone, only our bookkeeping is left
        logger.warning("Connection with %s failed: %s", format_addr(self.peername), status.name)
        self.server.release(self)


class EchoServer:

    def __init__(self, config: Config | None = None, state: ServerState | None = None):
        self.config = config or Config()
        self.state = state if state is not None else ServerState(capacity=self.config.max_sessions)
        self.listener: asyncio.Server | None = None

    @property
    def sockname(self) -> tuple[str, int] | None:
        if self.listener is None or not self.listener.sockets:
            return None
        info = self.listener.sockets[0].getsockname()
        return (str(info[0]), int(info[1]))

    async def listen(self) -> asyncio.Server:
        """
        Bind the listening endpoint and start accepting. A bind failure is logged and raised; the
        endpoint is released by asyncio and not retried here.
        """
        loop = asyncio.get_running_loop()
        try:
            self.listener = await loop.create_server(
                lambda: TcpConn(on_accept=self.accept,
                                snd_buf=self.config.snd_buf,
                                window=self.config.window),
                host=self.config.host,
                port=self.config.port,
                backlog=self.config.backlog,
            )
        except OSError as exc:
            logger.error("Could not listen on port %d: %s", self.config.port, exc)
            raise
        return self.listener

    def accept(self, handle: ConnectionHandle, status: Status) -> Status:
        if status != Status.OK:
            return status

        if self.state.is_full():
            logger.info("Rejecting %s, already serving %d connection(s)",
                        format_addr(handle.peername), len(self.state))
            self.state.rejected_connections += 1
            self.close_connection(handle, None)
            return Status.ABRT

        try:
            session = ServerSession(self, handle, self.config.buffer_size)
        except MemoryError:
            logger.error("Out of memory, cannot accept %s", format_addr(handle.peername))
            return Status.MEM

        self.state.add(session)
        handle.attach(session, Hook.RECV | Hook.ERR | Hook.POLL, poll_interval=self.config.poll_interval)
        logger.info("Accepted connection from %s", format_addr(handle.peername))
        return Status.OK

    def close_connection(self, handle: ConnectionHandle, session: ServerSession | None = None) -> None:
        handle.detach()
        handle.close()
        if session is not None:
            self.release(session)

    def release(self, session: ServerSession) -> None:
        session.handle = None
        session.buffer = bytearray()
        session.buflen = 0
        self.state.discard(session)

    def close(self) -> None:
        """Stop accepting and tear down every live session."""
        if self.listener is not None:
            self.listener.close()
        for session in self.state:
            if session.handle is not None:
                self.close_connection(session.handle, session)


async def start_server(config: Config | None = None) -> EchoServer:
    server = EchoServer(config)
    await server.listen()
    logger.info("Echo server listening on %s", format_addr(server.sockname))
    return server
