"""
TCP echo client: connects to the configured server, sends a greeting and echoes back whatever it receives.
"""
import asyncio
import logging

from ._types import Hook, Status
from .config import ClientConfig
from .handle import ConnectionHandle
from .util import format_addr

logger = logging.getLogger(__name__)


class ClientState:
    """Client connection record. Reset by init(), never released."""

    def __init__(self):
        self.handle: ConnectionHandle | None = None
        self.retries = 0


class EchoClient:

    def __init__(self, config: ClientConfig | None = None, state: ClientState | None = None):
        self.config = config or ClientConfig()
        self.state = state if state is not None else ClientState()
        # Set once the connection is over, whichever way it ended
        self.closed = asyncio.Event()

    @property
    def address(self) -> tuple[str, int]:
        return (self.config.host, self.config.port)

    def init(self) -> ConnectionHandle | None:
        """
        Start connecting to the server. Must be called from inside the running loop.
        Returns the new handle, or None when no handle could be allocated.
        """
        logger.info("tcp client init")
        self.state.handle = None
        self.state.retries = 0
        self.closed.clear()

        try:
            handle = ConnectionHandle(snd_buf=self.config.snd_buf, window=self.config.window)
        except MemoryError:
            logger.error("Out of memory, no connection to %s", format_addr(self.address))
            self.closed.set()
            return None

        self.state.handle = handle
        handle.attach(self, Hook.ERR)

        logger.info("Connecting to server %s...", format_addr(self.address))
        handle.connect(self.config.host, self.config.port, self.connected, timeout=self.config.connect_timeout)
        logger.info("Connect initiated.")
        return handle

    def connected(self, handle: ConnectionHandle, status: Status) -> Status:
        if status == Status.OK:
            logger.info("Connected to %s", format_addr(handle.peername))
            handle.enable(Hook.RECV | Hook.SENT)

            handle.write(self.config.greeting, copy=True)
            handle.output()
        else:
            logger.warning("Connection to %s failed: %s", format_addr(self.address), status.name)
            self.close_connection(handle)
        return status

    def on_data(self, handle: ConnectionHandle, data: bytes | None, status: Status) -> Status:
        if status == Status.OK and data:
            handle.recved(len(data))
            if handle.write(data, copy=True) == Status.OK:
                handle.output()
        elif status == Status.OK:
            logger.info("Server closed the connection")
            self.close_connection(handle)
        return Status.OK

    def on_sent(self, handle: ConnectionHandle, length: int) -> Status:
        # Hook point for pipelining the next send
        return Status.OK

    def on_poll(self, handle: ConnectionHandle) -> Status:
        return Status.OK

    def on_error(self, status: Status) -> None:
        logger.warning("Connection to %s failed: %s", format_addr(self.address), status.name)
        self.state.handle = None
        self.closed.set()

    def close_connection(self, handle: ConnectionHandle) -> None:
        handle.detach()
        handle.close()
        self.state.handle = None
        self.closed.set()


async def start_client(config: ClientConfig | None = None) -> EchoClient:
    client = EchoClient(config)
    client.init()
    return client
