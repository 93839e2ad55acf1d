"""
Bridge between asyncio and the handle dispatch.

asyncio.Protocol callbacks used here:
- connection_made(transport): a connection was accepted (server) or our connect completed (client).
- data_received(data): bytes arrived.
- eof_received(): the peer sent its FIN. We return True so the transport stays half-open and the session decides when to close.
- connection_lost(exc): the connection is gone. exc is None for a clean close, an exception for resets and other failures.
- pause_writing()/resume_writing(): the transport's write buffer crossed the high/low water mark.
"""
import asyncio
import logging
from typing import Callable

from ._types import Status, status_from_exception
from .config import TCP_SND_BUF, TCP_WND
from .handle import ConnectionHandle
from .util import format_addr, get_remote_addr

logger = logging.getLogger(__name__)

AcceptCallback = Callable[[ConnectionHandle, Status], Status]


class TcpConn(asyncio.Protocol):

    def __init__(self,
                 handle: ConnectionHandle | None = None,
                 on_accept: AcceptCallback | None = None,
                 snd_buf: int = TCP_SND_BUF,
                 window: int = TCP_WND,
                 loop: asyncio.AbstractEventLoop | None = None):
        self.loop = loop or asyncio.get_running_loop()
        self.handle = handle
        self.on_accept = on_accept
        self.snd_buf = snd_buf
        self.window = window

    def connection_made(self, transport: asyncio.Transport):
        if self.handle is None:
            self.handle = ConnectionHandle(loop=self.loop, snd_buf=self.snd_buf, window=self.window)
        logger.debug("Connection made with %s", format_addr(get_remote_addr(transport)))
        self.handle._connection_made(transport)

        if self.on_accept is not None and self.handle.valid:
            status = self.on_accept(self.handle, Status.OK)
            if status != Status.OK and self.handle.valid:
                self.handle.abort()

    def data_received(self, data: bytes):
        logger.debug("%r received %d bytes", self.handle, len(data))
        self.handle._deliver(data)

    def eof_received(self):
        logger.debug("%r received FIN", self.handle)
        self.handle._deliver(None)
        return True

    def connection_lost(self, exc: Exception | None = None) -> None:
        """
        When the session closed or aborted the handle itself this is only the transport catching up,
        and the handle ignores it. Otherwise the connection died under us.
        """
        if self.handle is None or not self.handle.valid:
            return
        if exc is not None:
            logger.debug("%r lost: %s", self.handle, exc)
        self.handle._deliver_error(status_from_exception(exc))

    def pause_writing(self) -> None:
        self.handle._write_paused()

    def resume_writing(self) -> None:
        self.handle._write_resumed()
