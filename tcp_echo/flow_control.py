"""
Flow control for an asyncio transport, standing in for the receive window of the embedded stack.

Every delivered byte counts against the window until the session acknowledges it with
ConnectionHandle.recved(). When the window is used up we stop reading from the socket, so the kernel
buffers fill and the peer's TCP stack backs off on its own. Write side mirrors the transport's
pause_writing/resume_writing notifications; while paused the send buffer is reported as full.
"""


import asyncio
import logging

from .config import TCP_WND

logger = logging.getLogger(__name__)

HIGH_WATER_LIMIT_READ = TCP_WND


class FlowControl:

    def __init__(self, transport: asyncio.Transport, window: int = HIGH_WATER_LIMIT_READ):
        self._read_paused = False
        self._write_paused = False
        self._transport = transport
        self.window = window
        self.unacked = 0

    @property
    def read_paused(self) -> bool:
        return self._read_paused

    @property
    def write_paused(self) -> bool:
        return self._write_paused

    def consume(self, length: int):
        self.unacked += length
        if self.unacked >= self.window:
            self.pause_reading()

    def ack(self, length: int):
        self.unacked = max(0, self.unacked - length)
        if self.unacked < self.window:
            self.resume_reading()

    def pause_reading(self):
        if not self._read_paused:
            self._read_paused = True
            logger.debug("Receive window exhausted (%d bytes), pausing reads", self.unacked)
            self._transport.pause_reading()

    def resume_reading(self):
        if self._read_paused:
            self._read_paused = False
            if not self._transport.is_closing():
                self._transport.resume_reading()

    def pause_writing(self):
        if not self._write_paused:
            self._write_paused = True

    def resume_writing(self):
        if self._write_paused:
            self._write_paused = False
