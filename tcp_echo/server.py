from typing import Generator
import asyncio
import signal
import sys
import logging
import contextlib
import threading
import click
from .config import ClientConfig, Config
from .echo_client import EchoClient
from .echo_server import EchoServer


HANDLED_SIGNALS = {
    signal.SIGINT: "SIGINT",
    signal.SIGTERM: "SIGTERM",
}
if sys.platform == "win32":
    HANDLED_SIGNALS[signal.SIGBREAK] = "SIGBREAK"


logger = logging.getLogger(__name__)


class Runner:
    """
    Runs one component until it finishes or a signal asks it to stop.
    """
    def __init__(self):
        self.should_exit = False
        self.force_exit = False
        self._captured_signals: list[int] = []

    def run(self) -> None:
        return asyncio.run(self.serve())

    async def serve(self) -> None:
        with self.capture_signals():
            await self._serve()

    async def _serve(self) -> None:
        raise NotImplementedError

    # signal handling
    @contextlib.contextmanager
    def capture_signals(self) -> Generator[None, None, None]:
        """
        Signals can only be listened to from the main thread
        """
        if threading.current_thread() is not threading.main_thread():
            yield
            return
        original_handlers = {sig: signal.signal(sig, self.handle_exit) for sig in HANDLED_SIGNALS.keys()}
        try:
            yield
        finally:
            # Restore original signal handlers
            for sig, handler in original_handlers.items():
                signal.signal(sig, handler)
            # Raise captured signals in reverse order to ensure proper handling
            for captured_signal in reversed(self._captured_signals):
                signal.raise_signal(captured_signal)

    def handle_exit(self, sig: int, frame) -> None:
        self._captured_signals.append(sig)
        if self.should_exit and sig == signal.SIGINT:
            self.force_exit = True
        else:
            self.should_exit = True


class Server(Runner):
    def __init__(self, config: Config | None = None):
        super().__init__()
        self.config = config or Config()
        self.echo = EchoServer(self.config)
        self.started = False

    async def _serve(self):
        logger.info("Starting echo server...")
        await self.startup()
        if self.should_exit:
            return
        await self.main_loop()
        await self.shutdown()
        logger.info("Server shutdown complete!")

    async def startup(self) -> None:
        try:
            listener = await self.echo.listen()
        except OSError:
            sys.exit(1)
        self.started = True
        self._log_startup_message(listener.sockets[0])

    def _log_startup_message(self, listener):
        addr_format = "%s://%s:%d"
        host = "0.0.0.0" if self.config.host is None else self.config.host
        if ":" in host:
            # It's an IPv6 address.
            addr_format = "%s://[%s]:%d"

        port = self.config.port
        if port == 0:
            port = listener.getsockname()[1]

        message = f"Echo server running on {addr_format} (Press CTRL+C to quit)"
        color_message = "Echo server running on " + click.style(addr_format, bold=True) + " (Press CTRL+C to quit)"
        logger.info(
            message,
            "tcp",
            host,
            port,
            extra={"color_message": color_message},
        )

    async def main_loop(self) -> None:
        while not self.should_exit:
            # Accepting and echoing all happen in loop callbacks while we sleep here
            await asyncio.sleep(0.1)

    async def shutdown(self) -> None:
        logger.info("Shutting down server...")
        # Stops accepting and closes every live session
        self.echo.close()

        try:
            await asyncio.wait_for(
                self._wait_sessions_to_close(),
                timeout=self.config.timeout_graceful_shutdown
            )
        except asyncio.TimeoutError:
            logger.warning("Graceful shutdown timed out. Forcing exit.")
            for session in self.echo.state:
                if session.handle is not None:
                    session.handle.abort()
                self.echo.release(session)

    async def _wait_sessions_to_close(self) -> None:
        if self.echo.state.sessions and not self.force_exit:
            logger.info("Waiting for connections to close. (CTRL+C to force quit)")
            while self.echo.state.sessions and not self.force_exit:
                await asyncio.sleep(0.1)

        await self.echo.listener.wait_closed()


class ClientRunner(Runner):
    def __init__(self, config: ClientConfig | None = None):
        super().__init__()
        self.config = config or ClientConfig()
        self.client = EchoClient(self.config)

    async def _serve(self):
        self.client.init()
        while not self.should_exit and not self.client.closed.is_set():
            await asyncio.sleep(0.1)

        handle = self.client.state.handle
        if handle is not None:
            logger.info("Closing connection to server...")
            self.client.close_connection(handle)
        logger.info("Client finished.")
