import logging

import click

from .config import (
    GREETING,
    SERVER_IP,
    SERVER_PORT,
    TCP_PORT,
    TCP_SERVER_BUF_SIZE,
    ClientConfig,
    Config,
)
from .server import ClientRunner, Server

LOG_LEVELS = {
    "critical": logging.CRITICAL,
    "error": logging.ERROR,
    "warning": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}


@click.group()
@click.option("--log-level", type=click.Choice(list(LOG_LEVELS)), default="info", show_default=True)
def cli(log_level: str) -> None:
    """TCP echo server and client."""
    logging.basicConfig(
        level=LOG_LEVELS[log_level],
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@cli.command()
@click.option("--host", default=None, help="Bind address. All interfaces when omitted.")
@click.option("--port", type=int, default=TCP_PORT, show_default=True)
@click.option("--buffer-size", type=click.IntRange(min=1), default=TCP_SERVER_BUF_SIZE, show_default=True,
              help="Largest payload echoed back in one piece.")
@click.option("--poll-interval", type=float, default=1.0, show_default=True)
@click.option("--backlog", type=int, default=5, show_default=True)
@click.option("--max-sessions", type=click.IntRange(min=1), default=1, show_default=True)
@click.option("--timeout-graceful-shutdown", type=float, default=5.0, show_default=True)
def server(host, port, buffer_size, poll_interval, backlog, max_sessions, timeout_graceful_shutdown) -> None:
    """Run the echo server."""
    config = Config(
        host=host,
        port=port,
        buffer_size=buffer_size,
        poll_interval=poll_interval,
        backlog=backlog,
        max_sessions=max_sessions,
        timeout_graceful_shutdown=timeout_graceful_shutdown,
    )
    Server(config).run()


@cli.command()
@click.option("--host", default=SERVER_IP, show_default=True)
@click.option("--port", type=int, default=SERVER_PORT, show_default=True)
@click.option("--greeting", default=GREETING.decode(), help="Sent once the connection is up.")
@click.option("--connect-timeout", type=float, default=None)
def client(host, port, greeting, connect_timeout) -> None:
    """Connect to an echo server and echo back what it sends."""
    config = ClientConfig(
        host=host,
        port=port,
        greeting=greeting.encode(),
        connect_timeout=connect_timeout,
    )
    ClientRunner(config).run()


if __name__ == "__main__":
    cli()
