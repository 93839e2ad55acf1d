from ._types import Hook, Status
from .config import ClientConfig, Config
from .echo_client import ClientState, EchoClient, start_client
from .echo_server import EchoServer, ServerSession, start_server
from .handle import ConnectionHandle
from .server_state import ServerState, SessionLimitExceeded

__all__ = [
    "ClientConfig",
    "ClientState",
    "Config",
    "ConnectionHandle",
    "EchoClient",
    "EchoServer",
    "Hook",
    "ServerSession",
    "ServerState",
    "SessionLimitExceeded",
    "Status",
    "start_client",
    "start_server",
]
