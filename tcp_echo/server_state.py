from typing import TYPE_CHECKING, Iterator

if TYPE_CHECKING:
    from .echo_server import ServerSession


class SessionLimitExceeded(RuntimeError):
    pass


class ServerState:
    """
    Shared server state, available to the acceptor and every session it creates.
    """
    def __init__(self, capacity: int = 1):
        """
        sessions maps a handle id to the session servicing it. The acceptor checks is_full() before it
        admits anything, so with the default capacity of 1 there is never more than one live session.
        """
        self.capacity = capacity
        self.sessions: dict[int, ServerSession] = {}
        self.total_connections = 0
        self.rejected_connections = 0

    def __len__(self) -> int:
        return len(self.sessions)

    def __iter__(self) -> Iterator["ServerSession"]:
        return iter(list(self.sessions.values()))

    def __contains__(self, session: "ServerSession") -> bool:
        return self.sessions.get(session.id) is session

    def is_full(self) -> bool:
        return len(self.sessions) >= self.capacity

    def get(self, session_id: int) -> "ServerSession | None":
        return self.sessions.get(session_id)

    def add(self, session: "ServerSession") -> None:
        if self.is_full():
            raise SessionLimitExceeded(f"session limit of {self.capacity} reached")
        self.sessions[session.id] = session
        self.total_connections += 1

    def discard(self, session: "ServerSession") -> None:
        if self.sessions.get(session.id) is session:
            del self.sessions[session.id]
