import errno
import enum
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from .handle import ConnectionHandle


Address = tuple[str, int]


class Status(enum.IntEnum):
    """
    Result codes passed between the sessions and the transport. The numeric values are the ones
    the embedded stack uses for err_t, so log lines read the same on both sides of the wire.
    """
    OK = 0
    MEM = -1
    BUF = -2
    TIMEOUT = -3
    RTE = -4
    INPROGRESS = -5
    VAL = -6
    WOULDBLOCK = -7
    USE = -8
    ALREADY = -9
    ISCONN = -10
    CONN = -11
    IF = -12
    ABRT = -13
    RST = -14
    CLSD = -15
    ARG = -16


class Hook(enum.Flag):
    NONE = 0
    RECV = 1
    SENT = 2
    POLL = 4
    ERR = 8
    ALL = RECV | SENT | POLL | ERR


class SessionHooks(Protocol):
    """
    The four notifications a session receives from its handle.
    on_error is terminal: the handle is already gone when it fires.
    """

    def on_data(self, handle: "ConnectionHandle", data: bytes | None, status: Status) -> Status: ...

    def on_sent(self, handle: "ConnectionHandle", length: int) -> Status: ...

    def on_poll(self, handle: "ConnectionHandle") -> Status: ...

    def on_error(self, status: Status) -> None: ...


def status_from_exception(exc: BaseException | None) -> Status:
    if exc is None:
        return Status.CLSD
    if isinstance(exc, (ConnectionResetError, ConnectionRefusedError)):
        return Status.RST
    if isinstance(exc, ConnectionAbortedError):
        return Status.ABRT
    if isinstance(exc, TimeoutError):
        return Status.TIMEOUT
    if isinstance(exc, MemoryError):
        return Status.MEM
    if isinstance(exc, OSError):
        if exc.errno == errno.EADDRINUSE:
            return Status.USE
        if exc.errno in (errno.ENETUNREACH, errno.EHOSTUNREACH):
            return Status.RTE
        return Status.CONN
    return Status.CONN
