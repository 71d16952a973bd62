"""
Error kinds raised by the sync pipeline.

Every transport failure surfaces as a single exception type,
RemoteFileError, carrying a machine-readable RemoteErrorCode. Each code maps
to a distinct HTTP-style status so callers (CLI, API layer) can report it
without inspecting the underlying transport exception.
"""
import errno
import socket
from enum import Enum
from typing import Optional

import paramiko


class RemoteErrorCode(str, Enum):
    CONNECTION_REFUSED    = "connection_refused"
    HOST_UNREACHABLE      = "host_unreachable"
    TIMEOUT               = "timeout"
    AUTHENTICATION_FAILED = "authentication_failed"
    PERMISSION_DENIED     = "permission_denied"
    NOT_FOUND             = "not_found"
    ENCODING_ERROR        = "encoding_error"
    CONFLICT              = "conflict"
    UNKNOWN               = "unknown"

    @property
    def status(self) -> int:
        return _STATUS_BY_CODE[self]


_STATUS_BY_CODE = {
    RemoteErrorCode.CONNECTION_REFUSED:    503,
    RemoteErrorCode.HOST_UNREACHABLE:      502,
    RemoteErrorCode.TIMEOUT:               504,
    RemoteErrorCode.AUTHENTICATION_FAILED: 401,
    RemoteErrorCode.PERMISSION_DENIED:     403,
    RemoteErrorCode.NOT_FOUND:             404,
    RemoteErrorCode.ENCODING_ERROR:        422,
    RemoteErrorCode.CONFLICT:              409,
    RemoteErrorCode.UNKNOWN:               500,
}

_UNREACHABLE_ERRNOS = {errno.EHOSTUNREACH, errno.ENETUNREACH, errno.EHOSTDOWN}


class SyncError(Exception):
    """Base class for all pipeline errors."""

    code: RemoteErrorCode = RemoteErrorCode.UNKNOWN

    def __init__(
        self,
        message: str,
        code: Optional[RemoteErrorCode] = None,
        detail: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        if code is not None:
            self.code = code
        self.detail = detail

    @property
    def status(self) -> int:
        return self.code.status

    def to_dict(self) -> dict:
        return {
            "error": str(self),
            "code": self.code.value,
            "status": self.status,
            "detail": self.detail,
        }


class RemoteFileError(SyncError):
    """A remote operation failed. The transport exception is chained as __cause__."""

    def __init__(
        self,
        message: str,
        code: RemoteErrorCode,
        operation: str,
        path: Optional[str] = None,
        detail: Optional[str] = None,
    ) -> None:
        super().__init__(message, code=code, detail=detail)
        self.operation = operation
        self.path = path

    @classmethod
    def from_exception(
        cls, exc: BaseException, operation: str, path: Optional[str] = None
    ) -> "RemoteFileError":
        code = classify_exception(exc)
        target = f" {path}" if path else ""
        return cls(
            f"Remote {operation}{target} failed: {code.value}",
            code=code,
            operation=operation,
            path=path,
            detail=f"{type(exc).__name__}: {exc}",
        )


class EncodingError(SyncError):
    """A remote file could not be decoded."""
    code = RemoteErrorCode.ENCODING_ERROR


class NotFoundError(SyncError):
    """A purchase order, store or other required entity does not exist."""
    code = RemoteErrorCode.NOT_FOUND


def classify_exception(exc: BaseException) -> RemoteErrorCode:
    """Map a transport exception onto a RemoteErrorCode."""
    if isinstance(exc, SyncError):
        return exc.code
    if isinstance(exc, paramiko.AuthenticationException):
        return RemoteErrorCode.AUTHENTICATION_FAILED
    if isinstance(exc, paramiko.ssh_exception.NoValidConnectionsError):
        # Raised when every resolved address failed; classify by the first cause
        for cause in exc.errors.values():
            return classify_exception(cause)
        return RemoteErrorCode.HOST_UNREACHABLE
    if isinstance(exc, (TimeoutError, socket.timeout)):
        return RemoteErrorCode.TIMEOUT
    if isinstance(exc, ConnectionRefusedError):
        return RemoteErrorCode.CONNECTION_REFUSED
    if isinstance(exc, socket.gaierror):
        return RemoteErrorCode.HOST_UNREACHABLE
    if isinstance(exc, PermissionError):
        return RemoteErrorCode.PERMISSION_DENIED
    if isinstance(exc, FileNotFoundError):
        return RemoteErrorCode.NOT_FOUND
    if isinstance(exc, OSError):
        if exc.errno in _UNREACHABLE_ERRNOS:
            return RemoteErrorCode.HOST_UNREACHABLE
        if exc.errno in (errno.EACCES, errno.EPERM):
            return RemoteErrorCode.PERMISSION_DENIED
        if exc.errno == errno.ENOENT:
            return RemoteErrorCode.NOT_FOUND
        if exc.errno == errno.ETIMEDOUT:
            return RemoteErrorCode.TIMEOUT
        if exc.errno == errno.ECONNREFUSED:
            return RemoteErrorCode.CONNECTION_REFUSED
    return RemoteErrorCode.UNKNOWN


def is_not_found(exc: BaseException) -> bool:
    return classify_exception(exc) is RemoteErrorCode.NOT_FOUND
