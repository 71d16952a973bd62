"""
Remote file channel to the partner's file-transfer endpoint.

RemoteFileChannel defines the primitives the sync jobs use (list, stat,
exists, get, put, mkdir, rename, remove) and owns the connection lifecycle:

  - connect() / disconnect() open and close the connection explicitly.
  - session() is a re-entrant scoped acquisition. The outermost session
    connects and disconnects; nested sessions reuse that connection.
  - Every public operation runs inside session(). Called on its own it
    therefore opens and tears down a connection around itself; called from
    inside an enclosing session it shares that session's connection.

Subclasses implement the underscore-prefixed hooks. Any exception a hook
raises is classified and re-raised as RemoteFileError with the original
exception chained.

SftpChannel is the production implementation over paramiko.
"""
from __future__ import annotations

import logging
import posixpath
import stat as stat_mode
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, Optional

import paramiko

from config import Config
from .errors import RemoteFileError, is_not_found

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RemoteEntry:
    """One entry of a remote directory listing."""
    name: str
    size: int
    modify_time: datetime
    is_dir: bool = False


class RemoteFileChannel:
    """Base class for a single remote endpoint. Not thread-safe."""

    label = "remote"

    def __init__(self) -> None:
        self._depth = 0
        self._connected = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def connected(self) -> bool:
        return self._connected

    def connect(self) -> None:
        if self._connected:
            return
        try:
            self._open()
        except Exception as exc:
            logger.error("Connection to %s failed: %s", self.label, exc)
            raise RemoteFileError.from_exception(exc, "connect", self.label) from exc
        self._connected = True
        logger.debug("Connected to %s", self.label)

    def disconnect(self) -> None:
        if not self._connected:
            return
        self._connected = False
        try:
            self._close()
            logger.debug("Disconnected from %s", self.label)
        except Exception as exc:
            logger.warning("Error disconnecting from %s: %s", self.label, exc)

    @contextmanager
    def session(self) -> Iterator["RemoteFileChannel"]:
        if self._depth == 0:
            self.connect()
        self._depth += 1
        try:
            yield self
        finally:
            self._depth -= 1
            if self._depth == 0:
                self.disconnect()

    def _call(self, operation: str, path: str, fn, *args):
        with self.session():
            try:
                return fn(*args)
            except RemoteFileError:
                raise
            except Exception as exc:
                raise RemoteFileError.from_exception(exc, operation, path) from exc

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def list(self, directory: str) -> list[RemoteEntry]:
        """Return the entries of a remote directory."""
        return self._call("list", directory, self._listdir, directory)

    def stat(self, path: str) -> RemoteEntry:
        return self._call("stat", path, self._stat, path)

    def exists(self, path: str) -> bool:
        with self.session():
            try:
                self._stat(path)
                return True
            except Exception as exc:
                if is_not_found(exc):
                    return False
                raise RemoteFileError.from_exception(exc, "exists", path) from exc

    def get(self, remote_path: str, local_path: Path) -> None:
        """Download remote_path to local_path, overwriting it."""
        self._call("get", remote_path, self._get, remote_path, str(local_path))
        logger.info("Downloaded %s", remote_path)

    def put(self, local_path: Path, remote_path: str) -> None:
        """Upload local_path to remote_path, overwriting any existing file."""
        self._call("put", remote_path, self._put, str(local_path), remote_path)
        logger.info("Uploaded %s", remote_path)

    def mkdir(self, path: str, recursive: bool = True) -> None:
        """Create a remote directory. Existing directories are left untouched."""
        with self.session():
            if self.exists(path):
                return
            if recursive:
                parent = posixpath.dirname(path.rstrip("/"))
                if parent and parent != "/" and parent != path:
                    self.mkdir(parent, recursive=True)
            self._call("mkdir", path, self._mkdir, path)
            logger.debug("Created remote directory %s", path)

    def rename(self, src: str, dst: str) -> None:
        self._call("rename", src, self._rename, src, dst)
        logger.info("Moved %s -> %s", src, dst)

    def remove(self, path: str) -> None:
        self._call("remove", path, self._remove, path)
        logger.info("Removed %s", path)

    def check_connection(self, probe_dir: str = "/") -> bool:
        """
        Connect and report whether probe_dir exists. Returns False (and logs)
        if the endpoint cannot be reached.
        """
        try:
            with self.session():
                found = self.exists(probe_dir)
        except RemoteFileError as exc:
            logger.error("Connection test against %s failed: %s (%s)", self.label, exc, exc.detail)
            return False
        if found:
            logger.info("Remote directory %s exists on %s", probe_dir, self.label)
        else:
            logger.warning("Remote directory %s not found on %s", probe_dir, self.label)
        return True

    # ------------------------------------------------------------------
    # Transport hooks
    # ------------------------------------------------------------------

    def _open(self) -> None:
        raise NotImplementedError

    def _close(self) -> None:
        raise NotImplementedError

    def _listdir(self, directory: str) -> list[RemoteEntry]:
        raise NotImplementedError

    def _stat(self, path: str) -> RemoteEntry:
        """Raise FileNotFoundError when path does not exist."""
        raise NotImplementedError

    def _get(self, remote_path: str, local_path: str) -> None:
        raise NotImplementedError

    def _put(self, local_path: str, remote_path: str) -> None:
        raise NotImplementedError

    def _mkdir(self, path: str) -> None:
        raise NotImplementedError

    def _rename(self, src: str, dst: str) -> None:
        raise NotImplementedError

    def _remove(self, path: str) -> None:
        raise NotImplementedError


def _entry_from_attr(name: str, attr: paramiko.SFTPAttributes) -> RemoteEntry:
    return RemoteEntry(
        name=name,
        size=attr.st_size or 0,
        modify_time=datetime.fromtimestamp(attr.st_mtime or 0, tz=timezone.utc),
        is_dir=stat_mode.S_ISDIR(attr.st_mode or 0),
    )


class SftpChannel(RemoteFileChannel):
    """RemoteFileChannel over SSH/SFTP using paramiko."""

    def __init__(
        self,
        host: str,
        port: int = 22,
        username: str = "",
        password: Optional[str] = None,
        key_path: Optional[str] = None,
        known_hosts: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> None:
        super().__init__()
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.key_path = key_path
        self.known_hosts = known_hosts
        self.timeout = timeout
        self.label = f"sftp://{username}@{host}:{port}" if username else f"sftp://{host}:{port}"
        self._ssh: Optional[paramiko.SSHClient] = None
        self._sftp: Optional[paramiko.SFTPClient] = None

    def _open(self) -> None:
        ssh = paramiko.SSHClient()
        if self.known_hosts:
            ssh.load_host_keys(self.known_hosts)
            ssh.set_missing_host_key_policy(paramiko.RejectPolicy())
        else:
            logger.debug("No known_hosts configured — accepting host key for %s", self.host)
            ssh.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        try:
            ssh.connect(
                hostname=self.host,
                port=self.port,
                username=self.username,
                password=self.password,
                key_filename=self.key_path,
                timeout=self.timeout,
                allow_agent=False,
                look_for_keys=False,
            )
            self._sftp = ssh.open_sftp()
        except Exception:
            ssh.close()
            raise
        self._ssh = ssh

    def _close(self) -> None:
        try:
            if self._sftp is not None:
                self._sftp.close()
        finally:
            self._sftp = None
            if self._ssh is not None:
                self._ssh.close()
            self._ssh = None

    @property
    def sftp(self) -> paramiko.SFTPClient:
        if self._sftp is None:
            raise RuntimeError("SFTP channel used outside of a session")
        return self._sftp

    def _listdir(self, directory: str) -> list[RemoteEntry]:
        return [_entry_from_attr(a.filename, a) for a in self.sftp.listdir_attr(directory)]

    def _stat(self, path: str) -> RemoteEntry:
        return _entry_from_attr(posixpath.basename(path.rstrip("/")), self.sftp.stat(path))

    def _get(self, remote_path: str, local_path: str) -> None:
        self.sftp.get(remote_path, local_path)

    def _put(self, local_path: str, remote_path: str) -> None:
        self.sftp.put(local_path, remote_path)

    def _mkdir(self, path: str) -> None:
        self.sftp.mkdir(path)

    def _rename(self, src: str, dst: str) -> None:
        self.sftp.rename(src, dst)

    def _remove(self, path: str) -> None:
        self.sftp.remove(path)


def build_channel(config: Config) -> SftpChannel:
    """Construct the production channel from configuration."""
    return SftpChannel(
        host=config.sftp_host,
        port=config.sftp_port,
        username=config.sftp_username,
        password=config.sftp_password,
        key_path=config.sftp_key_path,
        known_hosts=config.sftp_known_hosts,
        timeout=config.sftp_timeout,
    )
