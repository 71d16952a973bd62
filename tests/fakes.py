"""
Test doubles: an in-memory remote filesystem and a scripted random source.
"""
import errno
import itertools
import posixpath
import random
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable

from pipeline.remote_channel import RemoteEntry, RemoteFileChannel

FIXED_NOW = datetime(2024, 5, 1, 10, 30, 15, tzinfo=timezone.utc)


class InMemoryChannel(RemoteFileChannel):
    """
    RemoteFileChannel backed by dicts. Records how many connections were
    opened and closed.

    fail_on maps an operation name ("connect", "get", "put", "rename", ...)
    to an exception raised the next time that operation runs.
    hooks maps an operation name to a callable run once, just before it.
    """

    label = "memory://partner"

    def __init__(self) -> None:
        super().__init__()
        self.files: dict[str, bytes] = {}
        self.mtimes: dict[str, int] = {}
        self.dirs: set[str] = {"/"}
        self.opened = 0
        self.closed = 0
        self.operations: list[tuple[str, str]] = []
        self.fail_on: dict[str, BaseException] = {}
        self.hooks: dict[str, Callable[["InMemoryChannel"], None]] = {}
        self._clock = itertools.count(1_700_000_000)

    # -- helpers for tests --------------------------------------------

    def add_dir(self, path: str) -> None:
        while path and path not in self.dirs:
            self.dirs.add(path)
            path = posixpath.dirname(path)

    def add_file(self, path: str, text: str) -> None:
        self.add_dir(posixpath.dirname(path))
        self.files[path] = text.encode("utf-8")
        self.mtimes[path] = next(self._clock)

    def read_text(self, path: str) -> str:
        return self.files[path].decode("utf-8")

    def _before(self, op: str, path: str) -> None:
        self.operations.append((op, path))
        hook = self.hooks.pop(op, None)
        if hook is not None:
            hook(self)
        exc = self.fail_on.pop(op, None)
        if exc is not None:
            raise exc

    @staticmethod
    def _missing(path: str) -> FileNotFoundError:
        return FileNotFoundError(errno.ENOENT, "No such file", path)

    # -- transport hooks ----------------------------------------------

    def _open(self) -> None:
        self._before("connect", self.label)
        self.opened += 1

    def _close(self) -> None:
        self.closed += 1

    def _listdir(self, directory: str) -> list[RemoteEntry]:
        self._before("list", directory)
        if directory not in self.dirs:
            raise self._missing(directory)
        entries = [self._stat(p) for p in self.files if posixpath.dirname(p) == directory]
        entries += [
            self._stat(d) for d in self.dirs
            if d != directory and posixpath.dirname(d) == directory
        ]
        return entries

    def _stat(self, path: str) -> RemoteEntry:
        name = posixpath.basename(path)
        if path in self.files:
            return RemoteEntry(
                name=name,
                size=len(self.files[path]),
                modify_time=datetime.fromtimestamp(self.mtimes[path], tz=timezone.utc),
            )
        if path in self.dirs:
            return RemoteEntry(name=name, size=0, modify_time=datetime.fromtimestamp(0, tz=timezone.utc), is_dir=True)
        raise self._missing(path)

    def _get(self, remote_path: str, local_path: str) -> None:
        self._before("get", remote_path)
        if remote_path not in self.files:
            raise self._missing(remote_path)
        Path(local_path).write_bytes(self.files[remote_path])

    def _put(self, local_path: str, remote_path: str) -> None:
        self._before("put", remote_path)
        if posixpath.dirname(remote_path) not in self.dirs:
            raise self._missing(remote_path)
        self.files[remote_path] = Path(local_path).read_bytes()
        self.mtimes[remote_path] = next(self._clock)

    def _mkdir(self, path: str) -> None:
        self._before("mkdir", path)
        if posixpath.dirname(path) not in self.dirs:
            raise self._missing(path)
        self.dirs.add(path)

    def _rename(self, src: str, dst: str) -> None:
        self._before("rename", src)
        if src not in self.files:
            raise self._missing(src)
        if dst in self.files or posixpath.dirname(dst) not in self.dirs:
            raise OSError(errno.EEXIST if dst in self.files else errno.ENOENT, "rename failed", dst)
        self.files[dst] = self.files.pop(src)
        self.mtimes[dst] = self.mtimes.pop(src)

    def _remove(self, path: str) -> None:
        self._before("remove", path)
        if path not in self.files:
            raise self._missing(path)
        del self.files[path]
        del self.mtimes[path]


class ScriptedRandom(random.Random):
    """
    Random source that returns pre-set values.

    random() pops from `draws` and falls back to `default` once they run
    out; uniform() pops from `uniforms` when given. choice() goes through
    random(), so with the default of 0.0 it always picks the first element.
    """

    def __init__(self, draws=(), uniforms=(), default: float = 0.0) -> None:
        self.draws = list(draws)
        self.uniforms = list(uniforms)
        self.default = default
        super().__init__(0)

    def random(self) -> float:
        return self.draws.pop(0) if self.draws else self.default

    def uniform(self, a: float, b: float) -> float:
        if self.uniforms:
            return self.uniforms.pop(0)
        return super().uniform(a, b)
