"""
File storage collaborator – project files plus a soft-delete trash folder.

Every operation returns a :class:`~needlepoint.core.result.Result` instead of
raising; callers decide whether to log, notify or ignore a failure.
"""

from __future__ import annotations

import os
import shutil
import tempfile
from datetime import datetime
from logging import getLogger
from pathlib import Path, PurePosixPath
from typing import List, Protocol, runtime_checkable

from needlepoint.core.errors import StorageError
from needlepoint.core.result import Result

__all__ = ["Storage", "FileStorage", "TRASH_DIR", "validate_path"]

log = getLogger(__name__)

TRASH_DIR = ".needlepoint/trash"


@runtime_checkable
class Storage(Protocol):
    """What the engine needs from a storage backend."""

    def create_file(self, path: str) -> Result[None]: ...

    def write_file(self, path: str, content: str) -> Result[None]: ...

    def soft_delete(self, path: str) -> Result[str]: ...

    def restore(self, trash_handle: str, original_path: str) -> Result[None]: ...

    def rename(self, old_path: str, new_path: str) -> Result[None]: ...


# --------------------------------------------------------------------------- #
# Path validation
# --------------------------------------------------------------------------- #

def validate_path(root: Path, file_path: str) -> Path:
    """Return ``root / file_path`` or raise :class:`StorageError` if it escapes *root*."""
    if not file_path:
        raise StorageError("File path cannot be empty")
    if "\0" in file_path:
        raise StorageError("File path contains invalid characters")
    normalized = file_path.replace("\\", "/")
    pure = PurePosixPath(normalized)
    if pure.is_absolute() or Path(file_path).is_absolute():
        raise StorageError("Absolute paths are not allowed")
    if ".." in pure.parts:
        raise StorageError("Path cannot contain '..' (directory traversal not allowed)")

    full = root / pure
    resolved_root = root.resolve()
    try:
        full.resolve().relative_to(resolved_root)
    except ValueError:
        raise StorageError("Path resolves outside project directory") from None
    return full


def _trash_name(original_path: str) -> str:
    stamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
    return f"{stamp}_{original_path.replace('/', '_').replace(chr(92), '_')}"


def _atomic_write(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(content)
        os.replace(tmp, path)
    except BaseException:
        Path(tmp).unlink(missing_ok=True)
        raise


# --------------------------------------------------------------------------- #
# Filesystem implementation
# --------------------------------------------------------------------------- #

class FileStorage:  # noqa: D101
    def __init__(self, root: Path | str, trash_dir: str = TRASH_DIR):
        self.root = Path(root)
        self.trash_dir = self.root / trash_dir

    # -------------------------------------------------------------- #

    def _guard(self, op: str, func, *args) -> Result:
        try:
            return Result.success(func(*args))
        except StorageError as exc:
            log.warning("%s failed: %s", op, exc)
            return Result.failure(exc)
        except OSError as exc:
            err = StorageError(f"Failed to {op}: {exc}")
            log.warning("%s", err)
            return Result.failure(err)

    # -------------------------------------------------------------- #

    def create_file(self, path: str) -> Result[None]:
        """Create an empty file (and parents) unless it already exists."""

        def _create():
            full = validate_path(self.root, path)
            full.parent.mkdir(parents=True, exist_ok=True)
            if not full.exists():
                full.write_text("", encoding="utf-8")

        return self._guard("create file", _create)

    def write_file(self, path: str, content: str) -> Result[None]:
        return self._guard("write file", lambda: _atomic_write(validate_path(self.root, path), content))

    def soft_delete(self, path: str) -> Result[str]:
        """Move *path* into the trash; returns the trash handle ("" if nothing to move)."""

        def _delete() -> str:
            full = validate_path(self.root, path)
            if not full.exists():
                return ""
            self.trash_dir.mkdir(parents=True, exist_ok=True)
            handle = _trash_name(path)
            os.replace(full, self.trash_dir / handle)
            return handle

        return self._guard("move file to trash", _delete)

    def restore(self, trash_handle: str, original_path: str) -> Result[None]:
        def _restore():
            target = validate_path(self.root, original_path)
            if not trash_handle or "/" in trash_handle or "\\" in trash_handle:
                raise StorageError(f"Invalid trash handle '{trash_handle}'")
            src = self.trash_dir / trash_handle
            if not src.exists():
                raise StorageError("File not found in trash")
            target.parent.mkdir(parents=True, exist_ok=True)
            os.replace(src, target)

        return self._guard("restore file", _restore)

    def rename(self, old_path: str, new_path: str) -> Result[None]:
        def _rename():
            old = validate_path(self.root, old_path)
            new = validate_path(self.root, new_path)
            new.parent.mkdir(parents=True, exist_ok=True)
            if old.exists():
                os.replace(old, new)

        return self._guard("rename file", _rename)

    # -------------------------------------------------------------- #

    def delete_permanent(self, path: str) -> Result[None]:
        return self._guard("delete file", lambda: validate_path(self.root, path).unlink(missing_ok=True))

    def exists(self, path: str) -> Result[bool]:
        return self._guard("check file", lambda: validate_path(self.root, path).exists())

    def read_file(self, path: str) -> Result[str]:
        return self._guard("read file", lambda: validate_path(self.root, path).read_text(encoding="utf-8"))

    def list_trash(self) -> Result[List[str]]:
        def _list() -> List[str]:
            if not self.trash_dir.exists():
                return []
            return sorted(p.name for p in self.trash_dir.iterdir())

        return self._guard("list trash", _list)

    def empty_trash(self) -> Result[int]:
        """Permanently delete everything in the trash; returns the count removed."""

        def _empty() -> int:
            if not self.trash_dir.exists():
                return 0
            count = 0
            for entry in self.trash_dir.iterdir():
                if entry.is_dir():
                    shutil.rmtree(entry)
                else:
                    entry.unlink()
                count += 1
            return count

        return self._guard("empty trash", _empty)
