"""
File operations for the file-backed store.

Provides:
- Atomic writes using temp file + rename
- Reads that treat a missing file as an absent value
- Directory listing by suffix
"""

import errno
import os
import tempfile
from pathlib import Path

import aiofiles
import aiofiles.os

from ..exceptions import StorageError, StoreQuotaExceededError


async def ensure_directory(path: Path) -> None:
    """Ensure directory exists, creating if necessary.

    Args:
        path: Directory path to ensure exists
    """
    try:
        await aiofiles.os.makedirs(path, exist_ok=True)
    except OSError as e:
        raise StorageError("create_directory", str(path), e) from e


async def read_text(path: Path) -> str | None:
    """Read a UTF-8 text file.

    Args:
        path: Path to the file

    Returns:
        File content or None if the file doesn't exist
    """
    try:
        async with aiofiles.open(path, encoding="utf-8") as f:
            return await f.read()
    except FileNotFoundError:
        return None
    except (OSError, UnicodeDecodeError) as e:
        raise StorageError("read", str(path), e) from e


async def write_text_atomic(path: Path, content: str, mode: int | None = None) -> None:
    """Write a text file atomically using temp file + rename.

    Args:
        path: Target path
        content: Text to write
        mode: Optional permission bits applied before the rename

    Raises:
        StoreQuotaExceededError: If the device is out of space
        StorageError: On any other I/O failure
    """
    await ensure_directory(path.parent)

    fd, temp_path = tempfile.mkstemp(dir=path.parent, prefix=".tmp_", suffix=".item")
    try:
        os.close(fd)
        async with aiofiles.open(temp_path, "w", encoding="utf-8") as f:
            await f.write(content)
            await f.flush()
            os.fsync(f.fileno())
        if mode is not None:
            os.chmod(temp_path, mode)

        await aiofiles.os.rename(temp_path, path)
    except Exception as e:
        try:
            await aiofiles.os.remove(temp_path)
        except OSError:
            pass
        if isinstance(e, OSError) and e.errno == errno.ENOSPC:
            raise StoreQuotaExceededError(path.stem) from e
        raise StorageError("write", str(path), e) from e


async def remove_file(path: Path) -> bool:
    """Remove a file if it exists.

    Returns:
        True if the file was removed, False if it didn't exist
    """
    try:
        await aiofiles.os.remove(path)
        return True
    except FileNotFoundError:
        return False
    except OSError as e:
        raise StorageError("remove", str(path), e) from e


async def file_size(path: Path) -> int:
    """Size of a file in bytes, 0 when missing."""
    try:
        stat = await aiofiles.os.stat(path)
        return stat.st_size
    except FileNotFoundError:
        return 0
    except OSError as e:
        raise StorageError("stat", str(path), e) from e


async def list_files(path: Path, suffix: str) -> list[Path]:
    """List regular files in a directory with the given suffix.

    Hidden files (leading dot) are skipped.
    """
    try:
        if not await aiofiles.os.path.exists(path):
            return []

        entries = await aiofiles.os.listdir(path)
        files = []
        for entry in sorted(entries):
            if entry.startswith(".") or not entry.endswith(suffix):
                continue
            entry_path = path / entry
            if await aiofiles.os.path.isfile(entry_path):
                files.append(entry_path)
        return files
    except OSError as e:
        raise StorageError("list", str(path), e) from e
