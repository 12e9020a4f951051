"""
Async filesystem primitives.

Blocking calls run in a worker thread via asyncio.to_thread so that tool
handlers never stall the event loop. OS errors are translated to the
FileAccessError family at this boundary.
"""

import asyncio
import errno
import os
import shutil
import stat as stat_module
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum

from toolrun.errors import FileReadError, FileWriteError, PathNotFoundError


class FileType(str, Enum):
    """Kind of filesystem entry."""

    FILE = "file"
    DIRECTORY = "dir"
    SYMLINK = "symlink"
    OTHER = "other"


@dataclass(frozen=True)
class FileStat:
    """Metadata of one entry (from lstat, so links are not followed)."""

    type: FileType
    size: int
    mtime: datetime
    atime: datetime


def file_type_of(mode: int) -> FileType:
    """Map an st_mode to a FileType."""
    if stat_module.S_ISLNK(mode):
        return FileType.SYMLINK
    if stat_module.S_ISDIR(mode):
        return FileType.DIRECTORY
    if stat_module.S_ISREG(mode):
        return FileType.FILE
    return FileType.OTHER


def _stat(path: str) -> FileStat:
    st = os.lstat(path)
    return FileStat(
        type=file_type_of(st.st_mode),
        size=st.st_size,
        mtime=datetime.fromtimestamp(st.st_mtime, UTC),
        atime=datetime.fromtimestamp(st.st_atime, UTC),
    )


def _read(path: str) -> str:
    with open(path, encoding="utf-8") as f:
        return f.read()


def _write(path: str, content: str) -> None:
    with open(path, "w", encoding="utf-8") as f:
        f.write(content)


def _remove(path: str, recursive: bool) -> None:
    if os.path.isdir(path) and not os.path.islink(path):
        if recursive:
            shutil.rmtree(path)
        else:
            os.rmdir(path)
    else:
        os.unlink(path)


def _rename(source: str, destination: str) -> None:
    try:
        os.replace(source, destination)
    except OSError as e:
        if e.errno != errno.EXDEV:
            raise
        shutil.move(source, destination)


def _copy(source: str, destination: str) -> None:
    if os.path.isdir(source) and not os.path.islink(source):
        shutil.copytree(source, destination, symlinks=True, dirs_exist_ok=True)
    else:
        shutil.copy2(source, destination, follow_symlinks=False)


class LocalFileSystem:
    """
    Filesystem collaborator used by the tools.

    All methods take absolute paths; resolution against a session's
    directory is the PathResolver's job.
    """

    async def exists(self, path: str) -> bool:
        return await asyncio.to_thread(os.path.lexists, path)

    async def stat(self, path: str) -> FileStat:
        """
        Raises:
            PathNotFoundError: If nothing exists at path
            FileReadError: If the entry cannot be inspected
        """
        try:
            return await asyncio.to_thread(_stat, path)
        except FileNotFoundError as e:
            raise PathNotFoundError(path=path) from e
        except OSError as e:
            raise FileReadError(path=path, underlying_error=e.strerror or str(e)) from e

    async def read_file_string(self, path: str) -> str:
        """
        Raises:
            PathNotFoundError: If the file does not exist
            FileReadError: If it cannot be read or is not UTF-8 text
        """
        try:
            return await asyncio.to_thread(_read, path)
        except FileNotFoundError as e:
            raise PathNotFoundError(path=path) from e
        except UnicodeDecodeError as e:
            raise FileReadError(path=path, underlying_error="not a UTF-8 text file") from e
        except OSError as e:
            raise FileReadError(path=path, underlying_error=e.strerror or str(e)) from e

    async def write_file_string(self, path: str, content: str) -> None:
        try:
            await asyncio.to_thread(_write, path, content)
        except OSError as e:
            raise FileWriteError(path=path, underlying_error=e.strerror or str(e)) from e

    async def make_directory(self, path: str, recursive: bool = False) -> None:
        try:
            if recursive:
                await asyncio.to_thread(os.makedirs, path, exist_ok=True)
            else:
                await asyncio.to_thread(os.mkdir, path)
        except OSError as e:
            raise FileWriteError(path=path, underlying_error=e.strerror or str(e)) from e

    async def remove(self, path: str, recursive: bool = False, force: bool = False) -> None:
        """
        Remove a file or directory.

        With force, a missing path is not an error; every other failure is.
        """
        try:
            await asyncio.to_thread(_remove, path, recursive)
        except FileNotFoundError as e:
            if force:
                return
            raise PathNotFoundError(path=path) from e
        except OSError as e:
            raise FileWriteError(path=path, underlying_error=e.strerror or str(e)) from e

    async def rename(self, source: str, destination: str) -> None:
        """Move source to destination; an existing file there is replaced in one step."""
        try:
            await asyncio.to_thread(_rename, source, destination)
        except FileNotFoundError as e:
            raise PathNotFoundError(path=source) from e
        except OSError as e:
            raise FileWriteError(path=destination, underlying_error=e.strerror or str(e)) from e

    async def copy(self, source: str, destination: str, overwrite: bool = False) -> None:
        if not overwrite and await self.exists(destination):
            raise FileWriteError(path=destination, underlying_error="destination exists")
        try:
            await asyncio.to_thread(_copy, source, destination)
        except FileNotFoundError as e:
            raise PathNotFoundError(path=source) from e
        except OSError as e:
            raise FileWriteError(path=destination, underlying_error=e.strerror or str(e)) from e
