#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
ziptree: Recursive ZIP Packaging and Restoration of File Trees
==============================================================

Packs a file or a whole directory tree into a single ZIP archive and
rebuilds the tree from that archive, computing a running CRC-32 over every
file byte moved in either direction.

Quick Start:
-----------
    >>> from ziptree import compress, extract
    >>>
    >>> # Pack a tree; the return value is the CRC-32 of all file bytes
    >>> crc = compress("project/", "backup/project.zip")
    >>>
    >>> # Restore it somewhere else; same bytes, same CRC-32
    >>> assert extract("backup/project.zip", "restore/") == crc

Key Features:
------------
    ✓ Depth-first pre-order walk, one entry per file and directory
    ✓ Deflate at maximum compression level
    ✓ Streaming copy in 8 KiB chunks (files larger than RAM are fine)
    ✓ Hidden and read-only attributes of existing files survive overwrite
    ✓ Modification times restored from the archive
    ✓ xxHash tree fingerprints to verify a restored tree

Attribute Handling:
------------------
    When extraction overwrites a file that already exists, its attributes
    are relaxed only for the duration of the write, in this order:

        clear-hidden -> clear-readonly -> write -> restore-readonly -> restore-hidden

    Restoration runs on every exit path, including I/O failures.

CLI Usage:
---------
    $ python ziptree.py compress src/ out/src.zip
    $ python ziptree.py extract out/src.zip restored/
    $ python ziptree.py list out/src.zip
    $ python ziptree.py test out/src.zip
    $ python ziptree.py verify src/ restored/src
    $ python ziptree.py --help

Copyright:
---------
    Alejandro Sanchez (2024-2026)
    License: GPLv3+
"""

from __future__ import annotations

__version__ = "1.0.0"
__author__ = "Alejandro Sanchez"
__email__ = "alesangreat@gmail.com"
__license__ = "GPL-3.0-or-later"
__copyright__ = "Copyright (C) 2024-2026 Alejandro Sanchez"

# Public API exports
__all__ = [
    # Main operations
    'compress',
    'extract',
    'copy_stream',

    # Supplementary operations
    'list_archive',
    'checksum_archive',
    'tree_digests',
    'compare_trees',

    # Data structures
    'ArchiveEntry',
    'EntryKind',
    'AttributeSnapshot',
    'ArchiveStats',
    'TreeDiff',
    'Crc32Accumulator',
    'ChecksumAccumulator',

    # Attribute helpers
    'is_hidden',
    'set_hidden',
    'is_read_only',
    'set_writable',
    'relaxed_attributes',

    # Exceptions
    'ArchiveError',
    'SourceNotFoundError',
    'InvalidSourceError',
    'InvalidTargetError',
    'UnsafeEntryError',
    'ArchiveIOError',

    # Configuration
    'Config',
    'Colors',

    # Utility functions
    'entry_relative_path',
    'format_size',
    'format_time',

    # CLI
    'create_parser',
    'main',
]

import os
import sys
import stat
import time
import zlib
import logging
import argparse
import zipfile
from contextlib import contextmanager
from pathlib import Path, PurePosixPath
from typing import (
    Optional, List, Dict, Union, Any, Protocol, ClassVar, Iterator, Sequence
)
from enum import Enum
from dataclasses import dataclass, field

import xxhash

PathLike = Union[str, 'os.PathLike[str]']

if sys.platform == 'win32':
    import ctypes

    _kernel32: Any = ctypes.WinDLL('kernel32', use_last_error=True)  # type: ignore[attr-defined]
    _INVALID_FILE_ATTRIBUTES = 0xFFFFFFFF


# ============================================================================
# TYPE DEFINITIONS
# ============================================================================

class ChecksumAccumulator(Protocol):
    """Protocol for checksum accumulator objects."""
    def update(self, data: bytes) -> None: ...
    def digest(self) -> bytes: ...


class _WritableStream(Protocol):
    def write(self, data: bytes) -> Any: ...
    def flush(self) -> None: ...


class _ReadableStream(Protocol):
    def read(self, size: int = ...) -> bytes: ...


# ============================================================================
# GLOBAL CONFIGURATION
# ============================================================================

class Config:
    """
    Global configuration for ziptree behavior.

    Attributes:
        COPY_CHUNK_SIZE (int): Bytes moved per read/write in copy_stream
        COMPRESSION_LEVEL (int): Deflate level for new archives (9 = best)
        PRESERVE_DIR_TIMES (bool): Restore directory mtimes after extraction
        DIGEST_CHUNK_SIZE (int): Read size when fingerprinting trees
        USE_COLORS (bool): Enable colored terminal output (auto-detected)
        VERBOSE_LOGGING (bool): Enable verbose logging output

    Example:
        >>> Config.COPY_CHUNK_SIZE = 64 * 1024
        >>> Config.reset_defaults()
    """
    # Streaming settings
    COPY_CHUNK_SIZE: ClassVar[int] = 8192
    DIGEST_CHUNK_SIZE: ClassVar[int] = 1024 * 1024

    # Archive settings
    COMPRESSION_LEVEL: ClassVar[int] = zlib.Z_BEST_COMPRESSION
    PRESERVE_DIR_TIMES: ClassVar[bool] = True

    # UI settings
    USE_COLORS: ClassVar[bool] = True
    VERBOSE_LOGGING: ClassVar[bool] = False

    @classmethod
    def reset_defaults(cls) -> None:
        """Reset all configuration to default values."""
        defaults: Dict[str, object] = {
            "COPY_CHUNK_SIZE": 8192,
            "DIGEST_CHUNK_SIZE": 1024 * 1024,
            "COMPRESSION_LEVEL": zlib.Z_BEST_COMPRESSION,
            "PRESERVE_DIR_TIMES": True,
            "USE_COLORS": True,
            "VERBOSE_LOGGING": False,
        }
        for name, value in defaults.items():
            setattr(cls, name, value)


# ============================================================================
# UTILITY FUNCTIONS - Formatting and helpers
# ============================================================================

def format_size(size: int) -> str:
    """
    Format byte size in human-readable format.

    Example:
        >>> format_size(1234567890)
        '1.15 GB'
    """
    value = float(size)
    for unit in ('B', 'KB', 'MB', 'GB', 'TB'):
        if abs(value) < 1024.0:
            return f"{value:.2f} {unit}" if unit != 'B' else f"{int(value)} {unit}"
        value = value / 1024.0
    return f"{value:.2f} PB"


def format_time(seconds: float) -> str:
    """
    Format time duration in human-readable format.

    Example:
        >>> format_time(0.00123)
        '1.23ms'
    """
    if seconds < 0.001:
        return f"{seconds * 1000000:.0f}µs"
    elif seconds < 1.0:
        return f"{seconds * 1000:.2f}ms"
    elif seconds < 60:
        return f"{seconds:.2f}s"
    else:
        minutes = int(seconds // 60)
        secs = seconds % 60
        return f"{minutes}m {secs:.1f}s"


# ============================================================================
# TERMINAL COLORS - For CLI output (auto-detects TTY)
# ============================================================================

class Colors:
    """
    ANSI color codes for terminal output.

    Automatically disabled on non-TTY terminals (pipes, redirects) or when
    Config.USE_COLORS = False.

    Example:
        >>> print(Colors.success("Archive written"))
        ✓ Archive written
    """
    _RESET = '\033[0m'
    _BOLD = '\033[1m'
    _DIM = '\033[2m'
    _RED = '\033[91m'
    _GREEN = '\033[92m'
    _YELLOW = '\033[93m'
    _BLUE = '\033[94m'

    @classmethod
    def _is_enabled(cls) -> bool:
        """Check if colors should be enabled."""
        if not Config.USE_COLORS:
            return False
        return hasattr(sys.stdout, 'isatty') and sys.stdout.isatty()

    @classmethod
    def success(cls, text: str) -> str:
        """Format text as success (green with checkmark)."""
        if cls._is_enabled():
            return f"{cls._GREEN}✓{cls._RESET} {text}"
        return f"[OK] {text}"

    @classmethod
    def error(cls, text: str) -> str:
        """Format text as error (red with X)."""
        if cls._is_enabled():
            return f"{cls._RED}✗{cls._RESET} {text}"
        return f"[ERROR] {text}"

    @classmethod
    def warning(cls, text: str) -> str:
        """Format text as warning (yellow with !)."""
        if cls._is_enabled():
            return f"{cls._YELLOW}⚠{cls._RESET} {text}"
        return f"[WARN] {text}"

    @classmethod
    def info(cls, text: str) -> str:
        """Format text as info (blue with i)."""
        if cls._is_enabled():
            return f"{cls._BLUE}ℹ{cls._RESET} {text}"
        return f"[INFO] {text}"

    @classmethod
    def bold(cls, text: str) -> str:
        if cls._is_enabled():
            return f"{cls._BOLD}{text}{cls._RESET}"
        return text

    @classmethod
    def dim(cls, text: str) -> str:
        if cls._is_enabled():
            return f"{cls._DIM}{text}{cls._RESET}"
        return text


# ============================================================================
# CUSTOM EXCEPTIONS - Hierarchical exception system
# ============================================================================

class ArchiveError(Exception):
    """
    Base exception for all ziptree errors.

    Attributes:
        message: Human-readable error description
        code: Numeric error code, used as the CLI exit status

    Example:
        >>> raise ArchiveError("Operation failed", code=1)
    """
    def __init__(self, message: str, code: int = 1) -> None:
        super().__init__(message)
        self.message = message
        self.code = code

    def __str__(self) -> str:
        return self.message


class SourceNotFoundError(ArchiveError):
    """Raised when the tree to compress does not exist."""
    def __init__(self, message: str) -> None:
        super().__init__(message, code=2)


class InvalidSourceError(ArchiveError):
    """Raised when the archive to read is missing or is a directory."""
    def __init__(self, message: str) -> None:
        super().__init__(message, code=3)


class InvalidTargetError(ArchiveError):
    """
    Raised when an output path exists with the wrong type.

    A directory where the archive file should go, or a regular file where
    the extraction root should go.
    """
    def __init__(self, message: str) -> None:
        super().__init__(message, code=4)


class UnsafeEntryError(ArchiveError):
    """Raised when an entry name would resolve outside the extraction root."""
    def __init__(self, message: str) -> None:
        super().__init__(message, code=5)


class ArchiveIOError(ArchiveError):
    """
    Raised for I/O failures while reading or writing.

    This wraps OS-level file errors and corrupt-archive errors; the original
    exception is chained as ``__cause__``.
    """
    def __init__(self, message: str) -> None:
        super().__init__(message, code=6)


# ============================================================================
# LOGGING CONFIGURATION
# ============================================================================

_default_log_level = logging.INFO if Config.VERBOSE_LOGGING else logging.WARNING
logger = logging.getLogger('ziptree')
logger.setLevel(_default_log_level)


# ============================================================================
# DATA STRUCTURES
# ============================================================================

class EntryKind(Enum):
    """Tagged variant driving both the writer and the reader."""
    FILE = "file"
    DIRECTORY = "directory"


@dataclass(frozen=True)
class ArchiveEntry:
    """
    One named record inside the archive.

    Attributes:
        name: Forward-slash relative path; directories end with '/'
        kind: EntryKind.FILE or EntryKind.DIRECTORY
        size: Uncompressed size in bytes (0 for directories)
        mtime: Modification time as a POSIX timestamp
    """
    name: str
    kind: EntryKind
    size: int = 0
    mtime: float = 0.0

    @property
    def is_dir(self) -> bool:
        return self.kind is EntryKind.DIRECTORY

    @classmethod
    def from_zipinfo(cls, info: zipfile.ZipInfo) -> 'ArchiveEntry':
        """Build an entry from the container's metadata record."""
        kind = EntryKind.DIRECTORY if info.is_dir() else EntryKind.FILE
        return cls(
            name=info.filename,
            kind=kind,
            size=0 if kind is EntryKind.DIRECTORY else info.file_size,
            mtime=_zipinfo_mtime(info),
        )


@dataclass
class ArchiveStats:
    """Counters for one compress/extract/test call."""
    files: int = 0
    directories: int = 0
    bytes_copied: int = 0
    elapsed: float = 0.0

    @property
    def throughput(self) -> float:
        """Bytes per second, 0.0 when nothing was timed."""
        return self.bytes_copied / self.elapsed if self.elapsed > 0 else 0.0

    def print_stats(self, stream: Any = None) -> None:
        """Print statistics in a compact table."""
        out = stream if stream is not None else sys.stdout
        print(f"\nNumber of files:       {self.files:,}", file=out)
        print(f"Number of directories: {self.directories:,}", file=out)
        print(f"Total file size:       {format_size(self.bytes_copied)}", file=out)
        print(f"Time elapsed:          {format_time(self.elapsed)}", file=out)
        print(file=out)


@dataclass(frozen=True)
class AttributeSnapshot:
    """
    Hidden/read-only state of a pre-existing destination file.

    ``mode`` keeps the full permission bits so restoring read-only puts back
    exactly what was there instead of guessing which write bits to drop.
    ``flag_hidden`` is the settable hidden attribute alone; a dot-prefixed
    name makes ``hidden`` true without it.
    """
    hidden: bool
    read_only: bool
    mode: int
    flag_hidden: bool = False

    @classmethod
    def capture(cls, path: PathLike) -> 'AttributeSnapshot':
        st = os.stat(path)
        return cls(
            hidden=is_hidden(path),
            read_only=not (st.st_mode & stat.S_IWUSR),
            mode=stat.S_IMODE(st.st_mode),
            flag_hidden=_hidden_flag_set(st),
        )


@dataclass
class TreeDiff:
    """Differences between two trees, keyed by forward-slash relative path."""
    missing: List[str] = field(default_factory=list)
    extra: List[str] = field(default_factory=list)
    changed: List[str] = field(default_factory=list)

    @property
    def identical(self) -> bool:
        return not (self.missing or self.extra or self.changed)


# ============================================================================
# CHECKSUM AND STREAMING COPY
# ============================================================================

class Crc32Accumulator:
    """
    Running CRC-32 over every chunk fed to it.

    Created at the start of one compress/extract call and discarded after
    its value is returned.

    Example:
        >>> crc = Crc32Accumulator()
        >>> crc.update(b"hello")
        >>> hex(crc.value)
        '0x3610a686'
    """

    def __init__(self) -> None:
        self._value = 0

    def update(self, data: bytes) -> None:
        self._value = zlib.crc32(data, self._value)

    @property
    def value(self) -> int:
        return self._value & 0xFFFFFFFF

    def digest(self) -> bytes:
        return self.value.to_bytes(4, 'big')

    def hexdigest(self) -> str:
        return f"{self.value:08x}"

    def __repr__(self) -> str:
        return f"Crc32Accumulator(value=0x{self.value:08x})"


def copy_stream(source: _ReadableStream, destination: _WritableStream,
                checksum: ChecksumAccumulator, chunk_size: Optional[int] = None) -> int:
    """
    Copy the remaining content of ``source`` into ``destination``.

    Every chunk written is folded into ``checksum``; ``destination`` is
    flushed at end-of-stream. Neither stream is closed.

    Args:
        source: Readable binary stream
        destination: Writable binary stream
        checksum: Accumulator updated with each chunk
        chunk_size: Bytes per read (defaults to Config.COPY_CHUNK_SIZE)

    Returns:
        Number of bytes copied
    """
    size = chunk_size or Config.COPY_CHUNK_SIZE
    total = 0
    while True:
        chunk = source.read(size)
        if not chunk:
            break
        destination.write(chunk)
        checksum.update(chunk)
        total += len(chunk)
    destination.flush()
    return total


class _NullSink:
    """Write target that discards everything (archive test mode)."""

    def write(self, data: bytes) -> int:
        return len(data)

    def flush(self) -> None:
        pass


# ============================================================================
# FILESYSTEM ATTRIBUTES - Hidden / read-only / times
# ============================================================================

def _has_hidden_flag() -> bool:
    """True where hiding is a settable attribute rather than a naming convention."""
    return sys.platform == 'win32' or (hasattr(os, 'chflags') and hasattr(stat, 'UF_HIDDEN'))


def _hidden_flag_set(st: os.stat_result) -> bool:
    """True if the settable hidden attribute (not the name) is on."""
    if sys.platform == 'win32':
        return bool(getattr(st, 'st_file_attributes', 0) & stat.FILE_ATTRIBUTE_HIDDEN)
    return bool(getattr(st, 'st_flags', 0) & stat.UF_HIDDEN)


def is_hidden(path: PathLike) -> bool:
    """
    Report whether ``path`` is hidden on this platform.

    Windows uses FILE_ATTRIBUTE_HIDDEN, BSD/macOS the UF_HIDDEN flag; a
    leading dot in the name counts everywhere except Windows.
    """
    if _hidden_flag_set(os.stat(path)):
        return True
    if sys.platform == 'win32':
        return False
    return os.path.basename(os.path.abspath(path)).startswith('.')


def set_hidden(path: PathLike, hidden: bool) -> None:
    """
    Set or clear the hidden attribute of ``path``.

    Without a settable flag (Linux) hidden means a dot-prefixed name,
    which is left untouched.
    """
    if sys.platform == 'win32':
        attrs = _kernel32.GetFileAttributesW(str(path))
        if attrs == _INVALID_FILE_ATTRIBUTES:
            raise ctypes.WinError(ctypes.get_last_error())  # type: ignore[attr-defined]
        if hidden:
            attrs |= stat.FILE_ATTRIBUTE_HIDDEN
        else:
            attrs &= ~stat.FILE_ATTRIBUTE_HIDDEN
        if not _kernel32.SetFileAttributesW(str(path), attrs):
            raise ctypes.WinError(ctypes.get_last_error())  # type: ignore[attr-defined]
        return
    if _has_hidden_flag():
        flags = os.stat(path).st_flags  # type: ignore[attr-defined]
        flags = (flags | stat.UF_HIDDEN) if hidden else (flags & ~stat.UF_HIDDEN)
        os.chflags(path, flags)  # type: ignore[attr-defined]


def is_read_only(path: PathLike) -> bool:
    return not (os.stat(path).st_mode & stat.S_IWUSR)


def set_writable(path: PathLike, writable: bool) -> None:
    """Grant or revoke owner write permission (the read-only attribute on Windows)."""
    mode = stat.S_IMODE(os.stat(path).st_mode)
    os.chmod(path, (mode | stat.S_IWUSR) if writable else (mode & ~stat.S_IWUSR))


@contextmanager
def relaxed_attributes(path: PathLike) -> Iterator[AttributeSnapshot]:
    """
    Make an existing file writable for the duration of the block.

    Sequence: clear-hidden, clear-readonly, body, restore-readonly,
    restore-hidden. Both restores run even when the body raises. Only the
    settable hidden flag is toggled; a dot-prefixed name needs nothing.

    Yields:
        The AttributeSnapshot taken before anything was changed
    """
    snapshot = AttributeSnapshot.capture(path)
    if snapshot.flag_hidden:
        set_hidden(path, False)
    try:
        if snapshot.read_only:
            set_writable(path, True)
        try:
            yield snapshot
        finally:
            if snapshot.read_only:
                os.chmod(path, snapshot.mode)
    finally:
        if snapshot.flag_hidden:
            set_hidden(path, True)


def _set_mtime(path: PathLike, mtime: float) -> None:
    st = os.stat(path)
    os.utime(path, (st.st_atime, mtime))


def _zipinfo_mtime(info: zipfile.ZipInfo) -> float:
    # ZIP stores local wall-clock time with 2-second resolution
    return time.mktime(info.date_time + (0, 0, -1))


# ============================================================================
# ENTRY NAMES
# ============================================================================

def entry_relative_path(name: str) -> str:
    """
    Convert a stored entry name to a host-relative path.

    Both '/' and '\\' are accepted as delimiters; the result uses os.sep
    and has no trailing separator.

    Raises:
        UnsafeEntryError: For empty, absolute, drive-qualified or '..' names
    """
    normalized = name.replace('\\', '/')
    posix = PurePosixPath(normalized)
    if posix.is_absolute() or (len(normalized) >= 2 and normalized[1] == ':'):
        raise UnsafeEntryError(f"Absolute entry name not allowed: {name!r}")

    parts: List[str] = []
    for part in posix.parts:
        if part in ('', '.'):
            continue
        if part == '..':
            raise UnsafeEntryError(f"Entry name escapes the target directory: {name!r}")
        parts.append(part)

    if not parts:
        raise UnsafeEntryError(f"Empty entry name: {name!r}")
    return os.sep.join(parts)


def _zipinfo_for(path: Path, name: str) -> zipfile.ZipInfo:
    # from_file appends '/' for directories and clamps pre-1980 mtimes
    info = zipfile.ZipInfo.from_file(path, name, strict_timestamps=False)
    if not info.is_dir():
        info.compress_type = zipfile.ZIP_DEFLATED
        # ZipFile.open(info, 'w') reads the level from the ZipInfo, not the ZipFile
        if hasattr(info, 'compress_level'):
            info.compress_level = Config.COMPRESSION_LEVEL
        else:
            info._compresslevel = Config.COMPRESSION_LEVEL  # type: ignore[attr-defined]
    return info


# ============================================================================
# ARCHIVE WRITER
# ============================================================================

def compress(input_path: PathLike, output_path: PathLike,
             stats: Optional[ArchiveStats] = None) -> int:
    """
    Compress a file or directory tree into a ZIP archive.

    Args:
        input_path: File or directory to pack
        output_path: Archive file to create or overwrite
        stats: Optional ArchiveStats filled in during the walk

    Returns:
        CRC-32 of every file byte written, in traversal order

    Raises:
        SourceNotFoundError: If input_path does not exist
        InvalidTargetError: If output_path is an existing directory
        ArchiveIOError: On any read/write failure (a truncated archive may remain)
    """
    source = Path(input_path)
    target = Path(output_path)

    if not source.exists():
        raise SourceNotFoundError(f"{source.name or source} does not exist!")
    if target.exists():
        if target.is_dir():
            raise InvalidTargetError(f"\"{target.absolute()}\" is not a file!")
    else:
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.touch()
        except OSError as e:
            raise ArchiveIOError(f"Cannot create archive {target}: {e}") from e

    checksum = Crc32Accumulator()
    stats = stats if stats is not None else ArchiveStats()
    skip = target.resolve()
    start = time.perf_counter()

    logger.info(f"Compressing {source} -> {target}")
    try:
        with zipfile.ZipFile(target, 'w', compression=zipfile.ZIP_DEFLATED,
                             compresslevel=Config.COMPRESSION_LEVEL) as zf:
            # abspath collapses '.'/'..' without following a symlinked input
            root_name = Path(os.path.abspath(source)).name
            if root_name:
                _compress_node(zf, source, root_name, checksum, stats, skip)
            else:
                # Filesystem root: no name to nest under
                for child in sorted(source.iterdir()):
                    if child.resolve() != skip:
                        _compress_node(zf, child, child.name, checksum, stats, skip)
    except (OSError, RecursionError) as e:
        # RecursionError: a directory symlink loop
        raise ArchiveIOError(f"Cannot write archive {target}: {e}") from e

    stats.elapsed = time.perf_counter() - start
    logger.info(
        f"Compressed {stats.files} files, {stats.directories} directories, "
        f"{format_size(stats.bytes_copied)} in {format_time(stats.elapsed)} "
        f"(crc32={checksum.hexdigest()})"
    )
    return checksum.value


def _compress_node(zf: zipfile.ZipFile, path: Path, name: str,
                   checksum: Crc32Accumulator, stats: ArchiveStats, skip: Path) -> None:
    """Add ``path`` as ``name`` and recurse into directories (pre-order)."""
    if path.is_dir():
        zf.writestr(_zipinfo_for(path, name), b'')
        stats.directories += 1
        logger.debug(f"adding {name}/")
        for child in sorted(path.iterdir()):
            if child.resolve() == skip:
                logger.debug(f"skipping archive being written: {child}")
                continue
            _compress_node(zf, child, f"{name}/{child.name}", checksum, stats, skip)
        return

    info = _zipinfo_for(path, name)
    logger.debug(f"adding {name} ({info.file_size:,} bytes)")
    with open(path, 'rb') as src, zf.open(info, 'w') as dst:
        stats.bytes_copied += copy_stream(src, dst, checksum)
    stats.files += 1


# ============================================================================
# ARCHIVE READER
# ============================================================================

def _check_archive_source(archive: Path) -> None:
    if not archive.exists():
        raise InvalidSourceError(f"\"{archive.absolute()}\" does not exist!")
    if archive.is_dir():
        raise InvalidSourceError(f"\"{archive.absolute()}\" is not a file!")


def extract(input_path: PathLike, output_path: PathLike,
            stats: Optional[ArchiveStats] = None) -> int:
    """
    Extract a ZIP archive into a directory.

    Existing files are overwritten; their hidden and read-only attributes
    are restored after the write. Every extracted file gets the entry's
    modification time.

    Args:
        input_path: Archive to read
        output_path: Root directory of the restored tree (created if missing)
        stats: Optional ArchiveStats filled in during extraction

    Returns:
        CRC-32 of every file byte read, in archive order

    Raises:
        InvalidSourceError: If input_path is missing or a directory
        InvalidTargetError: If output_path is an existing regular file
        UnsafeEntryError: If an entry name escapes output_path
        ArchiveIOError: On any I/O failure or a corrupt archive
    """
    archive = Path(input_path)
    root = Path(output_path)

    _check_archive_source(archive)
    if root.exists() and root.is_file():
        raise InvalidTargetError(f"\"{root.absolute()}\" is not a directory!")

    checksum = Crc32Accumulator()
    stats = stats if stats is not None else ArchiveStats()
    pending_dirs: Dict[Path, float] = {}
    start = time.perf_counter()

    logger.info(f"Extracting {archive} -> {root}")
    try:
        with zipfile.ZipFile(archive, 'r') as zf:
            for info in zf.infolist():
                _extract_entry(zf, info, root, checksum, stats, pending_dirs)
        if Config.PRESERVE_DIR_TIMES:
            _apply_directory_times(pending_dirs)
    except zipfile.BadZipFile as e:
        raise ArchiveIOError(f"Corrupt archive {archive}: {e}") from e
    except OSError as e:
        raise ArchiveIOError(f"Cannot extract {archive}: {e}") from e

    stats.elapsed = time.perf_counter() - start
    logger.info(
        f"Extracted {stats.files} files, {stats.directories} directories, "
        f"{format_size(stats.bytes_copied)} in {format_time(stats.elapsed)} "
        f"(crc32={checksum.hexdigest()})"
    )
    return checksum.value


def _extract_entry(zf: zipfile.ZipFile, info: zipfile.ZipInfo, root: Path,
                   checksum: Crc32Accumulator, stats: ArchiveStats,
                   pending_dirs: Dict[Path, float]) -> None:
    target = root / entry_relative_path(info.filename)
    mtime = _zipinfo_mtime(info)

    if info.is_dir():
        target.mkdir(parents=True, exist_ok=True)
        pending_dirs[target] = mtime
        stats.directories += 1
        logger.debug(f"created {target}")
        return

    if target.is_dir():
        raise ArchiveIOError(f"Cannot overwrite directory {target} with file entry {info.filename}")

    if target.exists():
        with relaxed_attributes(target) as snapshot:
            logger.debug(
                f"overwriting {target} (hidden={snapshot.hidden}, read_only={snapshot.read_only})"
            )
            stats.bytes_copied += _write_entry(zf, info, target, checksum)
    else:
        target.parent.mkdir(parents=True, exist_ok=True)
        logger.debug(f"creating {target}")
        stats.bytes_copied += _write_entry(zf, info, target, checksum)

    _set_mtime(target, mtime)
    stats.files += 1


def _write_entry(zf: zipfile.ZipFile, info: zipfile.ZipInfo, target: Path,
                 checksum: Crc32Accumulator) -> int:
    with zf.open(info, 'r') as src, open(target, 'wb') as dst:
        return copy_stream(src, dst, checksum)


def _apply_directory_times(pending_dirs: Dict[Path, float]) -> None:
    # Deepest first so setting a child's time doesn't touch an already-set parent
    for path, mtime in sorted(pending_dirs.items(), key=lambda kv: len(kv[0].parts), reverse=True):
        _set_mtime(path, mtime)


# ============================================================================
# SUPPLEMENTARY OPERATIONS - listing, testing, verification
# ============================================================================

def list_archive(input_path: PathLike) -> List[ArchiveEntry]:
    """Return the archive's entries in stored order without extracting."""
    archive = Path(input_path)
    _check_archive_source(archive)
    try:
        with zipfile.ZipFile(archive, 'r') as zf:
            return [ArchiveEntry.from_zipinfo(info) for info in zf.infolist()]
    except zipfile.BadZipFile as e:
        raise ArchiveIOError(f"Corrupt archive {archive}: {e}") from e
    except OSError as e:
        raise ArchiveIOError(f"Cannot read archive {archive}: {e}") from e


def checksum_archive(input_path: PathLike, stats: Optional[ArchiveStats] = None) -> int:
    """
    Read every file entry and return the CRC-32 extract() would report.

    Nothing is written to disk. A damaged entry surfaces as ArchiveIOError.
    """
    archive = Path(input_path)
    _check_archive_source(archive)

    checksum = Crc32Accumulator()
    stats = stats if stats is not None else ArchiveStats()
    sink = _NullSink()
    start = time.perf_counter()
    try:
        with zipfile.ZipFile(archive, 'r') as zf:
            for info in zf.infolist():
                if info.is_dir():
                    stats.directories += 1
                    continue
                with zf.open(info, 'r') as src:
                    stats.bytes_copied += copy_stream(src, sink, checksum)
                stats.files += 1
    except zipfile.BadZipFile as e:
        raise ArchiveIOError(f"Corrupt archive {archive}: {e}") from e
    except OSError as e:
        raise ArchiveIOError(f"Cannot read archive {archive}: {e}") from e
    stats.elapsed = time.perf_counter() - start
    return checksum.value


def _file_digest(path: Path) -> str:
    hasher = xxhash.xxh3_64()
    with open(path, 'rb') as f:
        while True:
            chunk = f.read(Config.DIGEST_CHUNK_SIZE)
            if not chunk:
                break
            hasher.update(chunk)
    return hasher.hexdigest()


def tree_digests(root: PathLike) -> Dict[str, str]:
    """
    Fingerprint every file under ``root`` with XXH3-64.

    Keys are forward-slash paths relative to ``root``. Directories map to an
    empty string so empty directories still count. A plain file yields a
    single key, its own name.
    """
    base = Path(root)
    if not base.exists():
        raise SourceNotFoundError(f"{base} does not exist!")
    if not base.is_dir():
        try:
            return {base.name: _file_digest(base)}
        except OSError as e:
            raise ArchiveIOError(f"Cannot read {base}: {e}") from e

    digests: Dict[str, str] = {}
    try:
        for dirpath, dirnames, filenames in os.walk(base):
            dirnames.sort()
            current = Path(dirpath)
            for name in dirnames:
                digests[(current / name).relative_to(base).as_posix()] = ''
            for name in sorted(filenames):
                path = current / name
                digests[path.relative_to(base).as_posix()] = _file_digest(path)
    except OSError as e:
        raise ArchiveIOError(f"Cannot read {base}: {e}") from e
    return digests


def compare_trees(left: PathLike, right: PathLike) -> TreeDiff:
    """
    Compare two trees by content.

    ``missing`` lists paths only in ``left``, ``extra`` paths only in
    ``right``, ``changed`` paths whose content differs.
    """
    lhs = tree_digests(left)
    rhs = tree_digests(right)
    return TreeDiff(
        missing=sorted(set(lhs) - set(rhs)),
        extra=sorted(set(rhs) - set(lhs)),
        changed=sorted(k for k in set(lhs) & set(rhs) if lhs[k] != rhs[k]),
    )


# ============================================================================
# CLI - Command-Line Interface
# ============================================================================

def _print_checksum(label: str, value: int) -> None:
    print(f"  {label:<10} {value:08x} ({value})")


def _run_guarded(args: Any, action: Any) -> int:
    """Run a CLI action, mapping exceptions to exit codes."""
    try:
        return int(action(args))
    except ArchiveError as e:
        print(Colors.error(str(e)), file=sys.stderr)
        if e.__cause__ is not None:
            logger.debug("caused by", exc_info=e.__cause__)
        return e.code
    except KeyboardInterrupt:
        print(Colors.warning("\nOperation cancelled by user"), file=sys.stderr)
        return 130


def cli_compress(args: Any) -> int:
    """Pack SOURCE into ARCHIVE."""
    stats = ArchiveStats()
    if not args.quiet:
        print(Colors.info(f"Compressing {Colors.bold(args.source)} -> {Colors.bold(args.archive)}"))
    crc = compress(args.source, args.archive, stats=stats)
    if not args.quiet:
        print(Colors.success(f"Archive written: {args.archive}"))
        _print_checksum("CRC-32:", crc)
    if args.stats:
        stats.print_stats()
    return 0


def cli_extract(args: Any) -> int:
    """Restore ARCHIVE under DEST."""
    stats = ArchiveStats()
    if not args.quiet:
        print(Colors.info(f"Extracting {Colors.bold(args.archive)} -> {Colors.bold(args.dest)}"))
    crc = extract(args.archive, args.dest, stats=stats)
    if not args.quiet:
        print(Colors.success(f"Tree restored: {args.dest}"))
        _print_checksum("CRC-32:", crc)
    if args.stats:
        stats.print_stats()
    return 0


def cli_list(args: Any) -> int:
    """Print the entries of ARCHIVE."""
    for entry in list_archive(args.archive):
        stamp = time.strftime('%Y-%m-%d %H:%M:%S', time.localtime(entry.mtime))
        size = '' if entry.is_dir else f"{entry.size:,}"
        print(f"{size:>14}  {stamp}  {entry.name}")
    return 0


def cli_test(args: Any) -> int:
    """Read every entry of ARCHIVE and report its checksum."""
    stats = ArchiveStats()
    crc = checksum_archive(args.archive, stats=stats)
    if not args.quiet:
        print(Colors.success(f"No errors detected in {args.archive}"))
        _print_checksum("CRC-32:", crc)
    if args.stats:
        stats.print_stats()
    return 0


def cli_verify(args: Any) -> int:
    """Compare two trees by content; exit 1 if they differ."""
    diff = compare_trees(args.left, args.right)
    if diff.identical:
        if not args.quiet:
            print(Colors.success("Trees are identical"))
        return 0
    for path in diff.missing:
        print(f"- {path}")
    for path in diff.extra:
        print(f"+ {path}")
    for path in diff.changed:
        print(f"~ {path}")
    if not args.quiet:
        print(Colors.warning(
            f"{len(diff.missing)} missing, {len(diff.extra)} extra, {len(diff.changed)} changed"
        ))
    return 1


def create_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the ziptree CLI."""
    parser = argparse.ArgumentParser(
        prog='ziptree',
        description='Pack file trees into ZIP archives and restore them, with CRC-32 checksums.',
    )
    parser.add_argument('--version', action='version', version=f"%(prog)s {__version__}")
    parser.add_argument('-v', '--verbose', action='count', default=0,
                        help='increase logging verbosity (-vv for debug)')
    parser.add_argument('-q', '--quiet', action='store_true', help='suppress informational output')
    parser.add_argument('--no-color', action='store_true', help='disable colored output')
    parser.add_argument('--stats', action='store_true', help='print file and byte counts')

    sub = parser.add_subparsers(dest='command', metavar='COMMAND')
    sub.required = True

    p = sub.add_parser('compress', help='pack a file or directory into an archive')
    p.add_argument('source', help='file or directory to pack')
    p.add_argument('archive', help='archive file to write')
    p.set_defaults(func=cli_compress)

    p = sub.add_parser('extract', help='restore an archive into a directory')
    p.add_argument('archive', help='archive file to read')
    p.add_argument('dest', help='directory to extract into')
    p.set_defaults(func=cli_extract)

    p = sub.add_parser('list', help='list archive entries')
    p.add_argument('archive', help='archive file to read')
    p.set_defaults(func=cli_list)

    p = sub.add_parser('test', help='read all entries and print the checksum')
    p.add_argument('archive', help='archive file to read')
    p.set_defaults(func=cli_test)

    p = sub.add_parser('verify', help='compare two trees by content')
    p.add_argument('left', help='reference tree')
    p.add_argument('right', help='tree to check')
    p.set_defaults(func=cli_verify)

    return parser


def _configure_logging(verbosity: int) -> None:
    if verbosity >= 2:
        level = logging.DEBUG
    elif verbosity == 1 or Config.VERBOSE_LOGGING:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(level=level, format='%(asctime)s - %(levelname)s - %(message)s')
    logger.setLevel(level)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """
    Main CLI entry point.

    Returns:
        Exit code (0 for success, ArchiveError.code on failure)
    """
    parser = create_parser()
    args = parser.parse_args(argv)
    if args.no_color:
        Config.USE_COLORS = False
    _configure_logging(args.verbose)
    return _run_guarded(args, args.func)


# Entry point when run as script
if __name__ == "__main__":
    sys.exit(main())
