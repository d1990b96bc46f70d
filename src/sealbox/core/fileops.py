""" File helpers: input/output validation and atomic publishing of results. """

from __future__ import annotations

import logging
import os
import secrets
from contextlib import contextmanager
from pathlib import Path
from typing import BinaryIO, Iterator, Tuple

from .exceptions import (
    DestinationNotWritableError,
    IOFailureError,
    SealBoxError,
    SourceNotFoundError,
)


logger = logging.getLogger(__name__)

TEMP_SUFFIX = ".tmp"


def check_source(path: str | os.PathLike) -> Path:
    # The source has to be a readable regular file.
    src = Path(path).expanduser()
    if not src.is_file() or not os.access(src, os.R_OK):
        raise SourceNotFoundError(f"source file not found or unreadable: {src}")
    return src


def check_output_dir(path: str | os.PathLike) -> Path:
    out = Path(path).expanduser()
    if not out.is_dir():
        raise DestinationNotWritableError(f"output directory does not exist: {out}")
    if not os.access(out, os.W_OK | os.X_OK):
        raise DestinationNotWritableError(f"output directory is not writable: {out}")
    return out


def safe_basename(name: str) -> bool:
    """True if ``name`` is a plain file name that cannot escape its directory."""
    if not name or name in (".", ".."):
        return False
    if "/" in name or "\\" in name or "\x00" in name:
        return False
    return Path(name).name == name


def temp_path_for(final_path: Path) -> Path:
    # Unique per process and per call so concurrent runs never share a temp file.
    stem = final_path.name[:100]
    token = secrets.token_hex(8)
    return final_path.parent / f".{stem}.{os.getpid()}.{token}{TEMP_SUFFIX}"


def create_temp_file(final_path: Path, attempts: int = 5) -> Tuple[Path, BinaryIO]:
    flags = os.O_WRONLY | os.O_CREAT | os.O_EXCL | getattr(os, "O_BINARY", 0)
    for _ in range(attempts):
        tmp_path = temp_path_for(final_path)
        try:
            fd = os.open(tmp_path, flags, 0o600)
        except FileExistsError:
            continue
        except PermissionError as exc:
            raise DestinationNotWritableError(
                f"cannot create file in {final_path.parent}: {exc.strerror}"
            ) from exc
        except OSError as exc:
            raise IOFailureError(
                f"cannot create temporary file in {final_path.parent}: {exc.strerror}"
            ) from exc
        return tmp_path, os.fdopen(fd, "wb")
    raise IOFailureError(f"could not allocate a temporary file in {final_path.parent}")


def remove_quietly(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError as exc:
        logger.warning("could not remove temporary file %s: %s", path, exc)


def _fsync_dir(dir_path: Path) -> None:
    # Directory fsync is not available everywhere (e.g. Windows).
    try:
        fd = os.open(dir_path, os.O_RDONLY)
    except OSError:
        return
    try:
        os.fsync(fd)
    except OSError:
        pass
    finally:
        os.close(fd)


@contextmanager
def atomic_output(final_path: Path) -> Iterator[BinaryIO]:
    """
    Yield a writable binary file that becomes ``final_path`` only on success.

    Data goes to a temporary file in the same directory, which is flushed,
    fsynced and renamed over ``final_path`` when the block exits cleanly. Any
    exception (including KeyboardInterrupt) removes the temporary file and
    leaves ``final_path`` untouched.
    """
    tmp_path, fh = create_temp_file(final_path)
    try:
        with fh:
            yield fh
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp_path, final_path)
    except BaseException:
        remove_quietly(tmp_path)
        raise
    _fsync_dir(final_path.parent)
    logger.debug("published %s", final_path)


@contextmanager
def translate_os_errors(action: str) -> Iterator[None]:
    """Re-raise stray ``OSError``s as :class:`IOFailureError`; SealBox errors pass through."""
    try:
        yield
    except SealBoxError:
        raise
    except OSError as exc:
        detail = exc.strerror or str(exc)
        where = f" ({exc.filename})" if exc.filename else ""
        raise IOFailureError(f"{action} failed: {detail}{where}") from exc
