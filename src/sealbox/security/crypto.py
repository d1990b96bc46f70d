"""Streaming password-based AEAD file encryption and decryption.

Both pipelines work chunk by chunk with bounded memory and publish their
result through :func:`sealbox.core.fileops.atomic_output`, so the final path
either holds a complete, fully authenticated file or is left untouched.
The container layout is described in :mod:`sealbox.security.container`.
"""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import BinaryIO, Callable, Optional, Protocol

from sealbox.core.exceptions import (
    AuthenticationFailedError,
    ConfigurationError,
    DestinationNotWritableError,
    InvalidContainerFormatError,
    OperationCancelledError,
)
from sealbox.core.fileops import atomic_output, check_source, translate_os_errors

from .ciphers import Algorithm, CipherBackend, get_backend
from .container import (
    DEFAULT_CHUNK_SIZE,
    MAX_CHUNKS,
    MAX_NAME_LENGTH,
    ContainerHeader,
    chunk_aad,
    chunk_nonce,
    encode_header,
    min_container_size,
    read_header,
    read_record,
    write_record,
)
from .kdf import KdfParams, derive_key, generate_salt
from .secret import PasswordLike, ensure_password


logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


class CancelEvent(Protocol):
    def is_set(self) -> bool:
        ...


def _check_cancel(cancel_event: Optional[CancelEvent]) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise OperationCancelledError("operation cancelled")


def _wipe(buf: bytearray) -> None:
    for i in range(len(buf)):
        buf[i] = 0


def _refuse_in_place(src: Path, out: Path) -> None:
    if out.exists() and os.path.samefile(src, out):
        raise DestinationNotWritableError(f"refusing to overwrite the input file {src}")


def _stored_name(name: str) -> str:
    # Names that do not round-trip through UTF-8 (undecodable bytes on POSIX)
    # are left out of the header; decryption then falls back to the container name.
    try:
        encoded = name.encode("utf-8")
    except UnicodeEncodeError:
        logger.warning("not storing file name %r: it is not valid UTF-8", name)
        return ""
    if len(encoded) > MAX_NAME_LENGTH:
        logger.warning("not storing file name %r: it is too long", name)
        return ""
    return name


def encrypt_file_stream(
    in_path: str | os.PathLike,
    out_path: str | os.PathLike,
    password: PasswordLike,
    algorithm: Algorithm | str | int = Algorithm.AES_256_GCM,
    kdf_params: KdfParams = KdfParams(),
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    original_name: Optional[str] = None,
    cancel_event: Optional[CancelEvent] = None,
    progress: Optional[ProgressCallback] = None,
) -> Path:
    """
    Encrypt ``in_path`` into a new container at ``out_path``.

    The source is validated before the password is touched or any randomness
    is drawn. The password is wiped right after key derivation and the key is
    wiped when the call returns. ``progress`` receives
    ``(plaintext_bytes_done, plaintext_bytes_total)`` after every chunk.
    """
    src = check_source(in_path)
    out = Path(out_path)
    _refuse_in_place(src, out)
    secret = ensure_password(password)
    key = bytearray()
    try:
        backend_cls = get_backend(algorithm)
        header = ContainerHeader(
            algorithm=backend_cls.algorithm,
            kdf=kdf_params,
            salt=generate_salt(),
            base_nonce=os.urandom(backend_cls.nonce_length),
            chunk_size=chunk_size,
            original_name=_stored_name(src.name) if original_name is None else original_name,
        )
        try:
            header_bytes = encode_header(header)
        except ValueError as exc:
            raise ConfigurationError(f"cannot build container header: {exc}") from exc

        key = bytearray(derive_key(secret, header.salt, header.kdf, backend_cls.key_length))
        secret.wipe()
        backend = backend_cls(key)

        with translate_os_errors("encryption"):
            total = src.stat().st_size
            with open(src, "rb") as inf, atomic_output(out) as outf:
                outf.write(header_bytes)
                chunks = _encrypt_chunks(
                    inf, outf, backend, header, header_bytes, total, cancel_event, progress
                )
    finally:
        secret.wipe()
        _wipe(key)

    logger.debug("encrypted %s into %d chunk(s) with %s", src.name, chunks, header.algorithm.label)
    return out


def _encrypt_chunks(
    inf: BinaryIO,
    outf: BinaryIO,
    backend: CipherBackend,
    header: ContainerHeader,
    header_bytes: bytes,
    total: int,
    cancel_event: Optional[CancelEvent],
    progress: Optional[ProgressCallback],
) -> int:
    if -(-total // header.chunk_size) > MAX_CHUNKS:
        raise ConfigurationError(
            f"chunk size {header.chunk_size} is too small for a {total} byte file"
        )
    # Read one chunk ahead so the last chunk can be flagged as final.
    index = 0
    done = 0
    chunk = inf.read(header.chunk_size)
    while True:
        _check_cancel(cancel_event)
        if index >= MAX_CHUNKS:
            # The source grew while it was being read.
            raise ConfigurationError(f"input exceeds {MAX_CHUNKS} chunks")
        nxt = inf.read(header.chunk_size)
        final = not nxt
        nonce = chunk_nonce(header.base_nonce, index)
        ct = backend.encrypt_chunk(nonce, chunk, chunk_aad(header_bytes, index, final))
        write_record(outf, ct)
        done += len(chunk)
        if progress is not None:
            progress(done, total)
        if final:
            return index + 1
        chunk = nxt
        index += 1


def read_container_header(in_path: str | os.PathLike) -> ContainerHeader:
    """Validate and decode only the header of a container; no password needed."""
    src = check_source(in_path)
    with translate_os_errors("reading container"):
        if src.stat().st_size < min_container_size():
            raise InvalidContainerFormatError(f"not a valid container: {src}")
        with open(src, "rb") as inf:
            header, _ = read_header(inf)
    return header


def decrypt_file_stream(
    in_path: str | os.PathLike,
    out_path: str | os.PathLike,
    password: PasswordLike,
    cancel_event: Optional[CancelEvent] = None,
    progress: Optional[ProgressCallback] = None,
) -> Path:
    """
    Decrypt the container at ``in_path`` into ``out_path``.

    The algorithm and KDF parameters come from the container header; the
    header is fully validated before any key derivation. Every chunk tag is
    verified before its plaintext is written, and the output only appears at
    ``out_path`` after the last chunk authenticated. ``progress`` receives
    ``(container_bytes_done, container_bytes_total)``.
    """
    src = check_source(in_path)
    out = Path(out_path)
    _refuse_in_place(src, out)
    secret = ensure_password(password)
    key = bytearray()
    try:
        with translate_os_errors("decryption"):
            total = src.stat().st_size
            if total < min_container_size():
                raise InvalidContainerFormatError(f"not a valid container: {src}")
            with open(src, "rb") as inf:
                header, header_bytes = read_header(inf)
                backend_cls = get_backend(header.algorithm)

                key = bytearray(
                    derive_key(secret, header.salt, header.kdf, backend_cls.key_length)
                )
                secret.wipe()
                backend = backend_cls(key)

                with atomic_output(out) as outf:
                    chunks = _decrypt_chunks(
                        inf, outf, backend, header, header_bytes, total, cancel_event, progress
                    )
    finally:
        secret.wipe()
        _wipe(key)

    logger.debug("decrypted %s from %d chunk(s) with %s", src.name, chunks, header.algorithm.label)
    return out


def _decrypt_chunks(
    inf: BinaryIO,
    outf: BinaryIO,
    backend: CipherBackend,
    header: ContainerHeader,
    header_bytes: bytes,
    total: int,
    cancel_event: Optional[CancelEvent],
    progress: Optional[ProgressCallback],
) -> int:
    max_len = header.chunk_size + backend.tag_length
    index = 0
    done = len(header_bytes)
    ct = read_record(inf, max_len, backend.tag_length)
    if ct is None:
        raise AuthenticationFailedError("container is truncated")
    while True:
        _check_cancel(cancel_event)
        if index >= MAX_CHUNKS:
            raise InvalidContainerFormatError(f"container holds more than {MAX_CHUNKS} chunks")
        nxt = read_record(inf, max_len, backend.tag_length)
        final = nxt is None
        nonce = chunk_nonce(header.base_nonce, index)
        outf.write(backend.decrypt_chunk(nonce, ct, chunk_aad(header_bytes, index, final)))
        done += 4 + len(ct)
        if progress is not None:
            progress(done, total)
        if final:
            return index + 1
        ct = nxt
        index += 1
