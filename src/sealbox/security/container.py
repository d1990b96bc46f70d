"""Binary container format for SealBox encrypted files.

Header layout (binary, all big-endian):
- 4 bytes: magic b'SBXF'
- 1 byte: version (1)
- 1 byte: alg_id (1 = AES-256-GCM, 2 = ChaCha20-Poly1305)
- 1 byte: kdf_id (1 = Argon2id)
- 4 bytes: time_cost
- 4 bytes: memory_cost (KiB)
- 4 bytes: parallelism
- 4 bytes: chunk_size (plaintext bytes per chunk)
- 1 byte: len_salt (S)
- 1 byte: len_base_nonce (N)
- 2 bytes: len_name (L)
- S bytes: salt
- N bytes: base nonce
- L bytes: original file name (UTF-8, may be empty)

Body: sequence of records: 4-byte big-endian ciphertext length + ciphertext||tag.

Every chunk is authenticated with the full header bytes, its index and a final
flag as associated data, so header tampering, reordering, truncation and
appended records all fail tag verification.
"""
from __future__ import annotations

import struct
from dataclasses import dataclass, field
from typing import BinaryIO, Optional, Tuple

from sealbox.core.exceptions import (
    AuthenticationFailedError,
    InvalidContainerFormatError,
    UnsupportedAlgorithmError,
)

from .ciphers import Algorithm, get_backend
from .kdf import KDF_ID_ARGON2ID, SALT_LENGTH, KdfParams


MAGIC = b"SBXF"
VERSION = 1

_FIXED = struct.Struct(">4sBBBIIIIBBH")
FIXED_HEADER_SIZE = _FIXED.size
_RECORD_LEN = struct.Struct(">I")
_CHUNK_TRAILER = struct.Struct(">QB")

DEFAULT_CHUNK_SIZE = 64 * 1024
MAX_CHUNK_SIZE = 16 * 1024 * 1024
MAX_CHUNKS = 2 ** 32
MAX_NAME_LENGTH = 0xFFFF


@dataclass(frozen=True)
class ContainerHeader:
    algorithm: Algorithm
    kdf: KdfParams
    salt: bytes
    base_nonce: bytes
    chunk_size: int = DEFAULT_CHUNK_SIZE
    original_name: str = field(default="")


def min_container_size() -> int:
    """Smallest possible valid container: header with empty name plus one empty chunk."""
    return FIXED_HEADER_SIZE + SALT_LENGTH + 12 + _RECORD_LEN.size + 16


def encode_header(header: ContainerHeader) -> bytes:
    backend = get_backend(header.algorithm)
    if len(header.salt) != SALT_LENGTH:
        raise ValueError(f"salt must be {SALT_LENGTH} bytes")
    if len(header.base_nonce) != backend.nonce_length:
        raise ValueError(f"base nonce must be {backend.nonce_length} bytes")
    if not 1 <= header.chunk_size <= MAX_CHUNK_SIZE:
        raise ValueError(f"chunk_size out of range: {header.chunk_size}")
    header.kdf.validate()
    try:
        name = header.original_name.encode("utf-8")
    except UnicodeEncodeError:
        raise ValueError(f"original file name is not valid UTF-8: {header.original_name!r}") from None
    if len(name) > MAX_NAME_LENGTH:
        raise ValueError("original file name is too long")

    out = bytearray()
    out += _FIXED.pack(
        MAGIC,
        VERSION,
        int(header.algorithm),
        header.kdf.kdf_id,
        header.kdf.time_cost,
        header.kdf.memory_cost,
        header.kdf.parallelism,
        header.chunk_size,
        len(header.salt),
        len(header.base_nonce),
        len(name),
    )
    out += header.salt
    out += header.base_nonce
    out += name
    return bytes(out)


def _check_prefix(data: bytes) -> None:
    if len(data) < FIXED_HEADER_SIZE:
        raise InvalidContainerFormatError("container is too short")
    if data[:4] != MAGIC:
        raise InvalidContainerFormatError("invalid file format (magic mismatch)")
    if data[4] != VERSION:
        raise InvalidContainerFormatError(f"unsupported container version {data[4]}")


def decode_header(data: bytes) -> Tuple[ContainerHeader, int]:
    """Parse a header from the start of ``data``; return it with the offset of the first record."""
    _check_prefix(data)
    (
        _magic,
        _version,
        alg_id,
        kdf_id,
        time_cost,
        memory_cost,
        parallelism,
        chunk_size,
        salt_len,
        nonce_len,
        name_len,
    ) = _FIXED.unpack_from(data, 0)

    algorithm = Algorithm.from_id(alg_id)
    if kdf_id != KDF_ID_ARGON2ID:
        raise UnsupportedAlgorithmError(f"unsupported KDF id {kdf_id}")

    kdf = KdfParams(time_cost=time_cost, memory_cost=memory_cost, parallelism=parallelism)
    try:
        kdf.validate()
    except ValueError as exc:
        raise InvalidContainerFormatError(f"invalid KDF parameters: {exc}") from None
    if not 1 <= chunk_size <= MAX_CHUNK_SIZE:
        raise InvalidContainerFormatError(f"invalid chunk size {chunk_size}")
    if salt_len != SALT_LENGTH:
        raise InvalidContainerFormatError(f"invalid salt length {salt_len}")
    if nonce_len != get_backend(algorithm).nonce_length:
        raise InvalidContainerFormatError(f"invalid nonce length {nonce_len}")

    offset = FIXED_HEADER_SIZE
    end = offset + salt_len + nonce_len + name_len
    if len(data) < end:
        raise InvalidContainerFormatError("truncated header")
    salt = bytes(data[offset:offset + salt_len])
    offset += salt_len
    base_nonce = bytes(data[offset:offset + nonce_len])
    offset += nonce_len
    try:
        name = bytes(data[offset:end]).decode("utf-8")
    except UnicodeDecodeError:
        raise InvalidContainerFormatError("original file name is not valid UTF-8") from None

    header = ContainerHeader(
        algorithm=algorithm,
        kdf=kdf,
        salt=salt,
        base_nonce=base_nonce,
        chunk_size=chunk_size,
        original_name=name,
    )
    return header, end


def read_header(stream: BinaryIO) -> Tuple[ContainerHeader, bytes]:
    """Read and decode the header from ``stream``; return it with its raw bytes (used as AAD)."""
    fixed = stream.read(FIXED_HEADER_SIZE)
    _check_prefix(fixed)
    salt_len, nonce_len, name_len = struct.unpack_from(">BBH", fixed, FIXED_HEADER_SIZE - 4)
    rest_len = salt_len + nonce_len + name_len
    rest = stream.read(rest_len)
    if len(rest) != rest_len:
        raise InvalidContainerFormatError("truncated header")
    raw = fixed + rest
    header, _ = decode_header(raw)
    return header, raw


def chunk_nonce(base_nonce: bytes, index: int) -> bytes:
    # XOR the chunk index into the base nonce; distinct indices give distinct nonces.
    if not 0 <= index < MAX_CHUNKS:
        raise ValueError(f"chunk index out of range: {index}")
    counter = int.from_bytes(base_nonce, "big") ^ index
    return counter.to_bytes(len(base_nonce), "big")


def chunk_aad(header_bytes: bytes, index: int, final: bool) -> bytes:
    return header_bytes + _CHUNK_TRAILER.pack(index, 1 if final else 0)


def write_record(stream: BinaryIO, ciphertext: bytes) -> None:
    stream.write(_RECORD_LEN.pack(len(ciphertext)))
    stream.write(ciphertext)


def read_record(stream: BinaryIO, max_len: int, min_len: int = 16) -> Optional[bytes]:
    """Return the next ciphertext record, or ``None`` at a clean end of stream."""
    len_bytes = stream.read(_RECORD_LEN.size)
    if not len_bytes:
        return None
    if len(len_bytes) < _RECORD_LEN.size:
        raise AuthenticationFailedError("container is truncated")
    (ct_len,) = _RECORD_LEN.unpack(len_bytes)
    if not min_len <= ct_len <= max_len:
        raise InvalidContainerFormatError(f"invalid chunk length {ct_len}")
    ct = stream.read(ct_len)
    if len(ct) != ct_len:
        raise AuthenticationFailedError("container is truncated")
    return ct
