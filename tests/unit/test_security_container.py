"""Unit tests for the container header codec and chunk framing."""

import io
import struct

import pytest

from sealbox.core.exceptions import (
    AuthenticationFailedError,
    InvalidContainerFormatError,
    UnsupportedAlgorithmError,
)
from sealbox.security.ciphers import Algorithm
from sealbox.security.container import (
    FIXED_HEADER_SIZE,
    MAGIC,
    VERSION,
    ContainerHeader,
    chunk_aad,
    chunk_nonce,
    decode_header,
    encode_header,
    min_container_size,
    read_header,
    read_record,
    write_record,
)
from sealbox.security.kdf import KdfParams


@pytest.fixture
def header():
    return ContainerHeader(
        algorithm=Algorithm.CHACHA20_POLY1305,
        kdf=KdfParams(time_cost=2, memory_cost=1024, parallelism=2),
        salt=b"\x01" * 16,
        base_nonce=b"\x02" * 12,
        chunk_size=4096,
        original_name="report.pdf",
    )


def test_encode_decode_header(header):
    raw = encode_header(header)
    decoded, offset = decode_header(raw + b"trailing body bytes")

    assert decoded == header
    assert offset == len(raw) == FIXED_HEADER_SIZE + 16 + 12 + len("report.pdf")
    assert raw[:4] == MAGIC
    assert raw[4] == VERSION


def test_decode_header_non_ascii_name(header):
    h = ContainerHeader(header.algorithm, header.kdf, header.salt, header.base_nonce, 4096, "résumé.txt")
    assert decode_header(encode_header(h))[0].original_name == "résumé.txt"


def test_read_header_returns_raw_bytes(header):
    raw = encode_header(header)
    stream = io.BytesIO(raw + b"\x00\x00\x00\x10")
    decoded, header_bytes = read_header(stream)

    assert decoded == header
    assert header_bytes == raw
    assert stream.tell() == len(raw)


def _patched(raw: bytes, offset: int, value: bytes) -> bytes:
    return raw[:offset] + value + raw[offset + len(value):]


def test_decode_rejects_bad_magic(header):
    raw = _patched(encode_header(header), 0, b"NOPE")
    with pytest.raises(InvalidContainerFormatError, match="magic"):
        decode_header(raw)


def test_decode_rejects_unknown_version(header):
    raw = _patched(encode_header(header), 4, bytes([99]))
    with pytest.raises(InvalidContainerFormatError, match="version"):
        decode_header(raw)


def test_decode_rejects_unknown_algorithm(header):
    raw = _patched(encode_header(header), 5, bytes([99]))
    with pytest.raises(UnsupportedAlgorithmError):
        decode_header(raw)


def test_decode_rejects_unknown_kdf(header):
    raw = _patched(encode_header(header), 6, bytes([42]))
    with pytest.raises(UnsupportedAlgorithmError, match="KDF"):
        decode_header(raw)


def test_decode_rejects_absurd_work_factors(header):
    raw = _patched(encode_header(header), 11, struct.pack(">I", 0xFFFFFFFF))
    with pytest.raises(InvalidContainerFormatError, match="KDF"):
        decode_header(raw)


def test_decode_rejects_bad_chunk_size(header):
    raw = _patched(encode_header(header), 19, struct.pack(">I", 0))
    with pytest.raises(InvalidContainerFormatError, match="chunk"):
        decode_header(raw)


def test_decode_rejects_bad_salt_length(header):
    raw = _patched(encode_header(header), 23, bytes([8]))
    with pytest.raises(InvalidContainerFormatError, match="salt"):
        decode_header(raw)


def test_decode_rejects_bad_nonce_length(header):
    raw = _patched(encode_header(header), 24, bytes([24]))
    with pytest.raises(InvalidContainerFormatError, match="nonce"):
        decode_header(raw)


def test_decode_rejects_truncated_header(header):
    raw = encode_header(header)
    with pytest.raises(InvalidContainerFormatError):
        decode_header(raw[:-3])
    with pytest.raises(InvalidContainerFormatError):
        decode_header(raw[:10])
    with pytest.raises(InvalidContainerFormatError):
        read_header(io.BytesIO(raw[:-3]))


def test_decode_rejects_invalid_utf8_name(header):
    raw = encode_header(header)
    with pytest.raises(InvalidContainerFormatError, match="UTF-8"):
        decode_header(raw[:-1] + b"\xff")


def test_encode_rejects_wrong_lengths(header):
    with pytest.raises(ValueError):
        encode_header(ContainerHeader(header.algorithm, header.kdf, b"\x00" * 8, header.base_nonce))
    with pytest.raises(ValueError):
        encode_header(ContainerHeader(header.algorithm, header.kdf, header.salt, b"\x00" * 8))


def test_min_container_size_matches_smallest_container():
    assert min_container_size() == FIXED_HEADER_SIZE + 16 + 12 + 4 + 16


def test_chunk_nonces_are_unique_and_start_at_base():
    base = bytes(range(12))
    nonces = {chunk_nonce(base, i) for i in range(5000)}

    assert len(nonces) == 5000
    assert chunk_nonce(base, 0) == base
    assert all(len(n) == 12 for n in nonces)


def test_chunk_nonce_rejects_out_of_range_index():
    with pytest.raises(ValueError):
        chunk_nonce(b"\x00" * 12, -1)
    with pytest.raises(ValueError):
        chunk_nonce(b"\x00" * 12, 2 ** 32)


def test_chunk_aad_binds_index_and_final_flag():
    hdr = b"header"
    assert chunk_aad(hdr, 0, False) != chunk_aad(hdr, 0, True)
    assert chunk_aad(hdr, 0, False) != chunk_aad(hdr, 1, False)
    assert chunk_aad(hdr, 3, True).startswith(hdr)


def test_records_roundtrip_and_clean_eof():
    stream = io.BytesIO()
    write_record(stream, b"x" * 20)
    write_record(stream, b"y" * 16)
    stream.seek(0)

    assert read_record(stream, max_len=64) == b"x" * 20
    assert read_record(stream, max_len=64) == b"y" * 16
    assert read_record(stream, max_len=64) is None


def test_read_record_truncation():
    with pytest.raises(AuthenticationFailedError):
        read_record(io.BytesIO(b"\x00\x00"), max_len=64)
    with pytest.raises(AuthenticationFailedError):
        read_record(io.BytesIO(struct.pack(">I", 32) + b"z" * 10), max_len=64)


def test_read_record_rejects_bad_lengths():
    with pytest.raises(InvalidContainerFormatError):
        read_record(io.BytesIO(struct.pack(">I", 1000) + b"z" * 1000), max_len=64)
    with pytest.raises(InvalidContainerFormatError):
        read_record(io.BytesIO(struct.pack(">I", 4) + b"z" * 4), max_len=64)
