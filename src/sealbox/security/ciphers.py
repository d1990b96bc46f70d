"""AEAD cipher backends selectable per container.

Every member of :class:`Algorithm` must map to exactly one backend in
``_BACKENDS``; the module refuses to import otherwise, so adding an algorithm
without a backend fails loudly instead of being silently ignored.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from enum import IntEnum
from typing import Dict, Type

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM, ChaCha20Poly1305

from sealbox.core.exceptions import AuthenticationFailedError, UnsupportedAlgorithmError


class Algorithm(IntEnum):
    AES_256_GCM = 1
    CHACHA20_POLY1305 = 2

    @property
    def label(self) -> str:
        return _LABELS[self]

    @classmethod
    def from_id(cls, alg_id: int) -> "Algorithm":
        try:
            return cls(alg_id)
        except ValueError:
            raise UnsupportedAlgorithmError(f"unsupported algorithm id {alg_id}") from None

    @classmethod
    def parse(cls, value: "Algorithm | str | int") -> "Algorithm":
        """Accept an enum member, a numeric id or a name such as ``"AES256GCM"``."""
        if isinstance(value, Algorithm):
            return value
        if isinstance(value, int):
            return cls.from_id(value)
        if isinstance(value, str):
            key = "".join(ch for ch in value.lower() if ch.isalnum())
            alg = _ALIASES.get(key)
            if alg is not None:
                return alg
        raise UnsupportedAlgorithmError(f"unsupported algorithm {value!r}")


_LABELS = {
    Algorithm.AES_256_GCM: "AES-256-GCM",
    Algorithm.CHACHA20_POLY1305: "ChaCha20-Poly1305",
}

_ALIASES = {
    "aes256gcm": Algorithm.AES_256_GCM,
    "aesgcm": Algorithm.AES_256_GCM,
    "aes": Algorithm.AES_256_GCM,
    "chacha20poly1305": Algorithm.CHACHA20_POLY1305,
    "chacha20": Algorithm.CHACHA20_POLY1305,
    "chacha": Algorithm.CHACHA20_POLY1305,
}


class CipherBackend(ABC):
    """One AEAD construction bound to a single key."""

    algorithm: Algorithm
    key_length: int = 32
    nonce_length: int = 12
    tag_length: int = 16

    def __init__(self, key: bytes | bytearray):
        if len(key) != self.key_length:
            raise ValueError(f"{self.algorithm.label} needs a {self.key_length}-byte key")
        self._aead = self._make_aead(key)

    @abstractmethod
    def _make_aead(self, key: bytes | bytearray):
        ...

    def _check_nonce(self, nonce: bytes) -> None:
        if len(nonce) != self.nonce_length:
            raise ValueError(f"{self.algorithm.label} needs a {self.nonce_length}-byte nonce")

    def encrypt_chunk(self, nonce: bytes, plaintext: bytes, aad: bytes) -> bytes:
        """Return ``ciphertext || tag`` for one chunk."""
        self._check_nonce(nonce)
        return self._aead.encrypt(nonce, plaintext, aad)

    def decrypt_chunk(self, nonce: bytes, ciphertext: bytes, aad: bytes) -> bytes:
        """Verify and decrypt one chunk; raise ``AuthenticationFailedError`` on tag mismatch."""
        self._check_nonce(nonce)
        try:
            return self._aead.decrypt(nonce, ciphertext, aad)
        except InvalidTag:
            raise AuthenticationFailedError("authentication failed") from None


class AesGcmBackend(CipherBackend):
    algorithm = Algorithm.AES_256_GCM

    def _make_aead(self, key):
        return AESGCM(key)


class ChaCha20Poly1305Backend(CipherBackend):
    algorithm = Algorithm.CHACHA20_POLY1305

    def _make_aead(self, key):
        return ChaCha20Poly1305(key)


_BACKENDS: Dict[Algorithm, Type[CipherBackend]] = {
    Algorithm.AES_256_GCM: AesGcmBackend,
    Algorithm.CHACHA20_POLY1305: ChaCha20Poly1305Backend,
}

_missing = set(Algorithm) - set(_BACKENDS)
if _missing:  # pragma: no cover - guards future additions to Algorithm
    raise ImportError(f"no cipher backend registered for {sorted(a.name for a in _missing)}")


def get_backend(algorithm: "Algorithm | str | int") -> Type[CipherBackend]:
    return _BACKENDS[Algorithm.parse(algorithm)]


def backend_for(algorithm: "Algorithm | str | int", key: bytes | bytearray) -> CipherBackend:
    return get_backend(algorithm)(key)
