import os
from dataclasses import dataclass
from typing import Dict

from argon2.exceptions import HashingError
from argon2.low_level import Type, hash_secret_raw

from sealbox.core.exceptions import IOFailureError

from .secret import PasswordLike, SecretPassword, ensure_password


KDF_ID_ARGON2ID = 1
SALT_LENGTH = 16

# Upper bounds accepted from a container header; keeps a tampered header from
# requesting absurd amounts of CPU or memory before authentication can fail.
MAX_TIME_COST = 64
MAX_MEMORY_COST = 2 * 1024 * 1024  # KiB, i.e. 2 GiB
MAX_PARALLELISM = 64


@dataclass(frozen=True)
class KdfParams:
    """Argon2id work factors. ``memory_cost`` is in KiB."""

    time_cost: int = 3
    memory_cost: int = 65536
    parallelism: int = 1
    kdf_id: int = KDF_ID_ARGON2ID

    def validate(self) -> "KdfParams":
        if self.kdf_id != KDF_ID_ARGON2ID:
            raise ValueError(f"unknown KDF id {self.kdf_id}")
        if not 1 <= self.parallelism <= MAX_PARALLELISM:
            raise ValueError(f"parallelism out of range: {self.parallelism}")
        if not 1 <= self.time_cost <= MAX_TIME_COST:
            raise ValueError(f"time_cost out of range: {self.time_cost}")
        if not 8 * self.parallelism <= self.memory_cost <= MAX_MEMORY_COST:
            raise ValueError(f"memory_cost out of range: {self.memory_cost}")
        return self


def generate_salt(length: int = SALT_LENGTH) -> bytes:
    """Return a cryptographically secure random salt."""
    return os.urandom(length)


def derive_key(
    password: PasswordLike,
    salt: bytes,
    params: KdfParams = KdfParams(),
    key_len: int = 32,
) -> bytes:
    """
    Derive a symmetric key from a password using Argon2id.
    Returns raw derived key bytes.

    Raises ``EmptyPasswordError`` for an empty password and ``ValueError`` when
    the salt or work factors do not fit Argon2id. An Argon2 failure at run
    time (for instance an allocation failure) surfaces as ``IOFailureError``.
    """
    # Only wipe what we wrapped ourselves; a caller-owned SecretPassword is
    # wiped by the caller once it is done with it.
    owned = not isinstance(password, SecretPassword)
    secret = ensure_password(password)
    try:
        if len(salt) != SALT_LENGTH:
            raise ValueError(f"salt must be {SALT_LENGTH} bytes, got {len(salt)}")
        params.validate()

        try:
            return hash_secret_raw(
                secret=secret.reveal(),
                salt=salt,
                time_cost=params.time_cost,
                memory_cost=params.memory_cost,
                parallelism=params.parallelism,
                hash_len=key_len,
                type=Type.ID,
            )
        except HashingError as exc:
            # e.g. the memory cost could not be allocated
            raise IOFailureError(f"key derivation failed: {exc}") from exc
    finally:
        if owned:
            secret.wipe()


def kdf_params_to_dict(salt: bytes, time_cost: int, memory_cost: int, parallelism: int) -> Dict:
    return {
        "algo": "argon2id",
        "salt": salt.hex(),
        "time": time_cost,
        "memory": memory_cost,
        "parallelism": parallelism,
    }
