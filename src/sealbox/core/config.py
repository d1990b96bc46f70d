"""Engine configuration: default KDF work factors, chunk size and file extension.

Defaults can be tuned through environment variables:

- ``SEALBOX_KDF_TIME_COST``   Argon2id iterations
- ``SEALBOX_KDF_MEMORY_COST`` Argon2id memory in KiB
- ``SEALBOX_KDF_PARALLELISM`` Argon2id lanes
- ``SEALBOX_CHUNK_SIZE``      plaintext bytes per encrypted chunk

The values are written into every container, so changing them only affects
newly encrypted files.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from typing import Mapping, Optional

from sealbox.security.container import DEFAULT_CHUNK_SIZE, MAX_CHUNK_SIZE
from sealbox.security.kdf import KdfParams

from .exceptions import ConfigurationError


ENV_PREFIX = "SEALBOX_"
DEFAULT_EXTENSION = ".encrypted"


@dataclass(frozen=True)
class EngineConfig:
    kdf: KdfParams = field(default_factory=KdfParams)
    chunk_size: int = DEFAULT_CHUNK_SIZE
    extension: str = DEFAULT_EXTENSION

    def validate(self) -> "EngineConfig":
        try:
            self.kdf.validate()
        except ValueError as exc:
            raise ConfigurationError(str(exc)) from None
        if not 1 <= self.chunk_size <= MAX_CHUNK_SIZE:
            raise ConfigurationError(f"chunk_size must be between 1 and {MAX_CHUNK_SIZE}")
        if self.extension and not self.extension.startswith("."):
            raise ConfigurationError("extension must start with '.'")
        return self

    def with_overrides(
        self,
        time_cost: Optional[int] = None,
        memory_cost: Optional[int] = None,
        parallelism: Optional[int] = None,
        chunk_size: Optional[int] = None,
    ) -> "EngineConfig":
        """Return a copy with the given non-None values replaced."""
        kdf = replace(
            self.kdf,
            time_cost=self.kdf.time_cost if time_cost is None else time_cost,
            memory_cost=self.kdf.memory_cost if memory_cost is None else memory_cost,
            parallelism=self.kdf.parallelism if parallelism is None else parallelism,
        )
        cfg = replace(
            self,
            kdf=kdf,
            chunk_size=self.chunk_size if chunk_size is None else chunk_size,
        )
        return cfg.validate()

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "EngineConfig":
        env = os.environ if environ is None else environ
        return cls().with_overrides(
            time_cost=_int_from_env(env, "KDF_TIME_COST"),
            memory_cost=_int_from_env(env, "KDF_MEMORY_COST"),
            parallelism=_int_from_env(env, "KDF_PARALLELISM"),
            chunk_size=_int_from_env(env, "CHUNK_SIZE"),
        )


def _int_from_env(env: Mapping[str, str], name: str) -> Optional[int]:
    raw = env.get(ENV_PREFIX + name)
    if raw is None or raw.strip() == "":
        return None
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{ENV_PREFIX}{name} must be an integer, got {raw!r}") from None
