"""Shared fixtures: cheap Argon2id settings keep the suite fast."""

import pytest

from sealbox.core.config import EngineConfig
from sealbox.core.engine import EncryptionEngine
from sealbox.security.kdf import KdfParams


FAST_KDF = KdfParams(time_cost=1, memory_cost=8, parallelism=1)


@pytest.fixture
def fast_kdf():
    return FAST_KDF


@pytest.fixture
def fast_config():
    # Small chunks so modest inputs still span several chunks.
    return EngineConfig(kdf=FAST_KDF, chunk_size=1024)


@pytest.fixture
def engine(fast_config):
    return EncryptionEngine(fast_config)


@pytest.fixture
def fast_env(monkeypatch):
    """Point the environment-driven default engine at cheap KDF settings."""
    monkeypatch.setenv("SEALBOX_KDF_TIME_COST", "1")
    monkeypatch.setenv("SEALBOX_KDF_MEMORY_COST", "8")
    monkeypatch.setenv("SEALBOX_KDF_PARALLELISM", "1")
    monkeypatch.setenv("SEALBOX_CHUNK_SIZE", "1024")
    monkeypatch.setattr("sealbox.core.engine._default_engine", None)
