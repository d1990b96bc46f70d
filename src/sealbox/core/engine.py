"""
Engine facade: the two operations the interface layer calls, plus ``inspect``.

Each call is a single unit of work. It either returns the path of a new,
complete file or raises a :class:`~sealbox.core.exceptions.SealBoxError`
subclass with the filesystem left as it was before the call. Sources are
never modified. Decryption takes no algorithm argument: everything needed to
reverse a container is read from its header.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

from sealbox.security.ciphers import Algorithm
from sealbox.security.container import VERSION, ContainerHeader
from sealbox.security.crypto import (
    CancelEvent,
    ProgressCallback,
    decrypt_file_stream,
    encrypt_file_stream,
    read_container_header,
)
from sealbox.security.kdf import kdf_params_to_dict
from sealbox.security.secret import PasswordLike, ensure_password

from .config import EngineConfig
from .exceptions import DestinationNotWritableError
from .fileops import check_output_dir, check_source, safe_basename


logger = logging.getLogger(__name__)

DECRYPTED_SUFFIX = ".decrypted"


class EncryptionEngine:
    """Stateless entry point; one instance can serve concurrent calls."""

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = (config or EngineConfig()).validate()

    def encrypt(
        self,
        file_path: str | os.PathLike,
        password: PasswordLike,
        algorithm: Algorithm | str | int,
        output_dir: str | os.PathLike,
        output_name: Optional[str] = None,
        cancel_event: Optional[CancelEvent] = None,
        progress: Optional[ProgressCallback] = None,
    ) -> Path:
        """
        Encrypt ``file_path`` with ``password`` into ``output_dir``.

        The output is named ``output_name`` or, by default, the source name
        plus the configured extension (``.encrypted``). Checks run in the
        order source, password, algorithm, destination.
        """
        src = check_source(file_path)
        secret = ensure_password(password)
        try:
            alg = Algorithm.parse(algorithm)
            out_dir = check_output_dir(output_dir)
            target = out_dir / self._checked_name(output_name or src.name + self.config.extension)

            logger.info("encrypting %s -> %s (%s)", src, target, alg.label)
            result = encrypt_file_stream(
                src,
                target,
                secret,
                algorithm=alg,
                kdf_params=self.config.kdf,
                chunk_size=self.config.chunk_size,
                cancel_event=cancel_event,
                progress=progress,
            )
        finally:
            secret.wipe()
        logger.info("encrypted %s", result)
        return result

    def decrypt(
        self,
        file_path: str | os.PathLike,
        password: PasswordLike,
        output_dir: str | os.PathLike,
        output_name: Optional[str] = None,
        cancel_event: Optional[CancelEvent] = None,
        progress: Optional[ProgressCallback] = None,
    ) -> Path:
        """
        Decrypt the container at ``file_path`` into ``output_dir``.

        Without ``output_name`` the file name stored in the container is
        restored; see :meth:`default_decrypted_name` for the fallbacks.
        """
        src = check_source(file_path)
        secret = ensure_password(password)
        try:
            out_dir = check_output_dir(output_dir)
            header = read_container_header(src)
            target = out_dir / self._checked_name(
                output_name or self.default_decrypted_name(src, header)
            )

            logger.info("decrypting %s -> %s (%s)", src, target, header.algorithm.label)
            result = decrypt_file_stream(
                src,
                target,
                secret,
                cancel_event=cancel_event,
                progress=progress,
            )
        finally:
            secret.wipe()
        logger.info("decrypted %s", result)
        return result

    def inspect(self, file_path: str | os.PathLike) -> Dict[str, Any]:
        """Describe a container from its header alone; no password is needed."""
        header = read_container_header(file_path)
        return {
            "format_version": VERSION,
            "algorithm": header.algorithm.label,
            "algorithm_id": int(header.algorithm),
            "kdf": kdf_params_to_dict(
                header.salt,
                header.kdf.time_cost,
                header.kdf.memory_cost,
                header.kdf.parallelism,
            ),
            "chunk_size": header.chunk_size,
            "original_name": header.original_name,
        }

    def default_decrypted_name(self, container: Path, header: ContainerHeader) -> str:
        # Prefer the stored name, then the container name minus the extension.
        if safe_basename(header.original_name):
            return header.original_name
        ext = self.config.extension
        if ext and container.name.endswith(ext) and safe_basename(container.name[: -len(ext)]):
            return container.name[: -len(ext)]
        return container.name + DECRYPTED_SUFFIX

    @staticmethod
    def _checked_name(name: str) -> str:
        if not safe_basename(name):
            raise DestinationNotWritableError(f"invalid output file name: {name!r}")
        return name


# module-level default engine, configured from the environment on first use
_default_engine: Optional[EncryptionEngine] = None


def get_engine() -> EncryptionEngine:
    global _default_engine
    if _default_engine is None:
        _default_engine = EncryptionEngine(EngineConfig.from_env())
    return _default_engine


def encrypt(
    file_path: str | os.PathLike,
    password: PasswordLike,
    algorithm: Algorithm | str | int,
    output_dir: str | os.PathLike,
    **kwargs: Any,
) -> Path:
    return get_engine().encrypt(file_path, password, algorithm, output_dir, **kwargs)


def decrypt(
    file_path: str | os.PathLike,
    password: PasswordLike,
    output_dir: str | os.PathLike,
    **kwargs: Any,
) -> Path:
    return get_engine().decrypt(file_path, password, output_dir, **kwargs)


def inspect(file_path: str | os.PathLike) -> Dict[str, Any]:
    return get_engine().inspect(file_path)
