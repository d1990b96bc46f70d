"""Scoped holder for the user password.

The password lives in a mutable buffer so it can be overwritten once the key
has been derived. Wiping is best-effort: Python may still hold immutable
copies (e.g. the original ``str``), but the engine never keeps its own copy
past a single derivation and never lets the value leak into logs or reprs.
"""
from __future__ import annotations

from typing import Union

from sealbox.core.exceptions import EmptyPasswordError


PasswordLike = Union[str, bytes, bytearray, "SecretPassword"]


class SecretPassword:
    def __init__(self, password: PasswordLike):
        if isinstance(password, SecretPassword):
            data = password.reveal()
        elif isinstance(password, str):
            data = password.encode("utf-8")
        elif isinstance(password, (bytes, bytearray)):
            data = bytes(password)
        else:
            raise TypeError(f"unsupported password type: {type(password).__name__}")
        self._buf = bytearray(data)
        self._wiped = False

    def __len__(self) -> int:
        return len(self._buf)

    def __repr__(self) -> str:
        state = "wiped" if self._wiped else "redacted"
        return f"SecretPassword(<{state}>)"

    __str__ = __repr__

    def __enter__(self) -> "SecretPassword":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.wipe()

    @property
    def wiped(self) -> bool:
        return self._wiped

    def reveal(self) -> bytes:
        """Return the password bytes for a single derivation."""
        if self._wiped:
            raise RuntimeError("password has already been wiped")
        return bytes(self._buf)

    def wipe(self) -> None:
        """Overwrite the buffer with zeros and mark the secret unusable."""
        for i in range(len(self._buf)):
            self._buf[i] = 0
        self._wiped = True


def ensure_password(password: PasswordLike) -> SecretPassword:
    """Wrap ``password`` and reject empty values with :class:`EmptyPasswordError`."""
    if password is None:
        raise EmptyPasswordError("password must not be empty")
    secret = password if isinstance(password, SecretPassword) else SecretPassword(password)
    if secret.wiped or len(secret) == 0:
        secret.wipe()
        raise EmptyPasswordError("password must not be empty")
    return secret
