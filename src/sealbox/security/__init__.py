"""Security helpers: KDF, AEAD backends, container codec and streaming pipelines.

This package provides:
- Argon2id-based key derivation from a user password
- AEAD cipher backends (AES-256-GCM, ChaCha20-Poly1305) behind one interface
- A self-describing binary container format
- Streaming chunked encryption/decryption with atomic output
"""

from .secret import SecretPassword, ensure_password
from .kdf import KdfParams, generate_salt, derive_key, kdf_params_to_dict
from .ciphers import Algorithm, CipherBackend, get_backend, backend_for
from .container import ContainerHeader, encode_header, decode_header, read_header
from .crypto import encrypt_file_stream, decrypt_file_stream, read_container_header

__all__ = [
    "SecretPassword",
    "ensure_password",
    "KdfParams",
    "generate_salt",
    "derive_key",
    "kdf_params_to_dict",
    "Algorithm",
    "CipherBackend",
    "get_backend",
    "backend_for",
    "ContainerHeader",
    "encode_header",
    "decode_header",
    "read_header",
    "encrypt_file_stream",
    "decrypt_file_stream",
    "read_container_header",
]
