"""
Command-line front end for SealBox.

Examples:

    sealbox encrypt report.pdf -o ~/vault -a chacha20-poly1305
    sealbox decrypt ~/vault/report.pdf.encrypted -o ~/restored
    sealbox inspect ~/vault/report.pdf.encrypted

Passwords are read with :mod:`getpass`, or from the environment variable
named by ``--password-env`` for scripted use. They are never accepted as a
plain command-line argument.
"""

from __future__ import annotations

import argparse
import getpass
import json
import logging
import os
import sys
from typing import List, Optional

from sealbox.core.config import EngineConfig
from sealbox.core.engine import EncryptionEngine
from sealbox.core.exceptions import (
    ConfigurationError,
    DecryptionFailedError,
    IOFailureError,
    OperationCancelledError,
    SealBoxError,
    UnsupportedAlgorithmError,
)
from sealbox.core.fileops import check_output_dir, check_source
from sealbox.security.ciphers import Algorithm
from sealbox.security.secret import SecretPassword

from .logging_config import configure_logging


logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_DECRYPTION_FAILED = 1
EXIT_USAGE = 2
EXIT_IO = 3
EXIT_CANCELLED = 130


class _PasswordMismatch(Exception):
    pass


def _algorithm(value: str) -> Algorithm:
    try:
        return Algorithm.parse(value)
    except UnsupportedAlgorithmError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from None


def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sealbox",
        description="Password-based file encryption (AES-256-GCM / ChaCha20-Poly1305).",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase log output (-v info, -vv debug)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    def add_common(p: argparse.ArgumentParser) -> None:
        p.add_argument("file", help="Input file")
        p.add_argument(
            "-o",
            "--output-dir",
            required=True,
            help="Existing directory that receives the result",
        )
        p.add_argument("--name", default=None, help="Output file name (default: derived)")
        p.add_argument(
            "--password-env",
            default=None,
            metavar="VAR",
            help="Read the password from environment variable VAR instead of prompting",
        )
        p.add_argument(
            "--progress",
            action="store_true",
            help="Print progress to stderr",
        )

    enc = sub.add_parser("encrypt", help="Encrypt a file into a container")
    add_common(enc)
    enc.add_argument(
        "-a",
        "--algorithm",
        type=_algorithm,
        default=Algorithm.AES_256_GCM,
        help="aes-256-gcm (default) or chacha20-poly1305",
    )
    enc.add_argument("--time-cost", type=int, default=None, help="Argon2id iterations")
    enc.add_argument("--memory-cost", type=int, default=None, help="Argon2id memory in KiB")
    enc.add_argument("--parallelism", type=int, default=None, help="Argon2id lanes")
    enc.add_argument("--chunk-size", type=int, default=None, help="Plaintext bytes per chunk")

    dec = sub.add_parser("decrypt", help="Decrypt a container")
    add_common(dec)

    insp = sub.add_parser("inspect", help="Show container header information")
    insp.add_argument("file", help="Container file")

    sub.add_parser("algorithms", help="List supported algorithms")
    return parser


def _read_password(args: argparse.Namespace, confirm: bool) -> SecretPassword:
    if args.password_env:
        value = os.environ.get(args.password_env)
        if value is None:
            raise ConfigurationError(f"environment variable {args.password_env} is not set")
        return SecretPassword(value)
    password = getpass.getpass("Password: ")
    if confirm and getpass.getpass("Confirm password: ") != password:
        raise _PasswordMismatch()
    return SecretPassword(password)


def _print_progress(done: int, total: int) -> None:
    pct = 100 if total == 0 else int(done * 100 / total)
    sys.stderr.write(f"\r{pct:3d}%")
    if done >= total:
        sys.stderr.write("\n")
    sys.stderr.flush()


def _display(path: os.PathLike) -> str:
    # Undecodable bytes in a file name would make a strict stdout fail.
    return os.fsencode(path).decode("utf-8", "replace")


def _run(args: argparse.Namespace) -> int:
    if args.command == "algorithms":
        for alg in Algorithm:
            print(f"{alg.name.lower().replace('_', '-')}\t{alg.label}")
        return EXIT_OK

    config = EngineConfig.from_env()
    if args.command == "encrypt":
        config = config.with_overrides(
            time_cost=args.time_cost,
            memory_cost=args.memory_cost,
            parallelism=args.parallelism,
            chunk_size=args.chunk_size,
        )
    engine = EncryptionEngine(config)

    if args.command == "inspect":
        print(json.dumps(engine.inspect(args.file), indent=2))
        return EXIT_OK

    # Fail on bad paths before asking for a password.
    check_source(args.file)
    check_output_dir(args.output_dir)
    progress = _print_progress if args.progress else None
    if args.command == "encrypt":
        password = _read_password(args, confirm=args.password_env is None)
        result = engine.encrypt(
            args.file,
            password,
            args.algorithm,
            args.output_dir,
            output_name=args.name,
            progress=progress,
        )
    else:
        password = _read_password(args, confirm=False)
        result = engine.decrypt(
            args.file, password, args.output_dir, output_name=args.name, progress=progress
        )
    print(_display(result))
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    parser = _build_arg_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    try:
        return _run(args)
    except DecryptionFailedError as exc:
        # Keep the user-facing message generic; details only in debug logs.
        logger.debug("decryption failed: %s", exc)
        print("error: decryption failed (wrong password or damaged file)", file=sys.stderr)
        return EXIT_DECRYPTION_FAILED
    except _PasswordMismatch:
        print("error: passwords do not match", file=sys.stderr)
        return EXIT_USAGE
    except IOFailureError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_IO
    except (OperationCancelledError, KeyboardInterrupt):
        print("cancelled", file=sys.stderr)
        return EXIT_CANCELLED
    except SealBoxError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_USAGE


def run() -> None:  # pragma: no cover - console script entry
    sys.exit(main())


if __name__ == "__main__":  # pragma: no cover - CLI entry
    run()
