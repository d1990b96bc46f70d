"""
Exceptions for SealBox
Every engine failure is a subclass of SealBoxError so callers have one catch-all
"""


class SealBoxError(Exception):
    # general container for errors
    pass


class SourceNotFoundError(SealBoxError):
    # raised if the input file is missing or unreadable
    pass


class DestinationNotWritableError(SealBoxError):
    # raised if the output directory is missing, not a directory or read-only
    pass


class EmptyPasswordError(SealBoxError):
    # raised when an empty password reaches the engine
    pass


class IOFailureError(SealBoxError):
    # raised on disk / permission errors while reading, writing or renaming
    pass


class OperationCancelledError(SealBoxError):
    # raised when the caller sets the cancel event mid-stream
    pass


class ConfigurationError(SealBoxError):
    # raised on invalid configuration values (env vars, CLI flags)
    pass


class UnsupportedAlgorithmError(SealBoxError):
    # raised when a cipher or KDF name / id is not known to this engine
    pass


class DecryptionFailedError(SealBoxError):
    # user-facing "decryption failed" category; never says which check failed
    pass


class InvalidContainerFormatError(DecryptionFailedError):
    # raised on bad magic / version or a structurally broken header
    pass


class AuthenticationFailedError(DecryptionFailedError):
    # raised on a tag mismatch: wrong password or tampered / truncated data
    pass
