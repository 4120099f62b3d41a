# padcryptor/status.py
"""Cipher status codes and the error types carried by failed results.

The codes follow the classic CommonCrypto numbering so results can be compared
against other implementations. The taxonomy is deliberately coarse: a
decryption that fails because the padding is wrong reports the same
``UNSPECIFIED_ERROR`` as any other cipher failure.
"""
from enum import IntEnum
from typing import Iterable, Optional


class CryptorStatus(IntEnum):
    SUCCESS = 0
    PARAM_ERROR = -4300
    BUFFER_TOO_SMALL = -4301
    MEMORY_FAILURE = -4302
    ALIGNMENT_ERROR = -4303
    UNSPECIFIED_ERROR = -4308

    @classmethod
    def coerce(cls, code: int) -> "CryptorStatus":
        """Map a raw primitive code into the set; unknown codes become UNSPECIFIED_ERROR."""
        try:
            return cls(code)
        except ValueError:
            return cls.UNSPECIFIED_ERROR


class CryptorError(Exception):
    """Base class for every failure a cryptor result can carry."""

    def __init__(self, status: CryptorStatus, message: Optional[str] = None):
        self.status = CryptorStatus.coerce(status)
        super().__init__(message or f"cryptor failed with status {self.status.name} ({int(self.status)})")

    @staticmethod
    def from_status(status: CryptorStatus) -> "CryptorError":
        status = CryptorStatus.coerce(status)
        if status == CryptorStatus.SUCCESS:
            raise ValueError("SUCCESS is not an error status")
        if status == CryptorStatus.MEMORY_FAILURE:
            return ResourceFailure()
        return PrimitiveFailure(status)


class ParameterError(CryptorError):
    """The request was malformed; the cipher was never invoked."""

    def __init__(self, reasons: Iterable[str] = ()):
        self.reasons = tuple(reasons)
        detail = "; ".join(self.reasons) if self.reasons else "invalid parameters"
        super().__init__(CryptorStatus.PARAM_ERROR, f"invalid cryptor request: {detail}")


class PrimitiveFailure(CryptorError):
    """The cipher primitive returned a non-success status."""


class ResourceFailure(CryptorError):
    """The host ran out of resources while the request was running."""

    def __init__(self, message: Optional[str] = None):
        super().__init__(CryptorStatus.MEMORY_FAILURE, message or "out of memory while running cryptor")
