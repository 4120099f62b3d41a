# padcryptor/cryptor.py
"""AES encryption and decryption with PKCS#7 padding, as a single unit of work.

With padding on, plaintext can be any length while ciphertext is always a
non-empty multiple of the AES block size (16). Encrypting always grows the data
by 1-16 bytes; decrypting shrinks it by the same amount.

CBC is used when the request carries an IV, ECB when it does not. The default
IV is all zeroes, which is weak; pass a random IV per message (see
``padcryptor.aes.random_iv``) when confidentiality matters.

Corrupted ciphertext is not reported distinctly. A bad-padding failure comes
back as the same generic ``PrimitiveFailure`` as any other cipher error, since
telling them apart enables padding oracle attacks. Check integrity with a
separate MAC if you need to know the data arrived intact.
"""
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from padcryptor.aes import (
    BLOCK_SIZE,
    DEFAULT_IV,
    KEY_SIZES,
    CipherPrimitive,
    Direction,
    Mode,
    get_primitive,
)
from padcryptor.config import Settings
from padcryptor.status import (
    CryptorError,
    CryptorStatus,
    ParameterError,
    PrimitiveFailure,
    ResourceFailure,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CryptorRequest:
    direction: Direction
    input: bytes = field(repr=False)
    key: bytes = field(repr=False)
    iv: Optional[bytes] = field(default=DEFAULT_IV, repr=False)

    def __post_init__(self):
        if not isinstance(self.direction, Direction):
            raise TypeError("direction must be a Direction")
        for name in ("input", "key", "iv"):
            value = getattr(self, name)
            if value is None and name == "iv":
                continue
            if not isinstance(value, (bytes, bytearray, memoryview)):
                raise TypeError(f"{name} must be bytes")
            # Own a private immutable copy so the caller cannot change it after submission.
            object.__setattr__(self, name, bytes(value))

    @classmethod
    def to_encrypt(cls, data: bytes, key: bytes, iv: Optional[bytes] = DEFAULT_IV) -> "CryptorRequest":
        return cls(Direction.ENCRYPT, data, key, iv)

    @classmethod
    def to_decrypt(cls, data: bytes, key: bytes, iv: Optional[bytes] = DEFAULT_IV) -> "CryptorRequest":
        return cls(Direction.DECRYPT, data, key, iv)

    @property
    def mode(self) -> Mode:
        return Mode.ECB if self.iv is None else Mode.CBC


class CryptorResult:
    """Terminal outcome of a request: either ``output`` or ``error``, never both."""

    __slots__ = ("_output", "_error")

    def __init__(self, output: Optional[bytes] = None, error: Optional[CryptorError] = None):
        if (output is None) == (error is None):
            raise ValueError("exactly one of output or error must be set")
        object.__setattr__(self, "_output", None if output is None else bytes(output))
        object.__setattr__(self, "_error", error)

    def __setattr__(self, name, value):
        raise AttributeError("CryptorResult is immutable")

    @classmethod
    def success(cls, output: bytes) -> "CryptorResult":
        return cls(output=output)

    @classmethod
    def failure(cls, error: CryptorError) -> "CryptorResult":
        return cls(error=error)

    @property
    def output(self) -> Optional[bytes]:
        return self._output

    @property
    def error(self) -> Optional[CryptorError]:
        return self._error

    @property
    def ok(self) -> bool:
        return self._error is None

    @property
    def status(self) -> CryptorStatus:
        return CryptorStatus.SUCCESS if self._error is None else self._error.status

    def unwrap(self) -> bytes:
        if self._error is not None:
            raise self._error
        return self._output

    def __repr__(self):
        if self.ok:
            return f"CryptorResult(output=<{len(self._output)} bytes>)"
        return f"CryptorResult(error={self._error.__class__.__name__}({self.status.name}))"


def validate(request: CryptorRequest) -> List[str]:
    """Return every problem with ``request``; empty when it can be run."""
    problems = []
    if request.direction == Direction.DECRYPT and len(request.input) % BLOCK_SIZE != 0:
        problems.append(f"input length {len(request.input)} is not a multiple of {BLOCK_SIZE}")
    if len(request.key) not in KEY_SIZES:
        problems.append(f"key length {len(request.key)} is not one of {KEY_SIZES}")
    if request.iv is not None and len(request.iv) != BLOCK_SIZE:
        problems.append(f"iv length {len(request.iv)} is not {BLOCK_SIZE}")
    return problems


def output_capacity(request: CryptorRequest) -> int:
    # Padding adds at most one block on encrypt and only ever removes bytes on decrypt.
    if request.direction == Direction.ENCRYPT:
        return len(request.input) + BLOCK_SIZE
    return len(request.input)


def _wipe(buf: Optional[bytearray]) -> None:
    if buf is not None:
        buf[:] = bytes(len(buf))


class PaddedCryptor:
    def __init__(self, primitive: Optional[CipherPrimitive] = None, *, zeroize: bool = True):
        self.primitive = primitive if primitive is not None else get_primitive()
        self.zeroize = zeroize

    @classmethod
    def from_settings(cls, settings: Settings) -> "PaddedCryptor":
        return cls(get_primitive(settings.backend), zeroize=settings.zeroize)

    def execute(self, request: CryptorRequest) -> CryptorResult:
        """Run ``request`` to completion. Never raises for request or cipher errors."""
        problems = validate(request)
        if problems:
            logger.debug("Rejecting %s request: %s", request.direction.value, "; ".join(problems))
            return CryptorResult.failure(ParameterError(problems))

        buffer = None
        key = None
        try:
            buffer = bytearray(output_capacity(request))
            key = bytearray(request.key)
            logger.debug(
                "Running %s %s: input=%d capacity=%d backend=%s",
                request.mode.name, request.direction.value, len(request.input), len(buffer), self.primitive.name,
            )
            status, written = self.primitive.transform(
                request.direction, request.mode, key, request.iv, request.input, buffer, padding=True
            )
            status = CryptorStatus.coerce(status)
            if status == CryptorStatus.SUCCESS:
                return CryptorResult.success(bytes(buffer[:written]))
        except MemoryError:
            logger.error("Out of memory running %s request", request.direction.value)
            return CryptorResult.failure(ResourceFailure())
        except Exception:
            logger.exception("Cipher backend %s raised during %s", self.primitive.name, request.direction.value)
            return CryptorResult.failure(PrimitiveFailure(CryptorStatus.UNSPECIFIED_ERROR))
        finally:
            if self.zeroize:
                _wipe(buffer)
                _wipe(key)

        logger.debug("%s failed with status %s", request.direction.value, status.name)
        return CryptorResult.failure(CryptorError.from_status(status))


def encrypt(data: bytes, key: bytes, iv: Optional[bytes] = DEFAULT_IV, cryptor: Optional[PaddedCryptor] = None) -> CryptorResult:
    return (cryptor or PaddedCryptor()).execute(CryptorRequest.to_encrypt(data, key, iv))


def decrypt(data: bytes, key: bytes, iv: Optional[bytes] = DEFAULT_IV, cryptor: Optional[PaddedCryptor] = None) -> CryptorResult:
    return (cryptor or PaddedCryptor()).execute(CryptorRequest.to_decrypt(data, key, iv))
