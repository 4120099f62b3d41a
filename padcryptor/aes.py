# padcryptor/aes.py
from abc import ABC, abstractmethod
from enum import Enum
from typing import Dict, Optional, Tuple, Type

from Crypto.Cipher import AES
from Crypto.Random import get_random_bytes
from cryptography.hazmat.primitives import padding as sym_padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from padcryptor.status import CryptorStatus

BLOCK_SIZE = 16
KEY_SIZES = (16, 24, 32)
# All-zero IV used when the caller does not pick one. Weak, but still better than ECB.
DEFAULT_IV = bytes(BLOCK_SIZE)


class Direction(Enum):
    ENCRYPT = "encrypt"
    DECRYPT = "decrypt"


class Mode(Enum):
    ECB = "ecb"
    CBC = "cbc"


def pkcs7_pad(data: bytes, block_size: int = BLOCK_SIZE) -> bytes:
    pad_len = block_size - (len(data) % block_size)
    return data + bytes([pad_len]) * pad_len


def pkcs7_unpad(padded: bytes, block_size: int = BLOCK_SIZE) -> bytes:
    if not padded or len(padded) % block_size != 0:
        raise ValueError("Invalid PKCS#7 padding")
    pad_len = padded[-1]
    if pad_len < 1 or pad_len > block_size:
        raise ValueError("Invalid PKCS#7 padding")
    if padded[-pad_len:] != bytes([pad_len]) * pad_len:
        raise ValueError("Invalid PKCS#7 padding")
    return padded[:-pad_len]


def random_key(size: int = 32) -> bytes:
    if size not in KEY_SIZES:
        raise ValueError(f"AES key size must be one of {KEY_SIZES}")
    return get_random_bytes(size)


def random_iv() -> bytes:
    return get_random_bytes(BLOCK_SIZE)


class CipherPrimitive(ABC):
    """Narrow interface onto an AES implementation.

    ``transform`` never raises for cipher problems. It reports a status and the
    number of bytes written into ``out``, whose length is the capacity.
    """

    name = "abstract"

    def transform(
        self,
        direction: Direction,
        mode: Mode,
        key: bytes,
        iv: Optional[bytes],
        data: bytes,
        out: bytearray,
        padding: bool = True,
    ) -> Tuple[CryptorStatus, int]:
        status = self._check(direction, mode, key, iv, data, padding)
        if status != CryptorStatus.SUCCESS:
            return status, 0
        try:
            result = self._run(direction, mode, key, iv, data, padding)
        except ValueError:
            # Bad padding lands here too and must look like any other failure.
            return CryptorStatus.UNSPECIFIED_ERROR, 0
        if len(result) > len(out):
            return CryptorStatus.BUFFER_TOO_SMALL, 0
        out[: len(result)] = result
        return CryptorStatus.SUCCESS, len(result)

    @staticmethod
    def _check(direction, mode, key, iv, data, padding) -> CryptorStatus:
        if len(key) not in KEY_SIZES:
            return CryptorStatus.PARAM_ERROR
        if mode == Mode.CBC and (iv is None or len(iv) != BLOCK_SIZE):
            return CryptorStatus.PARAM_ERROR
        if mode == Mode.ECB and iv is not None:
            return CryptorStatus.PARAM_ERROR
        if (direction == Direction.DECRYPT or not padding) and len(data) % BLOCK_SIZE != 0:
            return CryptorStatus.ALIGNMENT_ERROR
        return CryptorStatus.SUCCESS

    @abstractmethod
    def _run(self, direction: Direction, mode: Mode, key: bytes, iv: Optional[bytes],
             data: bytes, padding: bool) -> bytes:
        """Do the actual transform; raise ValueError on any cipher failure."""


class PycryptodomeAES(CipherPrimitive):
    name = "pycryptodome"

    def _run(self, direction, mode, key, iv, data, padding):
        if mode == Mode.ECB:
            cipher = AES.new(key, AES.MODE_ECB)
        else:
            cipher = AES.new(key, AES.MODE_CBC, iv=iv)
        if direction == Direction.ENCRYPT:
            return cipher.encrypt(pkcs7_pad(data) if padding else data)
        plain = cipher.decrypt(data)
        return pkcs7_unpad(plain) if padding else plain


class CryptographyAES(CipherPrimitive):
    name = "cryptography"

    def _run(self, direction, mode, key, iv, data, padding):
        cipher_mode = modes.ECB() if mode == Mode.ECB else modes.CBC(bytes(iv))
        cipher = Cipher(algorithms.AES(bytes(key)), cipher_mode)
        if direction == Direction.ENCRYPT:
            if padding:
                padder = sym_padding.PKCS7(BLOCK_SIZE * 8).padder()
                data = padder.update(data) + padder.finalize()
            encryptor = cipher.encryptor()
            return encryptor.update(data) + encryptor.finalize()
        decryptor = cipher.decryptor()
        plain = decryptor.update(data) + decryptor.finalize()
        if not padding:
            return plain
        unpadder = sym_padding.PKCS7(BLOCK_SIZE * 8).unpadder()
        return unpadder.update(plain) + unpadder.finalize()


PRIMITIVES: Dict[str, Type[CipherPrimitive]] = {
    PycryptodomeAES.name: PycryptodomeAES,
    CryptographyAES.name: CryptographyAES,
}


def get_primitive(name: str = PycryptodomeAES.name) -> CipherPrimitive:
    try:
        return PRIMITIVES[name.lower()]()
    except KeyError:
        raise ValueError(f"unknown cipher backend: {name!r} (choose from {', '.join(PRIMITIVES)})") from None
