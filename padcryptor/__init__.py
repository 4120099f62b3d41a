# padcryptor/__init__.py
from padcryptor.aes import BLOCK_SIZE, DEFAULT_IV, KEY_SIZES, Direction, Mode, get_primitive, random_iv, random_key
from padcryptor.cryptor import CryptorRequest, CryptorResult, PaddedCryptor, decrypt, encrypt
from padcryptor.operation import CryptorOperation, CryptorQueue, OperationState
from padcryptor.status import CryptorError, CryptorStatus, ParameterError, PrimitiveFailure, ResourceFailure

__version__ = "0.1.0"

__all__ = [
    "BLOCK_SIZE",
    "DEFAULT_IV",
    "KEY_SIZES",
    "Direction",
    "Mode",
    "get_primitive",
    "random_iv",
    "random_key",
    "CryptorRequest",
    "CryptorResult",
    "PaddedCryptor",
    "encrypt",
    "decrypt",
    "CryptorOperation",
    "CryptorQueue",
    "OperationState",
    "CryptorError",
    "CryptorStatus",
    "ParameterError",
    "PrimitiveFailure",
    "ResourceFailure",
]
