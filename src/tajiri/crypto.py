"""At-rest encryption for the relay operator key.

Uses Fernet (AES-128-CBC with HMAC) for symmetric encryption. An operator
key in the environment may be stored either as plain hex or as a Fernet
token produced with MASTER_KEY.
"""

import logging
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken

logger = logging.getLogger(__name__)

# Fernet tokens start with this base64-encoded version prefix
FERNET_PREFIX = "gAAAAA"


def generate_master_key() -> str:
    """Generate a new master encryption key.

    Returns:
        Base64-encoded 32-byte key suitable for Fernet
    """
    return Fernet.generate_key().decode()


class SecretEncryptor:
    """Encrypts and decrypts secrets using Fernet.

    Usage:
        encryptor = SecretEncryptor(master_key)
        token = encryptor.encrypt("0xabc...")
        plain = encryptor.decrypt(token)
    """

    def __init__(self, master_key: str):
        self._fernet = Fernet(master_key.encode())

    def encrypt(self, secret: str) -> str:
        """Encrypt a secret string into a Fernet token."""
        return self._fernet.encrypt(secret.encode()).decode()

    def decrypt(self, token: str) -> str:
        """Decrypt a Fernet token.

        Raises:
            InvalidToken: If decryption fails (wrong key or corrupted data)
        """
        return self._fernet.decrypt(token.encode()).decode()


def is_encrypted(value: str) -> bool:
    """Check whether a value looks like a Fernet token."""
    return value.startswith(FERNET_PREFIX)


def decrypt_secret(value: str, master_key: Optional[str]) -> str:
    """Return the plain secret for a possibly-encrypted value.

    Args:
        value: Plain secret or Fernet token
        master_key: Fernet key used to encrypt the value

    Returns:
        The decrypted secret, or the value unchanged if it is not encrypted

    Raises:
        ValueError: If the value is encrypted but cannot be decrypted
    """
    if not is_encrypted(value):
        return value

    if not master_key:
        raise ValueError("Secret is encrypted but MASTER_KEY is not set")

    try:
        return SecretEncryptor(master_key).decrypt(value)
    except InvalidToken:
        logger.error("Failed to decrypt secret - wrong MASTER_KEY or corrupted value")
        raise ValueError("Secret could not be decrypted with MASTER_KEY") from None
