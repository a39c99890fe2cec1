"""
Fernet encryption for payment credentials stored at rest.
Billing keys issued by the payment gateway are encrypted before they hit
the database and decrypted on read through the model property.
"""
import base64
import hashlib
import logging

from cryptography.fernet import Fernet, InvalidToken
from flask import current_app

logger = logging.getLogger(__name__)


def _get_fernet():
    """Build a Fernet instance from FERNET_KEY, or derive one from SECRET_KEY."""
    key = current_app.config.get('FERNET_KEY')
    if not key:
        secret = current_app.config.get('SECRET_KEY', '')
        key = base64.urlsafe_b64encode(hashlib.sha256(secret.encode()).digest())
    elif isinstance(key, str):
        key = key.encode()
    return Fernet(key)


def encrypt_value(plaintext):
    """Encrypt a string value. Returns base64-encoded ciphertext or None."""
    if not plaintext:
        return None
    return _get_fernet().encrypt(plaintext.encode()).decode()


def decrypt_value(ciphertext):
    """Decrypt a value produced by encrypt_value.

    Raises:
        ValueError: If the ciphertext was not produced with the current key.
    """
    if not ciphertext:
        return None
    try:
        return _get_fernet().decrypt(ciphertext.encode()).decode()
    except InvalidToken:
        logger.error('Billing key decryption failed (FERNET_KEY rotated?)')
        raise ValueError('Stored value cannot be decrypted with the current key')
