import re
import html
import logging
from typing import Optional
from cryptography.fernet import Fernet, InvalidToken
from hrms.core.config import settings

logger = logging.getLogger(__name__)

_cipher = Fernet(settings.encryption_key.encode())


def encrypt_data(data: Optional[str]) -> Optional[str]:
    """Encrypt sensitive string data."""
    if not data:
        return data
    try:
        return _cipher.encrypt(data.encode()).decode()
    except Exception as e:
        logger.error(f"Encryption failed: {e}")
        raise ValueError(f"Encryption failed, refusing to store plaintext: {e}") from e


def decrypt_data(encrypted_data: Optional[str]) -> Optional[str]:
    """Decrypt sensitive string data."""
    if not encrypted_data:
        return encrypted_data
    try:
        return _cipher.decrypt(encrypted_data.encode()).decode()
    except InvalidToken:
        logger.warning("Decryption failed (possibly not encrypted)")
        return encrypted_data


def mask_identifier(value: Optional[str], visible: int = 4) -> Optional[str]:
    """Mask all but the last few characters of an account number."""
    if not value:
        return value
    if len(value) <= visible:
        return value
    return "X" * (len(value) - visible) + value[-visible:]


def sanitize_input(text: Optional[str]) -> Optional[str]:
    """Basic input sanitization to prevent XSS."""
    if not isinstance(text, str):
        return text
    # Remove script blocks before escaping, otherwise the tags no longer match
    sanitized = re.sub(r'<script.*?>.*?</script>', '', text, flags=re.DOTALL | re.IGNORECASE)
    return html.escape(sanitized.strip())
