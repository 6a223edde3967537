"""
Token and log-masking helpers
"""

import secrets
from typing import Optional

# Cancellation and waitlist priority links embed these tokens
TOKEN_BYTES = 32


def generate_secure_token(length: int = TOKEN_BYTES) -> str:
    """Generate a cryptographically secure random token"""
    return secrets.token_urlsafe(length)


def mask_sensitive_data(data: Optional[str], visible_chars: int = 4) -> str:
    """
    Mask sensitive data for logging/display

    Args:
        data: Sensitive data to mask
        visible_chars: Number of characters to show at the end

    Returns:
        Masked string
    """
    if not data:
        return ""
    if len(data) <= visible_chars:
        return "*" * len(data)

    return "*" * (len(data) - visible_chars) + data[-visible_chars:]


def mask_email(email: Optional[str]) -> str:
    """Keep the first character of the local part and the domain"""
    if not email or "@" not in email:
        return mask_sensitive_data(email)
    local, domain = email.split("@", 1)
    return f"{local[:1]}***@{domain}"
