"""
Security helpers - credential hashing and form input validation.
"""
from __future__ import annotations

import hashlib
import hmac
import html
import re
import secrets
from typing import Any

PBKDF2_ITERATIONS = 260_000
MIN_PASSWORD_LENGTH = 6


# =============================================================================
# PASSWORDS & TOKENS
# =============================================================================


def hash_password(password: str, *, salt: str | None = None, iterations: int = PBKDF2_ITERATIONS) -> str:
    """Return ``pbkdf2_sha256$iterations$salt$hexdigest``."""
    salt = salt or secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt.encode("utf-8"), iterations)
    return f"pbkdf2_sha256${iterations}${salt}${digest.hex()}"


def verify_password(password: str, encoded: str | None) -> bool:
    if not encoded:
        return False
    try:
        algorithm, iterations, salt, expected = encoded.split("$", 3)
    except ValueError:
        return False
    if algorithm != "pbkdf2_sha256":
        return False
    candidate = hash_password(password, salt=salt, iterations=int(iterations))
    return hmac.compare_digest(candidate.rsplit("$", 1)[1], expected)


def new_session_token() -> str:
    return secrets.token_urlsafe(32)


# =============================================================================
# INPUT VALIDATION
# =============================================================================


class InputValidator:
    """Validation and sanitization for form input."""

    EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    POSTAL_CODE_PATTERN = re.compile(r"^[A-Za-z0-9\- ]{3,10}$")
    PHONE_PATTERN = re.compile(r"^\+?[1-9]\d{1,14}$")

    @staticmethod
    def sanitize_text(text: Any, max_length: int = 1000) -> str:
        """Sanitize text input by escaping HTML and limiting length."""
        if not text or not isinstance(text, str):
            return ""
        sanitized = html.escape(text.strip())
        if len(sanitized) > max_length:
            sanitized = sanitized[:max_length]
        return sanitized

    @staticmethod
    def validate_email(email: Any) -> bool:
        if not email or not isinstance(email, str):
            return False
        return bool(InputValidator.EMAIL_PATTERN.match(email.strip()))

    @staticmethod
    def validate_postal_code(value: Any) -> bool:
        if not value:
            return False
        return bool(InputValidator.POSTAL_CODE_PATTERN.match(str(value).strip()))

    @staticmethod
    def validate_phone(phone: str | None) -> bool:
        if not phone:
            return False
        cleaned = phone.replace(" ", "").replace("-", "").replace("(", "").replace(")", "")
        return bool(InputValidator.PHONE_PATTERN.match(cleaned))

    @staticmethod
    def validate_rating(rating: Any) -> bool:
        try:
            value = int(rating)
        except (TypeError, ValueError):
            return False
        return 1 <= value <= 5


def validate_credentials(
    email: str,
    password: str,
    confirm_password: str | None = None,
) -> dict[str, str]:
    """Return field -> message for every credential problem found."""
    errors: dict[str, str] = {}
    if not validator.validate_email(email):
        errors["email"] = "Enter a valid email address"
    if not password:
        errors["password"] = "Password is required"
    elif len(password) < MIN_PASSWORD_LENGTH:
        errors["password"] = f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
    if confirm_password is not None and password != confirm_password:
        errors["confirm_password"] = "Passwords do not match"
    return errors


validator = InputValidator()
