"""StudentVault Errors - one taxonomy for crypto, auth and record failures

Self-Explanatory: Raise these instead of bare Exception / HTTPException in core code.
Why: Routers and the API client map them to responses; the crypto layer never formats messages.
How: Each error carries a machine code + HTTP status; main.py renders them via to_dict().

Usage:
    from studentvault.errors import DecryptionError

    try:
        plaintext = cipher.decrypt(envelope)
    except DecryptionError as e:
        logger.error("Field decrypt failed", code=e.code)
        raise
"""

from typing import Any, Dict, Optional


class StudentVaultError(Exception):
    """Base exception for all StudentVault errors"""

    status_code = 500

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": False,
            "code": self.code,
            "message": self.message,
            "details": self.details
        }


# ============================================
# Configuration
# ============================================

class KeyConfigurationError(StudentVaultError):
    """Key material missing or malformed at startup"""

    def __init__(self, setting: str, reason: str):
        super().__init__(
            f"{setting} is misconfigured: {reason}",
            code="KEY_CONFIGURATION_ERROR",
            details={"setting": setting}
        )


# ============================================
# Cryptography
# ============================================

class DecryptionError(StudentVaultError):
    """Envelope malformed, wrong key, or padding/integrity check failed"""

    def __init__(self, tier: str, reason: str = "Unable to decrypt field"):
        # Never echo the envelope itself back to the caller
        super().__init__(reason, code="DECRYPTION_FAILED", details={"tier": tier})
        self.tier = tier


# ============================================
# Authentication
# ============================================

class AuthError(StudentVaultError):
    """Access token missing, invalid or expired"""

    status_code = 401

    def __init__(self, message: str = "Authentication failed", code: str = "AUTH_FAILED"):
        super().__init__(message, code=code)


class MissingTokenError(AuthError):
    def __init__(self):
        super().__init__("Authorization header missing", code="TOKEN_MISSING")


class InvalidTokenError(AuthError):
    def __init__(self, message: str = "Invalid token"):
        super().__init__(message, code="INVALID_TOKEN")


class TokenExpiredError(AuthError):
    def __init__(self):
        super().__init__("Token has expired", code="TOKEN_EXPIRED")


class CredentialMismatch(StudentVaultError):
    """Password verification failed; unknown emails raise this too"""

    status_code = 401

    def __init__(self):
        super().__init__("Invalid email or password", code="INVALID_CREDENTIALS")


class PasswordTooLongError(StudentVaultError):
    """Password ciphertext exceeds bcrypt's input limit (never truncated)"""

    status_code = 422

    def __init__(self, limit: int):
        super().__init__(
            f"Password ciphertext must be at most {limit} bytes",
            code="PASSWORD_TOO_LONG",
            details={"limit": limit}
        )


# ============================================
# Records
# ============================================

class StudentNotFoundError(StudentVaultError):
    status_code = 404

    def __init__(self, student_id: str):
        super().__init__(
            f"Student with ID '{student_id}' not found",
            code="STUDENT_NOT_FOUND",
            details={"student_id": student_id}
        )


class EmailAlreadyRegisteredError(StudentVaultError):
    status_code = 409

    def __init__(self, email: str):
        super().__init__("Email already registered", code="EMAIL_ALREADY_REGISTERED",
                         details={"email": email})
