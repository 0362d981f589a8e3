"""Domain-specific exceptions"""

from typing import Dict, List, Optional


class BankError(Exception):
    """Base exception for the banking core"""

    code = "INTERNAL_SERVER_ERROR"
    default_message = "An unexpected error occurred"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(BankError):
    """Client-correctable input errors, keyed by field name"""

    code = "BAD_REQUEST"
    default_message = "Invalid input"

    def __init__(self, errors: Dict[str, List[str]], message: Optional[str] = None):
        self.errors = {field: list(messages) for field, messages in errors.items()}
        if message is None:
            message = "; ".join(
                f"{field}: {', '.join(messages)}" for field, messages in self.errors.items()
            )
        super().__init__(message)

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationError":
        return cls({field: [message]}, message)


class InvalidAmount(ValidationError):
    """Funding amount is not a positive number of cents"""

    def __init__(self, message: str = "Amount must be greater than $0.00"):
        super().__init__({"amount": [message]}, message)


class Unauthorized(BankError):
    """No valid session accompanies the request"""

    code = "UNAUTHORIZED"
    default_message = "Not authenticated"


class InvalidCredentials(Unauthorized):
    """Email/password pair did not match; never says which part was wrong"""

    default_message = "Invalid credentials"


class InvalidToken(Unauthorized):
    """Session token failed structural, signature or expiry checks"""

    default_message = "Invalid session token"


class AlreadyAuthenticated(BankError):
    """Signup or login attempted while a session is active"""

    code = "BAD_REQUEST"
    default_message = "Already authenticated. Log out before continuing."


class Conflict(BankError):
    """Uniqueness rule violated"""

    code = "CONFLICT"
    default_message = "Resource already exists"


class DuplicateAccount(Conflict):
    default_message = "User already exists"


class DuplicateAccountType(Conflict):
    def __init__(self, account_type: str):
        self.account_type = account_type
        super().__init__(f"You already have a {account_type} account")


class NotFound(BankError):
    """Resource missing or not owned by the caller"""

    code = "NOT_FOUND"
    default_message = "Not found"


class InactiveAccount(BankError):
    code = "BAD_REQUEST"
    default_message = "Account is not active"


class InternalError(BankError):
    """Storage failure or failed post-write read-back"""

    code = "INTERNAL_SERVER_ERROR"


class ConfigurationError(InternalError):
    """Settings are unsafe or incomplete for serving requests"""

    default_message = "Server is not configured"


class EncryptionKeyError(ConfigurationError):
    """Encryption key is absent or malformed"""

    default_message = "Encryption key is not configured"
