"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from pydantic_settings import BaseSettings
from typing import Optional

from .errors import ConfigurationError

DEFAULT_JWT_SECRET = "change-me-in-production"


class BankConfig(BaseSettings):
    """SecureBank configuration"""

    # Database configuration
    database_url: str = "sqlite:///securebank.db"  # or memory://

    # API configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8090

    # Session configuration
    jwt_secret: str = DEFAULT_JWT_SECRET
    jwt_algorithm: str = "HS256"
    session_lifetime_days: int = 7
    session_cookie_name: str = "session"
    session_cookie_path: str = "/"
    password_min_length: int = 8

    # Encryption configuration
    encryption_key: str = ""  # SECUREBANK_ENCRYPTION_KEY, 64+ hex chars

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    log_file: Optional[str] = None  # If None, logs to stdout

    class Config:
        env_prefix = "SECUREBANK_"
        env_file = ".env"
        case_sensitive = False

    @property
    def session_max_age_seconds(self) -> int:
        return self.session_lifetime_days * 24 * 60 * 60

    def check_jwt_secret(self) -> None:
        """Refuse to sign sessions with a missing or placeholder secret"""
        if not self.jwt_secret or self.jwt_secret == DEFAULT_JWT_SECRET:
            raise ConfigurationError("SECUREBANK_JWT_SECRET must be set to a private value")


# Global configuration instance
config = BankConfig()


def get_config() -> BankConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> BankConfig:
    """Reload configuration from environment"""
    global config
    config = BankConfig()
    return config
