"""
Tests for configuration and structured logging
"""

import json
import logging

import pytest

from securebank.config import DEFAULT_JWT_SECRET, BankConfig, reload_config
from securebank.errors import ConfigurationError
from securebank.logging_config import JSONFormatter, log_action, request_context, setup_logging


class TestBankConfig:

    def test_defaults(self):
        config = BankConfig()
        assert config.session_lifetime_days == 7
        assert config.session_max_age_seconds == 604800
        assert config.session_cookie_name == "session"
        assert config.jwt_algorithm == "HS256"

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("SECUREBANK_DATABASE_URL", "memory://")
        monkeypatch.setenv("SECUREBANK_SESSION_LIFETIME_DAYS", "1")

        config = reload_config()
        assert config.database_url == "memory://"
        assert config.session_max_age_seconds == 86400

        monkeypatch.delenv("SECUREBANK_DATABASE_URL")
        monkeypatch.delenv("SECUREBANK_SESSION_LIFETIME_DAYS")
        reload_config()

    def test_placeholder_jwt_secret_rejected(self):
        for secret in (DEFAULT_JWT_SECRET, ""):
            with pytest.raises(ConfigurationError):
                BankConfig(jwt_secret=secret).check_jwt_secret()

        BankConfig(jwt_secret="test-secret-key-with-enough-length").check_jwt_secret()


class ListHandler(logging.Handler):
    def __init__(self):
        super().__init__()
        self.lines = []

    def emit(self, record):
        self.lines.append(self.format(record))


class TestStructuredLogging:

    def test_log_action_fields(self):
        logger = setup_logging("DEBUG", logger_name="securebank.test")
        handler = ListHandler()
        handler.setFormatter(JSONFormatter())
        logger.addHandler(handler)

        log_action(logger, "info", "Account funded", user_id=3, action="fund_account",
                   resource="account", extra={"amount_cents": 500})

        entry = json.loads(handler.lines[-1])
        assert entry["message"] == "Account funded"
        assert entry["level"] == "INFO"
        assert entry["user_id"] == 3
        assert entry["action"] == "fund_account"
        assert entry["extra"] == {"amount_cents": 500}

    def test_none_fields_omitted(self):
        record = logging.LogRecord("securebank", logging.INFO, __file__, 1, "hello", None, None)
        entry = json.loads(JSONFormatter().format(record))
        assert "user_id" not in entry
        assert entry["message"] == "hello"

    def test_request_id_attached_inside_context(self):
        record = logging.LogRecord("securebank", logging.INFO, __file__, 1, "hello", None, None)

        with request_context("req-123"):
            entry = json.loads(JSONFormatter().format(record))
        assert entry["request_id"] == "req-123"

        assert "request_id" not in json.loads(JSONFormatter().format(record))


class TestRunServer:
    """Startup refuses unsafe settings before serving anything"""

    def serve_with(self, monkeypatch, settings):
        import run

        started = []
        monkeypatch.setattr(run, "get_config", lambda: settings)
        monkeypatch.setattr(run.uvicorn, "run", lambda *args, **kwargs: started.append(args))
        run.run_server()
        return started

    def test_placeholder_secret_stops_startup(self, monkeypatch):
        settings = BankConfig(database_url="memory://", jwt_secret=DEFAULT_JWT_SECRET,
                              encryption_key="0123456789abcdef" * 4)

        with pytest.raises(ConfigurationError):
            self.serve_with(monkeypatch, settings)

    def test_missing_encryption_key_stops_startup(self, monkeypatch):
        settings = BankConfig(database_url="memory://", jwt_secret="test-secret-key-with-enough-length",
                              encryption_key="")

        with pytest.raises(ConfigurationError):
            self.serve_with(monkeypatch, settings)

    def test_valid_settings_start(self, monkeypatch):
        settings = BankConfig(database_url="memory://", jwt_secret="test-secret-key-with-enough-length",
                              encryption_key="0123456789abcdef" * 4)

        assert len(self.serve_with(monkeypatch, settings)) == 1
