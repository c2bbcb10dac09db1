"""Service metadata on log records and the shared stdlib handler."""

from __future__ import annotations

import logging

import structlog

from signquest.config import Settings
from signquest.middleware.logging import SERVICE_NAME, service_fields, setup_logging


class TestServiceFields:
    """Test the metadata processor."""

    def test_stamps_service_version_and_environment(self):
        add = service_fields(Settings(app_version="1.2.3", environment="staging"))

        event = add(None, "info", {"event": "session applied"})

        assert event == {
            "event": "session applied",
            "service": SERVICE_NAME,
            "version": "1.2.3",
            "environment": "staging",
        }

    def test_caller_fields_win(self):
        add = service_fields(Settings(environment="production"))

        event = add(None, "info", {"event": "x", "environment": "replay"})

        assert event["environment"] == "replay"


class TestSetup:
    """Test handler installation."""

    def test_single_root_handler_and_quiet_sql(self, monkeypatch):
        root = logging.getLogger()
        monkeypatch.setattr(root, "handlers", list(root.handlers))
        monkeypatch.setattr(root, "level", root.level)

        setup_logging(Settings(log_format="console", log_level="debug"))

        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, structlog.stdlib.ProcessorFormatter)
        assert root.level == logging.DEBUG
        assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING

    def test_unknown_level_falls_back_to_info(self, monkeypatch):
        root = logging.getLogger()
        monkeypatch.setattr(root, "handlers", list(root.handlers))
        monkeypatch.setattr(root, "level", root.level)

        setup_logging(Settings(log_level="chatty"))

        assert root.level == logging.INFO
