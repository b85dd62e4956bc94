"""Tests for HookRelay logging setup."""

import json
import logging

import pytest
import structlog

from hookrelay.logging import configure_logging, get_logger, log_context


@pytest.fixture(autouse=True)
def _reset_logging():
    """Point the handler back at the session stream once capsys is gone."""
    yield
    configure_logging(level="INFO", format="text")


def _last_line(capsys) -> dict:
    return json.loads(capsys.readouterr().out.strip().splitlines()[-1])


class TestConfigureLogging:
    """Tests for logging configuration."""

    def test_structlog_event_rendered_as_json(self, capsys):
        configure_logging(level="INFO", format="json")

        get_logger("hookrelay.delivery.dispatcher").info("Relay complete", delivered=2)

        line = _last_line(capsys)
        assert line["event"] == "Relay complete"
        assert line["delivered"] == 2
        assert line["level"] == "info"
        assert line["logger"] == "hookrelay.delivery.dispatcher"

    def test_stdlib_record_rendered_as_json(self, capsys):
        """Plain logging records get the same shape as structlog events."""
        configure_logging(level="INFO", format="json")

        logging.getLogger("hookrelay.delivery.engine").warning(
            "Webhook delivery failed: %s after %d attempts", "task.created", 3
        )

        line = _last_line(capsys)
        assert line["event"] == "Webhook delivery failed: task.created after 3 attempts"
        assert line["level"] == "warning"
        assert line["logger"] == "hookrelay.delivery.engine"

    def test_reconfigure_replaces_handler(self):
        configure_logging(level="INFO")
        configure_logging(level="WARNING", format="text")

        root = logging.getLogger()
        formatters = [
            h for h in root.handlers if isinstance(h.formatter, structlog.stdlib.ProcessorFormatter)
        ]
        assert len(formatters) == 1
        assert root.level == logging.WARNING

    def test_http_client_loggers_quieted(self):
        configure_logging(level="INFO")
        assert logging.getLogger("httpx").level == logging.WARNING

        configure_logging(level="ERROR")
        assert logging.getLogger("httpx").level == logging.ERROR

    def test_exception_rendered(self, capsys):
        configure_logging(format="json")

        try:
            raise ValueError("delivery blew up")
        except ValueError:
            get_logger("test").exception("caught an error")

        line = _last_line(capsys)
        assert "ValueError: delivery blew up" in line["exception"]


class TestLogContext:
    """Tests for log_context()."""

    def test_fields_attached_inside_block(self, capsys):
        configure_logging(format="json")

        with log_context(organization_id="org_1", webhook_id=None):
            logging.getLogger("hookrelay.delivery.engine").info("Webhook delivered")

        line = _last_line(capsys)
        assert line["organization_id"] == "org_1"
        assert "webhook_id" not in line

    def test_nested_blocks_restore_outer_fields(self):
        with log_context(chain_id="chn_1", attempt=1):
            with log_context(attempt=2):
                assert structlog.contextvars.get_contextvars() == {
                    "chain_id": "chn_1",
                    "attempt": 2,
                }
            assert structlog.contextvars.get_contextvars()["attempt"] == 1

        assert structlog.contextvars.get_contextvars() == {}
