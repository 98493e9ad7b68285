import json
import logging
from unittest.mock import MagicMock, patch

import pytest
from requests import RequestException

from relay_common.environments import get_env, get_int_env, get_json_env
from relay_common.logging import SERVICE_NAME, RelayJsonFormatter, get_logger, log_error, log_info, setup_logging


class TestGetEnv:
    def test_strips_whitespace(self, monkeypatch):
        monkeypatch.setenv("RELAY_TEST_VALUE", "  value ")
        assert get_env("RELAY_TEST_VALUE") == "value"

    @pytest.mark.parametrize("raw", ["", "-", "   "])
    def test_placeholders_read_as_unset(self, monkeypatch, raw):
        monkeypatch.setenv("RELAY_TEST_VALUE", raw)
        assert get_env("RELAY_TEST_VALUE") is None

    def test_required_and_missing(self, monkeypatch):
        monkeypatch.delenv("RELAY_TEST_VALUE", raising=False)
        with pytest.raises(ValueError, match="RELAY_TEST_VALUE environment variable not set"):
            get_env("RELAY_TEST_VALUE")

    def test_optional_default(self, monkeypatch):
        monkeypatch.delenv("RELAY_TEST_VALUE", raising=False)
        assert get_env("RELAY_TEST_VALUE", required=False, default="x") == "x"

    def test_int_env(self, monkeypatch):
        monkeypatch.setenv("RELAY_TEST_VALUE", "7")
        assert get_int_env("RELAY_TEST_VALUE", 3) == 7
        monkeypatch.delenv("RELAY_TEST_VALUE")
        assert get_int_env("RELAY_TEST_VALUE", 3) == 3


class TestGetJsonEnv:
    def test_unset_is_empty(self):
        assert get_json_env("RELAY_BINDINGS") == {}

    def test_parses_object(self, monkeypatch):
        monkeypatch.setenv("RELAY_BINDINGS", '{"workspace_id": "ws-1"}')
        assert get_json_env("RELAY_BINDINGS") == {"workspace_id": "ws-1"}

    @pytest.mark.parametrize("raw", ["[1, 2]", "{broken", '"text"'])
    def test_rejects_non_objects(self, monkeypatch, raw):
        monkeypatch.setenv("RELAY_BINDINGS", raw)
        with pytest.raises(ValueError, match="RELAY_BINDINGS must hold a JSON object"):
            get_json_env("RELAY_BINDINGS")


class TestLogging:
    def test_get_logger_is_namespaced(self):
        assert get_logger("relay.handlers").name == f"{SERVICE_NAME}.relay.handlers"

    def test_setup_logging_replaces_handlers(self):
        service_logger = setup_logging(level="debug", format_type="text")
        setup_logging(level="warning", format_type="json")

        assert len(service_logger.handlers) == 1
        assert service_logger.level == logging.WARNING

    def test_log_info_carries_extra_fields(self, caplog):
        with caplog.at_level(logging.INFO, logger=SERVICE_NAME):
            log_info("Dispatch finished", successful=2)

        record = caplog.records[-1]
        assert record.getMessage() == "Dispatch finished"
        assert record.successful == 2

    @patch("relay_common.logging.requests.post")
    def test_log_error_without_webhook_sends_nothing(self, mock_post):
        log_error("Gave up", cause="service_unavailable")
        mock_post.assert_not_called()

    @patch("relay_common.logging.requests.post")
    def test_log_error_alerts_webhook(self, mock_post, monkeypatch):
        monkeypatch.setenv("ALERT_WEBHOOK_URL", "https://hooks.example.com/alert")
        monkeypatch.setenv("RELAY_ACTION_NAME", "/ns/acme_slack/post")
        mock_post.return_value = MagicMock(status_code=200)

        log_error("Gave up", cause="service_unavailable")

        payload = mock_post.call_args.kwargs["json"]
        assert payload == {"text": f":x: {SERVICE_NAME}: Gave up - Cause: service_unavailable (/ns/acme_slack/post)"}

    def test_json_records_name_the_action(self, monkeypatch):
        monkeypatch.setenv("RELAY_ACTION_NAME", "/ns/acme_slack/post")
        formatter = RelayJsonFormatter(fmt="%(levelname)s %(message)s")
        record = logging.LogRecord(SERVICE_NAME, logging.INFO, __file__, 1, "posted", None, None)

        line = json.loads(formatter.format(record))

        assert line["message"] == "posted"
        assert line["service"] == SERVICE_NAME
        assert line["action"] == "/ns/acme_slack/post"

    @patch("relay_common.logging.requests.post", side_effect=RequestException("down"))
    def test_failed_alert_does_not_raise(self, mock_post, monkeypatch):
        monkeypatch.setenv("ALERT_WEBHOOK_URL", "https://hooks.example.com/alert")
        log_error("Gave up")
        mock_post.assert_called_once()
