#!/usr/bin/env python3
"""
Structured logging for the relay actions, with Slack alerts for errors.

Every record written through the chat-relay logger carries the service name,
its version and the fully qualified name of the running action, so log lines
from the many small actions of one pipeline can be told apart.

    setup_logging(level="INFO", format_type="json")
    log_info("Dispatch finished", endpoint="acme_postsequence", successful=2)
    log_warning("Cloudant unavailable, retrying", attempt=3)
    log_error("Gave up creating Cloudant database", cause="service_unavailable")

log_error also posts to the Slack incoming webhook in ALERT_WEBHOOK_URL when
one is configured.
"""

import logging
import os
import sys
import traceback
from typing import Any, Optional

import requests
from requests import RequestException

import pythonjsonlogger.json

from relay_common.environments import get_action_name

SERVICE_NAME = "chat-relay"
SERVICE_VERSION = "1.0.0"

ALERT_EMOJI = {"ERROR": ":x:", "WARNING": ":warning:"}

logger = logging.getLogger(SERVICE_NAME)


class RelayJsonFormatter(pythonjsonlogger.json.JsonFormatter):
    """JSON formatter stamping each record with the service and the action."""

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)
        log_record.setdefault("service", SERVICE_NAME)
        log_record.setdefault("version", SERVICE_VERSION)
        action = get_action_name()
        if action:
            log_record.setdefault("action", action)


def setup_logging(level: str = "INFO", format_type: str = "json") -> logging.Logger:
    """
    Point the chat-relay logger at stdout, replacing earlier handlers.

    Lambda reuses warm containers, so this runs on every invocation and must
    not stack handlers. format_type is 'json' for CloudWatch or 'text' for a
    terminal.
    """
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    if format_type == "json":
        formatter = RelayJsonFormatter(
            fmt="%(asctime)s %(name)s %(levelname)s %(message)s", datefmt="%Y-%m-%dT%H:%M:%S%z"
        )
    else:
        formatter = logging.Formatter(fmt="%(asctime)s %(levelname)-8s %(name)s | %(message)s", datefmt="%H:%M:%S")

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    return logger


def get_logger(name: str) -> logging.Logger:
    """Child of the chat-relay logger, e.g. get_logger(__name__)."""
    return logging.getLogger(f"{SERVICE_NAME}.{name}")


def _structured(level: str, cause: Optional[str] = None, **extra: Any) -> dict:
    fields = {"level": level}
    if cause:
        fields["cause"] = cause
    fields.update(extra)
    return fields


def send_alert(message: str, level: str = "ERROR") -> bool:
    """Post message to the Slack incoming webhook, if one is configured."""
    webhook_url = os.getenv("ALERT_WEBHOOK_URL")
    if not webhook_url:
        return False

    text = f"{ALERT_EMOJI.get(level, ':information_source:')} {SERVICE_NAME}: {message}"
    action = get_action_name()
    if action:
        text += f" ({action})"

    try:
        response = requests.post(webhook_url, json={"text": text}, timeout=10)
    except RequestException:
        logger.error("Failed to send alert notification", exc_info=True)
        return False
    return response.status_code == 200


def log_error(message: str, cause: Optional[str] = None, **extra: Any):
    """Log an error and raise an alert.

    Args:
        message: What went wrong
        cause: Underlying exception message, if any
        **extra: Structured fields added to the record
    """
    logger.error(message, extra=_structured("ERROR", cause, **extra))
    send_alert(f"{message} - Cause: {cause}" if cause else message, "ERROR")


def log_warning(message: str, exc_info: bool = False, **extra: Any):
    """Log a warning; with exc_info the current traceback is attached as a field."""
    fields = _structured("WARNING", **extra)
    if exc_info:
        fields["traceback"] = traceback.format_exc()
    logger.warning(message, extra=fields)


def log_info(message: str, **extra: Any):
    logger.info(message, extra=_structured("INFO", **extra))


__all__ = [
    "setup_logging",
    "get_logger",
    "send_alert",
    "log_error",
    "log_warning",
    "log_info",
]
