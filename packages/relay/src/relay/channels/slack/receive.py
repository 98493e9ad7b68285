"""
Slack receive action.

Entry point of the Slack pipeline for Events API subscriptions. Verification
requests, bot echoes and Slack's own timeout retries halt the pipeline with
a payload meant for the caller; user messages continue down the pipeline.
"""

import logging
from typing import Any, Mapping

from relay.exceptions import PipelineHalt, ValidationError

logger = logging.getLogger(__name__)

# Host platform and deployment keys that never leave this action
PLATFORM_KEYS = (
    "headers",
    "method",
    "path",
    "client_id",
    "client_secret",
    "redirect_uri",
    "verification_token",
    "starter_code_action_name",
)


def main(params: Mapping[str, Any]) -> dict:
    validate_parameters(params)

    subscription_type = params["type"]

    if subscription_type == "url_verification":
        # Halting hands the challenge straight back to Slack
        raise PipelineHalt({"code": 200, "challenge": params.get("challenge") or ""})

    if subscription_type == "event_callback":
        event = params.get("event") or {}
        event_type = event.get("type")
        if not event_type:
            raise ValidationError("No event type specified in event callback slack subscription.")

        if event_type == "message":
            if event.get("bot_id"):
                raise PipelineHalt({"bot_id": event["bot_id"]})
            if is_timeout_retry(params.get("headers") or {}):
                logger.info("Ignoring Slack retry of an event that timed out")
                raise PipelineHalt(extract_slack_parameters(params))
            return extract_slack_parameters(params)

        raise ValidationError("Message type not understood.")

    raise ValidationError("Event type not understood.")


def is_timeout_retry(headers: Mapping[str, Any]) -> bool:
    """True for a duplicate Slack resent because the first delivery timed out."""
    if headers.get("x-slack-retry-reason") != "http_timeout":
        return False
    try:
        return int(headers.get("x-slack-retry-num") or 0) > 0
    except (TypeError, ValueError):
        return False


def extract_slack_parameters(params: Mapping[str, Any]) -> dict:
    slack_params = {k: v for k, v in params.items() if k not in PLATFORM_KEYS}
    return {"slack": slack_params, "provider": "slack"}


def validate_parameters(params: Mapping[str, Any]) -> None:
    token = params.get("token")
    expected = params.get("verification_token")
    if not token or not expected or token != expected:
        raise ValidationError("Verification token is incorrect.")

    if not params.get("type"):
        raise ValidationError("No subscription type specified.")
