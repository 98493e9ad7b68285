"""
Slack post action.

Sends one Slack message as the bot through the chat.postMessage family of
Web API methods. Credential and pipeline bookkeeping keys are stripped before
the form is posted.
"""

import json
import logging
from typing import Any, Mapping

import requests

from relay.exceptions import PostError, ValidationError

logger = logging.getLogger(__name__)

SLACK_POST_URL = "https://slack.com/api/chat.postMessage"

# Methods that only accept attachments as a JSON string inside the form
MUST_URL_ENCODE_URLS = (
    "https://slack.com/api/chat.postMessage",
    "https://slack.com/api/chat.postEphemeral",
    "https://slack.com/api/chat.update",
    "https://slack.com/api/chat.unfurl",
)

NO_INCLUDE_KEYS = frozenset(
    {
        "client_id",
        "client_secret",
        "redirect_uri",
        "verification_token",
        "access_token",
        "bot_access_token",
        "bot_user_id",
        "raw_input_data",
        "raw_output_data",
        "url",
        "auth",
        "tagged_responses",
    }
)


def main(params: Mapping[str, Any]) -> dict:
    validate_parameters(params)

    slack_params = extract_slack_parameters(params)
    post_url = params.get("url") or SLACK_POST_URL
    return post_slack(slack_params, post_url)


def post_slack(slack_params: dict, post_url: str) -> dict:
    """Form-POST the message and return the parameters that were sent."""
    response = requests.post(
        post_url,
        data=stringify_url_attachments(slack_params, post_url),
        timeout=10,
    )
    if response.status_code != 200:
        raise PostError(f"Action returned with status code {response.status_code}, message: {response.reason}")

    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("ok") is False:
        raise PostError(f"Slack rejected the message: {body.get('error', 'unknown_error')}")

    logger.info(f"Posted message to Slack channel {slack_params.get('channel')}")
    return slack_params


def stringify_url_attachments(params: Mapping[str, Any], post_url: str) -> dict:
    slack_params = dict(params)
    if slack_params.get("attachments") and post_url in MUST_URL_ENCODE_URLS:
        slack_params["attachments"] = json.dumps(slack_params["attachments"])
    return slack_params


def extract_slack_parameters(params: Mapping[str, Any]) -> dict:
    """Keep only what chat.postMessage understands, plus the bot token."""
    slack_params = {k: v for k, v in params.items() if k not in NO_INCLUDE_KEYS}
    slack_params["as_user"] = slack_params.get("as_user") or "true"
    slack_params["token"] = params.get("bot_access_token")
    return slack_params


def validate_parameters(params: Mapping[str, Any]) -> None:
    if not params.get("bot_access_token"):
        raise ValidationError("No bot access token provided.")
    if not params.get("channel"):
        raise ValidationError("Channel not provided.")
    if not params.get("text") and not params.get("attachments"):
        raise ValidationError("Message text not provided.")
