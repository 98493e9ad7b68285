"""
Facebook post action.

Sends one Send API request (a message or a sender action) to the Messenger
Platform using the page access token from the auth document.
"""

import logging
from typing import Any, Mapping

import requests
from requests import RequestException

from relay.exceptions import PostError, ValidationError

logger = logging.getLogger(__name__)

FACEBOOK_POST_URL = "https://graph.facebook.com/v2.6/me/messages"

NO_INCLUDE_KEYS = frozenset(
    {
        "page_access_token",
        "app_secret",
        "verification_token",
        "raw_input_data",
        "raw_output_data",
        "sub_pipeline",
        "batched_messages",
        "url",
        "auth",
        "tagged_responses",
    }
)


def main(params: Mapping[str, Any]) -> dict:
    validate_parameters(params)

    access_token = page_access_token(params.get("auth") or {})
    facebook_params = extract_facebook_params(params)
    post_url = params.get("url") or FACEBOOK_POST_URL
    return post_facebook(facebook_params, post_url, access_token)


def post_facebook(facebook_params: dict, post_url: str, access_token: str) -> dict:
    """
    POST the Send API body and return Facebook's expected "200" text response.

    The host returns the `text` field verbatim to the caller, which is what
    the Messenger Platform looks for.
    """
    try:
        response = requests.post(
            post_url,
            params={"access_token": access_token},
            json=facebook_params,
            timeout=10,
        )
    except RequestException as e:
        raise PostError(f"An unexpected error occurred when sending POST to {post_url}: {e}") from e

    if response.status_code != 200:
        raise PostError(f"Action returned with status code {response.status_code}, message: {response.reason}")

    recipient = facebook_params.get("recipient", {}).get("id")
    logger.info(f"Posted message to Facebook recipient {recipient}")
    return {"text": response.status_code, "params": facebook_params, "url": post_url}


def page_access_token(auth: Mapping[str, Any]) -> str:
    token = (auth.get("facebook") or {}).get("page_access_token")
    if not token:
        raise ValidationError("auth.facebook.page_access_token not found.")
    return token


def extract_facebook_params(params: Mapping[str, Any]) -> dict:
    return {k: v for k, v in params.items() if k not in NO_INCLUDE_KEYS}


def validate_parameters(params: Mapping[str, Any]) -> None:
    recipient = params.get("recipient")
    if not isinstance(recipient, Mapping) or not recipient.get("id"):
        raise ValidationError("Recipient id not provided.")
    if not params.get("message") and not params.get("sender_action"):
        raise ValidationError("Message object not provided.")
