"""Call conversation action: sends the user's text to the conversation service."""

import logging
from typing import Any, Mapping, Optional

from relay.app import Application, app
from relay.app.port.out import ConversationApi
from relay.exceptions import ValidationError

logger = logging.getLogger(__name__)

REQUIRED_CREDENTIALS = ("username", "password", "workspace_id")


def main(
    params: Mapping[str, Any],
    api: Optional[ConversationApi] = None,
    application: Optional[Application] = None,
) -> dict:
    validate_params(params)

    raw_input_data = dict(params["raw_input_data"])
    credentials = conversation_credentials(raw_input_data["auth"])

    if api is None:
        application = application or app()
        api = application.get_conversation_api(url=params.get("url"), version_date=params.get("version_date"))

    payload = dict(params["conversation"])
    payload["workspace_id"] = credentials["workspace_id"]

    response = api.message(payload, credentials)
    logger.info(f"Conversation replied for provider {raw_input_data.get('provider')}")

    raw_input_data["conversation"] = params["conversation"]
    return {"conversation": response, "raw_input_data": raw_input_data}


def conversation_credentials(auth: Mapping[str, Any]) -> Mapping[str, Any]:
    conversation = auth.get("conversation")
    if not conversation:
        raise ValidationError("conversation object absent in auth data.")
    for key in REQUIRED_CREDENTIALS:
        if not conversation.get(key):
            raise ValidationError(f"conversation {key} absent in auth.conversation")
    return conversation


def validate_params(params: Mapping[str, Any]) -> None:
    conversation = params.get("conversation") or {}
    if not (conversation.get("input") or {}).get("text"):
        raise ValidationError("No message supplied to send to the Conversation service.")

    raw_input_data = params.get("raw_input_data") or {}
    provider = raw_input_data.get("provider")
    if not provider or not raw_input_data.get(provider):
        raise ValidationError("No channel raw input data found.")

    if not raw_input_data.get("auth"):
        raise ValidationError("No auth found.")
