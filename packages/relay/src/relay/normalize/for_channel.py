"""
Normalizers turning conversation responses into channel replies.

Plain output.text lines are joined with spaces into a single message. When
the response carries output.generic, the reply's message becomes the ordered
list of fragments for the channel's multiple post action.
"""

from typing import Any, Mapping

from relay.exceptions import ValidationError
from relay.normalize.for_conversation import messaging_event
from relay.normalize.generic import to_fragments


def conversation_for_slack(params: Mapping[str, Any]) -> dict:
    output = _validate_conversation(params)
    raw_input_data = params["raw_input_data"]
    slack = raw_input_data.get("slack")
    if not slack:
        raise ValidationError("No Slack input data found.")
    _require_conversation_input(raw_input_data)

    channel = (slack.get("event") or {}).get("channel")
    if not channel:
        raise ValidationError("No Slack channel found in raw data.")

    reply = {
        "channel": channel,
        "raw_input_data": raw_input_data,
        "raw_output_data": {"conversation": params["conversation"]},
    }
    if output.get("generic") is not None:
        reply["message"] = to_fragments(output["generic"], "slack")
    else:
        reply["text"] = " ".join(output.get("text") or [])
    return reply


def conversation_for_facebook(params: Mapping[str, Any]) -> dict:
    output = _validate_conversation(params)
    raw_input_data = params["raw_input_data"]
    facebook = raw_input_data.get("facebook")
    if not facebook:
        raise ValidationError("No Facebook input data found.")
    _require_conversation_input(raw_input_data)

    sender_id = (messaging_event(facebook).get("sender") or {}).get("id")
    if not sender_id:
        raise ValidationError("No Facebook sender_id found in raw data.")

    if output.get("generic") is not None:
        message = to_fragments(output["generic"], "facebook")
    else:
        message = {"text": " ".join(output.get("text") or [])}

    return {
        "recipient": {"id": sender_id},
        "message": message,
        "raw_input_data": raw_input_data,
        "raw_output_data": {"conversation": params["conversation"]},
    }


def _validate_conversation(params: Mapping[str, Any]) -> Mapping[str, Any]:
    conversation = params.get("conversation")
    if not conversation:
        raise ValidationError("No conversation output.")
    output = conversation.get("output") or {}
    if output.get("text") is None and output.get("generic") is None:
        raise ValidationError("No conversation output message.")
    if not params.get("raw_input_data"):
        raise ValidationError("No raw input data found.")
    return output


def _require_conversation_input(raw_input_data: Mapping[str, Any]) -> None:
    if not raw_input_data.get("conversation"):
        raise ValidationError("No Conversation input data found.")
