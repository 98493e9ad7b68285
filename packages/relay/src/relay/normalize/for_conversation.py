"""Normalizers turning channel events into conversation requests."""

from typing import Any, Mapping

from relay.exceptions import ValidationError


def slack_for_conversation(params: Mapping[str, Any]) -> dict:
    _validate(params, "slack", "Slack")

    slack = params["slack"]
    event = slack.get("event") or {}
    context_key = f"slack_{slack.get('team_id')}_{params['workspace_id']}_{event.get('user')}_{event.get('channel')}"

    return {
        "conversation": {"input": {"text": event.get("text", "")}},
        "raw_input_data": {
            "slack": slack,
            "provider": "slack",
            "context_key": context_key,
            **_passthrough(params),
        },
    }


def facebook_for_conversation(params: Mapping[str, Any]) -> dict:
    _validate(params, "facebook", "Facebook")

    facebook = params["facebook"]
    messaging = messaging_event(facebook)
    page_id = page_id_of(facebook)
    sender_id = (messaging.get("sender") or {}).get("id")
    context_key = f"facebook_{sender_id}_{params['workspace_id']}_{page_id}"

    return {
        "conversation": {"input": {"text": (messaging.get("message") or {}).get("text", "")}},
        "raw_input_data": {
            "facebook": facebook,
            "provider": "facebook",
            "context_key": context_key,
            **_passthrough(params),
        },
    }


def messaging_event(facebook: Mapping[str, Any]) -> Mapping[str, Any]:
    """
    The messaging event of a Facebook payload.

    Accepts either a whole page request (entry[0].messaging[0]) or a single
    messaging event as handed over by the receive action.
    """
    if "entry" in facebook:
        try:
            return facebook["entry"][0]["messaging"][0]
        except (IndexError, KeyError, TypeError):
            return {}
    return facebook


def page_id_of(facebook: Mapping[str, Any]) -> Any:
    if "entry" in facebook:
        try:
            return facebook["entry"][0]["id"]
        except (IndexError, KeyError, TypeError):
            return None
    return (facebook.get("recipient") or {}).get("id")


def _passthrough(params: Mapping[str, Any]) -> dict:
    # Credentials travel with the request for the conversation and post steps
    return {"auth": params["auth"]} if "auth" in params else {}


def _validate(params: Mapping[str, Any], provider: str, label: str) -> None:
    if not params.get("workspace_id"):
        raise ValidationError("workspace_id not present as a package binding.")
    if params.get("provider") != provider:
        raise ValidationError(f"Provider not supplied or isn't {label}.")
    if not params.get(provider):
        raise ValidationError(f"{label} JSON data is missing.")
