"""
Conversion of multi-modal conversation output into channel fragments.

Conversation responses may carry output.generic: an ordered list of
response items (text, pause, image, option). Each channel turns the list into
the fragments its multiple post action delivers one by one. Response types a
channel cannot render (e.g. connect_to_agent) are dropped.
"""

import logging
from typing import Any, Iterable, Mapping

logger = logging.getLogger(__name__)


def option_value(option: Mapping[str, Any]) -> str:
    """Text a user sends back when picking an option."""
    value = option.get("value")
    if isinstance(value, Mapping):
        return (value.get("input") or {}).get("text") or option.get("label", "")
    return value if value is not None else option.get("label", "")


def slack_fragment(item: Mapping[str, Any]) -> dict | None:
    response_type = item.get("response_type")

    if response_type == "text":
        return {"text": item.get("text", "")}

    if response_type == "pause":
        return {"response_type": "pause", "time": item.get("time", 0), "typing": bool(item.get("typing"))}

    if response_type == "image":
        return {
            "attachments": [
                {
                    "title": item.get("title", ""),
                    "pretext": item.get("description", ""),
                    "image_url": item.get("source"),
                }
            ]
        }

    if response_type == "option":
        title = item.get("title", "")
        return {
            "attachments": [
                {
                    "text": title,
                    "callback_id": title,
                    "actions": [
                        {
                            "name": option.get("label"),
                            "type": "button",
                            "text": option.get("label"),
                            "value": option_value(option),
                        }
                        for option in item.get("options") or []
                    ],
                }
            ]
        }

    return None


def facebook_fragment(item: Mapping[str, Any]) -> dict | None:
    response_type = item.get("response_type")

    if response_type == "text":
        return {"text": item.get("text", "")}

    if response_type == "pause":
        if item.get("typing"):
            return {"sender_action": "typing_on", "time": item.get("time", 0)}
        return {"response_type": "pause", "time": item.get("time", 0)}

    if response_type == "image":
        return {"attachment": {"type": "image", "payload": {"url": item.get("source")}}}

    if response_type == "option":
        return {
            "text": item.get("title", ""),
            "quick_replies": [
                {
                    "content_type": "text",
                    "title": option.get("label"),
                    "payload": option_value(option),
                }
                for option in item.get("options") or []
            ],
        }

    return None


def to_fragments(generic: Iterable[Mapping[str, Any]], channel: str) -> list[dict]:
    convert = slack_fragment if channel == "slack" else facebook_fragment
    fragments = []
    for item in generic:
        fragment = convert(item)
        if fragment is None:
            logger.info(f"Skipping unsupported {channel} response type {item.get('response_type')}")
            continue
        fragments.append(fragment)
    return fragments
