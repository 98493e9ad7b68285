"""Conversation context actions backed by the ContextRepository port."""

from typing import Any, Mapping

from relay.exceptions import ValidationError

CONTEXT_KEY = "context_key"


def validate_params(params: Mapping[str, Any]) -> None:
    raw_input_data = params.get("raw_input_data")
    if not raw_input_data:
        raise ValidationError("raw_input_data absent in params.")
    if not raw_input_data.get(CONTEXT_KEY):
        raise ValidationError(f"{CONTEXT_KEY} absent in params.raw_input_data.")
    if not params.get("conversation"):
        raise ValidationError("conversation object absent in params.")
