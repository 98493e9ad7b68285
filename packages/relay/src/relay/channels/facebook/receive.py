"""
Facebook receive action: the Messenger webhook.

Facebook calls the webhook for two things:
- subscription verification (hub.mode=subscribe), answered with hub.challenge
- page events (object=page), signed with the app secret in x-hub-signature

A page event carrying a single message is handed straight to the channel's
sub pipeline. Anything batched goes to the batched messages action, which
fans the entries out per sender/recipient pair. Both invocations are fire and
forget: the webhook only confirms that the hand-off happened.
"""

import hashlib
import hmac
import json
import logging
from typing import Any, Mapping, Optional

from relay.app import Application, app
from relay.exceptions import InvocationError, ReceiveError, ValidationError

logger = logging.getLogger(__name__)


def main(params: Mapping[str, Any], application: Optional[Application] = None) -> dict:
    validate_parameters(params)
    auth = params["auth"]

    if is_url_verification_event(params, auth):
        return {"text": params.get("hub.challenge")}

    if is_page_object(params):
        verify_facebook_signature_header(params, auth)
        action_params, action_name = payload_for_action_invocation(params, auth)
        application = application or app()
        return invoke_action(application, action_params, action_name)

    raise ReceiveError(
        {
            "status": 400,
            "text": "Neither a page type request nor a verfication type request detected",
        }
    )


def payload_for_action_invocation(params: Mapping[str, Any], auth: Mapping[str, Any]) -> tuple[dict, str]:
    """Pick the action to run and build its parameters."""
    if is_batched_message(params):
        action_params = dict(params)
        action_params["auth"] = auth
        return action_params, params["batched_messages"]

    action_params = {
        "facebook": params["entry"][0]["messaging"][0],
        "provider": "facebook",
        "auth": auth,
    }
    return action_params, params["sub_pipeline"]


def invoke_action(application: Application, action_params: dict, action_name: str) -> dict:
    invoker = application.get_action_invoker()
    try:
        response = invoker.invoke(action_name, action_params, blocking=False)
    except InvocationError as e:
        logger.warning(f"Failed to invoke {action_name}: {e.error}")
        raise ReceiveError(
            {
                "text": 400,
                "actionName": action_name,
                "message": (
                    f"There was an issue invoking {action_name}. "
                    "Please make sure this action exists in your namespace"
                ),
            }
        ) from e

    # 200 only confirms the hand-off; the activation id is for tracing the invoked action
    return {
        "text": 200,
        "activationId": response.activation_id,
        "actionName": action_name,
        "message": (
            f"Response code 200 above only tells you that receive action was invoked successfully. "
            f"However, it does not really say if {action_name} was invoked successfully. "
            f"Please use {response.activation_id} to get more details about this invocation."
        ),
    }


def is_url_verification_event(params: Mapping[str, Any], auth: Mapping[str, Any]) -> bool:
    return (
        params.get("hub.mode") == "subscribe"
        and params.get("hub.verify_token") == auth["facebook"].get("verification_token")
    )


def is_page_object(params: Mapping[str, Any]) -> bool:
    return params.get("object") == "page"


def is_batched_message(params: Mapping[str, Any]) -> bool:
    entries = params.get("entry") or []
    if not entries:
        raise ValidationError("Page request contains no entries.")
    return len(entries) > 1 or len(entries[0].get("messaging") or []) > 1


def verify_facebook_signature_header(params: Mapping[str, Any], auth: Mapping[str, Any]) -> None:
    """Check x-hub-signature against an HMAC-SHA1 of the escaped request payload."""
    headers = params.get("headers") or {}
    x_hub_signature = headers.get("x-hub-signature")
    if not x_hub_signature:
        raise ValidationError("x-hub-signature header not found.")

    app_secret = auth["facebook"].get("app_secret") or ""
    request_payload = {key: params[key] for key in ("object", "entry") if key in params}
    body = escape_special_chars(json.dumps(request_payload, separators=(",", ":"), ensure_ascii=False))

    expected_hash = x_hub_signature.split("=", 1)[-1]
    calculated_hash = hmac.new(app_secret.encode(), body.encode("utf-8"), hashlib.sha1).hexdigest()

    if not hmac.compare_digest(calculated_hash, expected_hash):
        raise ValidationError(
            "Verfication of facebook signature header failed. Please make sure you are passing the correct app secret"
        )


def escape_special_chars(payload: str) -> str:
    """
    Escape a JSON payload the way Facebook does before signing it.

    Characters from U+00A0 up, '%' and '@' become lower case \\uXXXX escapes (UTF-16
    code units, so characters outside the BMP become surrogate pairs). '<' is
    escaped with an upper case \\u003C and '/' becomes \\/, so 'Aäöåc' turns into
    'A\\u00e4\\u00f6\\u00e5c'.
    """
    escaped = []
    for char in payload:
        code = ord(char)
        if code == 37 or code == 64 or code >= 160:
            escaped.extend(f"\\u{unit:04x}" for unit in _utf16_units(code))
        elif code == 60:
            escaped.append("\\u003C")
        elif code == 47:
            escaped.append("\\/")
        else:
            escaped.append(char)
    return "".join(escaped)


def _utf16_units(code: int) -> tuple[int, ...]:
    if code <= 0xFFFF:
        return (code,)
    code -= 0x10000
    return (0xD800 + (code >> 10), 0xDC00 + (code & 0x3FF))


def validate_parameters(params: Mapping[str, Any]) -> None:
    if not params.get("sub_pipeline"):
        raise ValidationError(
            "Subpipeline name does not exist. Please make sure your channel package has the binding 'sub_pipeline'"
        )
    if not params.get("batched_messages"):
        raise ValidationError(
            "Batched Messages action name does not exist. "
            "Please make sure your channel package has the binding 'batched_messages'"
        )
    auth = params.get("auth")
    if not isinstance(auth, Mapping) or not isinstance(auth.get("facebook"), Mapping):
        raise ValidationError("auth.facebook not found.")
