"""
AWS Lambda entry points for every relay action.

Two kinds of events reach these handlers:
- API Gateway requests (webhooks from Slack and Facebook). The body and
  query string become the action parameters, the lower-cased headers go to
  params["headers"], and outcomes are mapped to {"statusCode", "body"}.
- Direct invocations from another action (post sequences, sub pipelines).
  The event is the parameter mapping itself; failures are raised so the
  caller sees a FunctionError.

Deployment-wide parameters (verification tokens, auth documents, pipeline
names) come from the RELAY_BINDINGS JSON object and take precedence over
anything in the event.
"""

import json
from functools import wraps
from typing import Any, Callable, Mapping

from relay.channels.facebook import batched_messages as facebook_batched_messages
from relay.channels.facebook import multiple_post as facebook_multiple_post
from relay.channels.facebook import post as facebook_post
from relay.channels.facebook import receive as facebook_receive
from relay.channels.slack import multiple_post as slack_multiple_post
from relay.channels.slack import post as slack_post
from relay.channels.slack import receive as slack_receive
from relay.context import load_context, save_context
from relay.conversation import call_conversation
from relay.deploy import create_database
from relay.exceptions import (
    ConversationError,
    DispatchFailedError,
    InvocationError,
    PipelineHalt,
    PostError,
    ProvisioningError,
    ReceiveError,
    RelayError,
    ValidationError,
)
from relay.normalize import for_channel, for_conversation
from relay_common.environments import get_env, get_json_env
from relay_common.logging import get_logger, log_error, setup_logging

logger = get_logger(__name__)


def is_http_event(event: Mapping[str, Any]) -> bool:
    return "requestContext" in event or "httpMethod" in event or "routeKey" in event


def params_from_http_event(event: Mapping[str, Any]) -> dict:
    body = event.get("body") or {}
    if isinstance(body, str):
        body = json.loads(body) if body.strip() else {}
    if not isinstance(body, Mapping):
        raise ValueError("Request body must be a JSON object")

    params = dict(event.get("queryStringParameters") or {})
    params.update(body)
    params["headers"] = {k.lower(): v for k, v in (event.get("headers") or {}).items()}
    return params


def http_response(status_code: int, result: Any, text_body: bool = False) -> dict:
    if text_body and isinstance(result, Mapping) and "text" in result:
        return {
            "statusCode": status_code,
            "headers": {"Content-Type": "text/plain"},
            "body": str(result["text"]),
        }
    return {"statusCode": status_code, "body": json.dumps(result)}


def error_response(error: RelayError) -> dict:
    if isinstance(error, PipelineHalt):
        return http_response(200, error.payload)
    if isinstance(error, ReceiveError):
        status = error.payload.get("status") or error.payload.get("text") or 400
        return {"statusCode": int(status), "body": json.dumps(error.payload)}
    if isinstance(error, ValidationError):
        return {"statusCode": 400, "body": json.dumps({"error": str(error)})}
    if isinstance(error, ProvisioningError):
        return {"statusCode": error.code, "body": json.dumps(error.to_dict())}
    if isinstance(error, DispatchFailedError):
        return {"statusCode": 502, "body": json.dumps(error.result)}
    if isinstance(error, (PostError, InvocationError, ConversationError)):
        return {"statusCode": 502, "body": json.dumps({"error": str(error)})}
    return {"statusCode": 500, "body": json.dumps({"error": str(error)})}


def lambda_action(action: Callable[[dict], Any], text_body: bool = False) -> Callable[[dict, Any], Any]:
    """Wrap an action taking a parameter mapping into a Lambda handler.

    With text_body the result's `text` field is returned as a plain text body,
    which is what Facebook expects from its webhook ("200" or the hub challenge).
    """

    @wraps(action)
    def handler(event, _context):
        setup_logging(
            level=get_env("LOG_LEVEL", required=False) or "INFO",
            format_type=get_env("LOG_FORMAT", required=False) or "json",
        )

        bindings = get_json_env("RELAY_BINDINGS")

        if not is_http_event(event):
            return action({**event, **bindings})

        try:
            params = {**params_from_http_event(event), **bindings}
        except ValueError as e:
            logger.warning(f"Rejecting request with malformed body: {e}")
            return {"statusCode": 400, "body": json.dumps({"error": "Malformed JSON body"})}

        try:
            return http_response(200, action(params), text_body=text_body)
        except RelayError as e:
            logger.info(f"{action.__module__} ended with {type(e).__name__}: {e}")
            return error_response(e)
        except Exception as e:
            log_error(f"Unhandled error in {action.__module__}", cause=str(e))
            logger.error(f"Error processing request: {e}", exc_info=True)
            return {"statusCode": 500, "body": json.dumps({"error": "Internal server error"})}

    return handler


slack_receive_handler = lambda_action(slack_receive.main)
slack_post_handler = lambda_action(slack_post.main)
slack_multiple_post_handler = lambda_action(slack_multiple_post.main)

facebook_receive_handler = lambda_action(facebook_receive.main, text_body=True)
facebook_post_handler = lambda_action(facebook_post.main)
facebook_multiple_post_handler = lambda_action(facebook_multiple_post.main)
facebook_batched_messages_handler = lambda_action(facebook_batched_messages.main)

normalize_slack_for_conversation_handler = lambda_action(for_conversation.slack_for_conversation)
normalize_facebook_for_conversation_handler = lambda_action(for_conversation.facebook_for_conversation)
normalize_conversation_for_slack_handler = lambda_action(for_channel.conversation_for_slack)
normalize_conversation_for_facebook_handler = lambda_action(for_channel.conversation_for_facebook)

call_conversation_handler = lambda_action(call_conversation.main)
load_context_handler = lambda_action(load_context.main)
save_context_handler = lambda_action(save_context.main)

create_database_handler = lambda_action(create_database.main)
