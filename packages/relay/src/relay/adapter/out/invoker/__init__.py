"""
Output adapters implementing the ActionInvoker port.

- LambdaActionInvoker: invokes AWS Lambda functions through boto3
- LocalActionInvoker: calls in-process action functions, for the operator CLI and tests
"""

import json
import logging
import uuid
from typing import Any, Callable, Mapping, Optional

from botocore.exceptions import BotoCoreError, ClientError

from relay.app.port.out import ActionInvoker
from relay.exceptions import InvocationError
from relay.models import InvocationResponse
from relay_common.environments import get_lambda_client

logger = logging.getLogger(__name__)


def _read_payload(response: Mapping[str, Any]) -> Any:
    payload = response.get("Payload")
    if payload is None:
        return None
    raw = payload.read() if hasattr(payload, "read") else payload
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8")
    if not raw:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


class LambdaActionInvoker(ActionInvoker):
    """
    Adapter invoking actions deployed as AWS Lambda functions.

    Blocking invocations use the RequestResponse type and return the function's
    decoded payload. Non-blocking invocations use the Event type and only
    return the request id.
    """

    def __init__(self, lambda_client=None):
        self.lambda_client = lambda_client or get_lambda_client()

    def invoke(self, name: str, params: Mapping[str, Any], blocking: bool = True) -> InvocationResponse:
        invocation_type = "RequestResponse" if blocking else "Event"
        logger.debug(f"Invoking {name} ({invocation_type})")

        try:
            response = self.lambda_client.invoke(
                FunctionName=name,
                InvocationType=invocation_type,
                Payload=json.dumps(params),
            )
        except ClientError as e:
            raise InvocationError(
                {"error": e.response.get("Error", {}), "message": str(e)}, action_name=name
            ) from e
        except BotoCoreError as e:
            # Connection and read timeouts; the function may or may not have run
            logger.warning(f"Transport error invoking {name}: {e}")
            raise InvocationError({"error": type(e).__name__, "message": str(e)}, action_name=name) from e

        status_code = response.get("StatusCode", 0)
        request_id = response.get("ResponseMetadata", {}).get("RequestId")
        payload = _read_payload(response)

        if response.get("FunctionError"):
            raise InvocationError(
                {
                    "functionError": response["FunctionError"],
                    "error": payload,
                    "activationId": request_id,
                },
                action_name=name,
            )

        if status_code < 200 or status_code >= 300:
            raise InvocationError(
                {"message": f"Unexpected status code {status_code}", "activationId": request_id},
                action_name=name,
            )

        return InvocationResponse(result=payload, activation_id=request_id)


class LocalActionInvoker(ActionInvoker):
    """
    Adapter calling registered in-process actions.

    Each action is a callable taking the params mapping and returning the
    action's result. Any exception it raises becomes an InvocationError.
    """

    def __init__(self, actions: Optional[Mapping[str, Callable[[dict], Any]]] = None):
        self.actions: dict[str, Callable[[dict], Any]] = dict(actions or {})

    def register(self, name: str, action: Callable[[dict], Any]) -> None:
        self.actions[name] = action

    def invoke(self, name: str, params: Mapping[str, Any], blocking: bool = True) -> InvocationResponse:
        action = self.actions.get(name)
        if action is None:
            raise InvocationError({"message": f"The requested resource does not exist: {name}"}, action_name=name)

        activation_id = uuid.uuid4().hex
        try:
            result = action(dict(params))
        except Exception as e:
            raise InvocationError(
                {"message": str(e), "activationId": activation_id}, action_name=name
            ) from e

        return InvocationResponse(result=result, activation_id=activation_id)
