"""Custom exceptions for the relay actions."""

import json
from typing import Any, Optional


class RelayError(Exception):
    """Base class for all errors raised by relay actions."""

    pass


class ValidationError(RelayError):
    """Raised when a required parameter is missing or malformed."""

    pass


class PipelineHalt(RelayError):
    """Raised to stop the surrounding action sequence without signalling a failure.

    The payload is what the host should hand back to the caller, e.g. the
    challenge for a Slack URL verification request.
    """

    def __init__(self, payload: Any):
        super().__init__(payload)
        self.payload = payload


class InvocationError(RelayError):
    """Raised when invoking a downstream action fails."""

    def __init__(self, error: Any, action_name: Optional[str] = None):
        super().__init__(error)
        self.error = error
        self.action_name = action_name


class PostError(RelayError):
    """Raised when a channel API rejects a post."""

    pass


class DispatchFailedError(RelayError):
    """Raised by the multiple post entry points when at least one post failed.

    The message is the JSON of the dispatch result, which is all a direct
    Lambda caller gets back as errorMessage.
    """

    def __init__(self, result: dict):
        super().__init__(json.dumps(result, default=str))
        self.result = result


class ReceiveError(RelayError):
    """Raised by a receive action with a structured rejection body."""

    def __init__(self, payload: dict):
        super().__init__(payload.get("message") or payload.get("text"))
        self.payload = payload


class ProvisioningError(RelayError):
    """Raised when database provisioning fails with a terminal error."""

    def __init__(self, code: int, message: Any):
        super().__init__(json.dumps({"code": code, "message": message}, default=str))
        self.code = code
        self.message = message

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}


class ConversationError(RelayError):
    """Raised when the conversation service call fails."""

    pass
