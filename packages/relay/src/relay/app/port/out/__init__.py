"""
Ports and Adapters Architecture - Output Ports

Interfaces describing what the relay actions need from the outside world:

- ActionInvoker: run another action on the host platform (the channel post
  sequence, a sub-pipeline) and get its result back
- ConversationApi: send one user turn to the conversation service
- ContextRepository: read and write conversation context between turns

Actions depend only on these ports. Adapters in relay.adapter.out implement them.
"""

from abc import ABC, abstractmethod
from typing import Any, Mapping

from relay.models import InvocationResponse


class ActionInvoker(ABC):
    """Output port for invoking actions on the host platform."""

    @abstractmethod
    def invoke(self, name: str, params: Mapping[str, Any], blocking: bool = True) -> InvocationResponse:
        """
        Invoke the named action with params.

        Args:
            name: Name of the action or sequence to invoke
            params: JSON-serializable parameters for the action
            blocking: Wait for the action's result when True

        Returns:
            InvocationResponse with the action's result and activation id

        Raises:
            InvocationError: If the invocation or the invoked action fails
        """
        pass


class ConversationApi(ABC):
    """Output port for the conversation service."""

    @abstractmethod
    def message(self, payload: Mapping[str, Any], credentials: Mapping[str, Any]) -> dict:
        """
        Send one user turn to the conversation service.

        Args:
            payload: Message request, at minimum {"input": {"text": ...}}; may carry "context"
            credentials: The auth.conversation mapping (username, password, workspace_id)

        Returns:
            Conversation response with at least output.text (a list of strings) and context

        Raises:
            ConversationError: If the service call fails
        """
        pass


class ContextRepository(ABC):
    """Output port for conversation context storage."""

    @abstractmethod
    def load(self, key: str) -> dict:
        """Return the stored context for key, or an empty dict when none exists."""
        pass

    @abstractmethod
    def save(self, key: str, context: Mapping[str, Any]) -> None:
        """Store context under key, replacing any previous value."""
        pass
