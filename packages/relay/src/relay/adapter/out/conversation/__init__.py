"""
Output adapters implementing the ConversationApi port.

- WatsonConversationApi: the Watson Conversation v1 message API over HTTP
- AnthropicConversationApi: Anthropic's Claude models, shaped like a Watson response

Both return a mapping with output.text (list of strings) and context, which
is what the channel normalizers and the context store expect.
"""

import logging
from typing import Any, Mapping, Optional

import anthropic
import requests
from requests import RequestException

from relay.app.port.out import ConversationApi
from relay.exceptions import ConversationError

logger = logging.getLogger(__name__)

DEFAULT_WATSON_URL = "https://gateway.watsonplatform.net/conversation/api"
DEFAULT_VERSION_DATE = "2017-05-26"


class WatsonConversationApi(ConversationApi):
    """Adapter for the Watson Conversation service."""

    def __init__(
        self,
        url: Optional[str] = None,
        version_date: Optional[str] = None,
        timeout: float = 10,
    ):
        self.url = (url or DEFAULT_WATSON_URL).rstrip("/")
        self.version_date = version_date or DEFAULT_VERSION_DATE
        self.timeout = timeout

    def message(self, payload: Mapping[str, Any], credentials: Mapping[str, Any]) -> dict:
        workspace_id = credentials["workspace_id"]
        body = {k: v for k, v in payload.items() if k != "workspace_id"}
        url = f"{self.url}/v1/workspaces/{workspace_id}/message"

        try:
            response = requests.post(
                url,
                params={"version": self.version_date},
                json=body,
                auth=(credentials["username"], credentials["password"]),
                timeout=self.timeout,
            )
        except RequestException as e:
            raise ConversationError(f"Conversation service request failed: {e}") from e

        if response.status_code != 200:
            logger.warning(f"Conversation workspace {workspace_id} answered {response.status_code}")
            raise ConversationError(
                f"Conversation service returned status code {response.status_code}, message: {response.text}"
            )
        return response.json()


class AnthropicConversationApi(ConversationApi):
    """
    Adapter for Anthropic's Claude models.

    Claude keeps no server-side dialog state, so the running message history
    travels in context["history"] and is persisted by the context store like
    any other conversation context.
    """

    max_history = 20

    def __init__(self, api_key: Optional[str] = None, model: str = "claude-sonnet-4-20250514", client=None):
        self.client = client or anthropic.Anthropic(api_key=api_key)
        self.model = model

    def message(self, payload: Mapping[str, Any], credentials: Mapping[str, Any]) -> dict:
        text = payload["input"]["text"]
        context = dict(payload.get("context") or {})
        history = list(context.get("history") or [])
        messages = history + [{"role": "user", "content": text}]

        try:
            response = self.client.messages.create(
                model=self.model,
                max_tokens=1024,
                messages=messages,
            )
            reply = response.content[0].text
        except Exception as e:
            raise ConversationError(f"Anthropic API error: {str(e)}") from e

        messages.append({"role": "assistant", "content": reply})
        context["history"] = messages[-self.max_history :]
        logger.debug(f"Claude reply received, {len(context['history'])} messages of history kept")

        return {
            "input": dict(payload["input"]),
            "output": {"text": [reply]},
            "context": context,
        }
