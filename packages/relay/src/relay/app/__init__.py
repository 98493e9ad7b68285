"""
Application layer for dependency injection and configuration.

The Application class is the composition root: it wires the output ports
(action invoker, conversation service, context storage) to concrete
adapters. Actions ask it for ports instead of constructing adapters, so tests
can hand them fakes.
"""

from functools import cached_property

from relay.adapter.out.conversation import AnthropicConversationApi, WatsonConversationApi
from relay.adapter.out.invoker import LambdaActionInvoker
from relay.adapter.out.persistence.context_table import DynamoContextRepository
from relay.app.port.out import ActionInvoker, ContextRepository, ConversationApi
from relay.exceptions import ValidationError
from relay.models import DispatcherConfig
from relay.settings import Settings


class Application:
    """
    Application composition root for dependency injection.

    Provides configured ports to the actions.
    """

    def __init__(self, settings: Settings):
        self.settings = settings

    def get_action_invoker(self) -> ActionInvoker:
        raise NotImplementedError

    def get_conversation_api(self, url: str | None = None, version_date: str | None = None) -> ConversationApi:
        raise NotImplementedError

    def get_context_repository(self) -> ContextRepository:
        raise NotImplementedError

    def get_dispatcher_config(self) -> DispatcherConfig:
        if not self.settings.action_name:
            raise ValidationError("Action name not set. Set RELAY_ACTION_NAME to '/namespace/package/action'.")
        return DispatcherConfig.from_action_name(self.settings.action_name)


class DefaultApplication(Application):
    """Default application instance backed by AWS and the configured conversation provider."""

    @cached_property
    def _invoker(self) -> ActionInvoker:
        return LambdaActionInvoker()

    def get_action_invoker(self) -> ActionInvoker:
        return self._invoker

    def get_conversation_api(self, url: str | None = None, version_date: str | None = None) -> ConversationApi:
        provider = self.settings.conversation_provider
        if provider == "anthropic":
            return AnthropicConversationApi(
                api_key=self.settings.anthropic_api_key,
                model=self.settings.anthropic_model,
            )
        if provider == "watson":
            return WatsonConversationApi(url=url, version_date=version_date)
        raise ValidationError(f"Unknown conversation provider {provider!r}.")

    def get_context_repository(self) -> ContextRepository:
        return DynamoContextRepository(table_name=self.settings.context_table_name)


def app(settings: Settings | None = None) -> Application:
    return DefaultApplication(settings or Settings.from_env())
