import pytest

from relay.adapter.out.conversation import AnthropicConversationApi, WatsonConversationApi
from relay.adapter.out.persistence.context_table import DynamoContextRepository
from relay.app import DefaultApplication, app
from relay.exceptions import ValidationError
from relay.settings import Settings


class TestSettings:
    def test_defaults(self, monkeypatch):
        for key in ("RELAY_ACTION_NAME", "AWS_LAMBDA_FUNCTION_NAME", "CONTEXT_TABLE_NAME", "CONVERSATION_PROVIDER"):
            monkeypatch.delenv(key, raising=False)

        settings = Settings.from_env()

        assert settings.action_name is None
        assert settings.context_table_name == "RelayContext"
        assert settings.conversation_provider == "watson"
        assert settings.provision_max_attempts == 50

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("RELAY_ACTION_NAME", "/ns/acme_slack/multiple_post")
        monkeypatch.setenv("CONTEXT_TABLE_NAME", "AcmeContext")
        monkeypatch.setenv("CONVERSATION_PROVIDER", "Anthropic")
        monkeypatch.setenv("PROVISION_MAX_ATTEMPTS", "7")

        settings = Settings.from_env()

        assert settings.action_name == "/ns/acme_slack/multiple_post"
        assert settings.context_table_name == "AcmeContext"
        assert settings.conversation_provider == "anthropic"
        assert settings.provision_max_attempts == 7

    def test_lambda_function_name_fallback(self, monkeypatch):
        monkeypatch.delenv("RELAY_ACTION_NAME", raising=False)
        monkeypatch.setenv("AWS_LAMBDA_FUNCTION_NAME", "/ns/acme_fb/multiple_post")

        assert Settings.from_env().action_name == "/ns/acme_fb/multiple_post"

    def test_invalid_max_attempts(self, monkeypatch):
        monkeypatch.setenv("PROVISION_MAX_ATTEMPTS", "many")

        with pytest.raises(ValueError, match="PROVISION_MAX_ATTEMPTS must be an integer"):
            Settings.from_env()


class TestDefaultApplication:
    def test_dispatcher_config(self):
        application = DefaultApplication(Settings(action_name="/ns/acme_slack/multiple_post"))

        assert application.get_dispatcher_config().post_sequence_name == "acme_postsequence"

    def test_dispatcher_config_requires_action_name(self):
        with pytest.raises(ValidationError):
            DefaultApplication(Settings()).get_dispatcher_config()

    def test_watson_is_default_provider(self):
        api = DefaultApplication(Settings()).get_conversation_api(version_date="2018-02-16")

        assert isinstance(api, WatsonConversationApi)
        assert api.version_date == "2018-02-16"

    def test_anthropic_provider(self):
        application = DefaultApplication(Settings(conversation_provider="anthropic", anthropic_api_key="sk-test"))

        assert isinstance(application.get_conversation_api(), AnthropicConversationApi)

    def test_unknown_provider(self):
        with pytest.raises(ValidationError, match="Unknown conversation provider"):
            DefaultApplication(Settings(conversation_provider="eliza")).get_conversation_api()

    def test_context_repository_uses_table_name(self):
        repository = DefaultApplication(Settings(context_table_name="AcmeContext")).get_context_repository()

        assert isinstance(repository, DynamoContextRepository)
        assert repository.table_name == "AcmeContext"

    def test_invoker_is_reused(self):
        application = DefaultApplication(Settings())

        assert application.get_action_invoker() is application.get_action_invoker()


def test_app_reads_settings_from_env(monkeypatch):
    monkeypatch.setenv("RELAY_ACTION_NAME", "/ns/tenant_slack/multiple_post")

    assert app().get_dispatcher_config().deploy_name == "tenant"
