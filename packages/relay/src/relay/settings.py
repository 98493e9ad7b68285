"""Per-invocation configuration collected from the environment."""

from typing import Optional

from pydantic import BaseModel, Field

from relay_common.environments import get_action_name, get_env, get_int_env

DEFAULT_PROVISION_MAX_ATTEMPTS = 50


class Settings(BaseModel):
    """Values an action needs from its environment, read once per invocation."""

    action_name: Optional[str] = Field(None, description="Fully qualified '/namespace/package/action' name")
    context_table_name: str = Field("RelayContext", description="DynamoDB table holding conversation context")
    conversation_provider: str = Field("watson", description="'watson' or 'anthropic'")
    anthropic_api_key: Optional[str] = Field(None, description="API key for the anthropic provider")
    anthropic_model: str = Field("claude-sonnet-4-20250514", description="Model used by the anthropic provider")
    provision_max_attempts: int = Field(DEFAULT_PROVISION_MAX_ATTEMPTS, ge=1)
    log_level: str = Field("INFO")
    log_format: str = Field("json")

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            action_name=get_action_name(),
            context_table_name=get_env("CONTEXT_TABLE_NAME", required=False) or "RelayContext",
            conversation_provider=(get_env("CONVERSATION_PROVIDER", required=False) or "watson").lower(),
            anthropic_api_key=get_env("ANTHROPIC_API_KEY", required=False),
            anthropic_model=get_env("ANTHROPIC_MODEL", required=False) or "claude-sonnet-4-20250514",
            provision_max_attempts=get_int_env("PROVISION_MAX_ATTEMPTS", DEFAULT_PROVISION_MAX_ATTEMPTS),
            log_level=get_env("LOG_LEVEL", required=False) or "INFO",
            log_format=get_env("LOG_FORMAT", required=False) or "json",
        )
