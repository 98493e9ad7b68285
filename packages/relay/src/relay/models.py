"""
Models shared by the dispatch and invocation layers.

A DispatchResult accumulates one PostOutcome per attempted post, in the
order the posts were attempted. Outcomes are immutable once recorded.
"""

from enum import Enum
from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from relay.naming import deploy_name_from_action_name, post_sequence_name


class DispatcherConfig(BaseModel):
    """Per-deployment dispatcher configuration."""

    model_config = ConfigDict(frozen=True)

    deploy_name: str = Field(..., min_length=1, description="Tenant deployment name")

    @property
    def post_sequence_name(self) -> str:
        return post_sequence_name(self.deploy_name)

    @classmethod
    def from_action_name(cls, action_name: str) -> "DispatcherConfig":
        return cls(deploy_name=deploy_name_from_action_name(action_name))


class FragmentKind(str, Enum):
    """How the dispatcher treats a single reply fragment."""

    POST = "post"
    SLEEP_ONLY = "sleep_only"


class InvocationResponse(BaseModel):
    """Result of a blocking action invocation."""

    model_config = ConfigDict(frozen=True)

    result: Any = Field(None, description="Result returned by the invoked action")
    activation_id: Optional[str] = Field(None, description="Host identifier of the invocation")


class PostSuccess(BaseModel):
    """A post the channel accepted."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    success_response: Any = Field(None, alias="successResponse", description="Response of the post action")
    activation_id: Optional[str] = Field(None, alias="activationId", description="Invocation identifier")

    @property
    def succeeded(self) -> bool:
        return True


class PostFailure(BaseModel):
    """A post that failed; the error payload is kept verbatim."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    failure_response: Any = Field(None, alias="failureResponse", description="Error raised by the post action")

    @property
    def succeeded(self) -> bool:
        return False


PostOutcome = Union[PostSuccess, PostFailure]


class DispatchResult(BaseModel):
    """Outcomes of one dispatcher invocation."""

    successful_posts: List[PostSuccess] = Field(default_factory=list)
    failed_posts: List[PostFailure] = Field(default_factory=list)
    outcomes: List[PostOutcome] = Field(default_factory=list, description="All outcomes in attempt order")

    def record(self, outcome: PostOutcome) -> None:
        if outcome.succeeded:
            self.successful_posts.append(outcome)
        else:
            self.failed_posts.append(outcome)
        self.outcomes.append(outcome)

    @property
    def has_failures(self) -> bool:
        return len(self.failed_posts) > 0

    def tagged_outcomes(self) -> list[dict]:
        """Single ordered list of outcomes, each tagged with its status."""
        tagged = []
        for outcome in self.outcomes:
            status = "success" if outcome.succeeded else "failure"
            tagged.append({"status": status, **outcome.model_dump(by_alias=True)})
        return tagged

    def to_dict(self, tagged: bool = False) -> dict:
        """Wire form; with tagged, postResponses is the single ordered list of outcomes."""
        if tagged:
            return {"postResponses": self.tagged_outcomes()}
        return {
            "postResponses": {
                "successfulPosts": [p.model_dump(by_alias=True) for p in self.successful_posts],
                "failedPosts": [p.model_dump(by_alias=True) for p in self.failed_posts],
            }
        }
