"""Save context action: persists the context returned by the conversation service."""

from typing import Any, Mapping, Optional

from relay.app import app
from relay.app.port.out import ContextRepository
from relay.context import validate_params


def main(params: Mapping[str, Any], repository: Optional[ContextRepository] = None) -> Mapping[str, Any]:
    validate_params(params)
    repository = repository or app().get_context_repository()

    context = dict(params["conversation"].get("context") or {})
    repository.save(params["raw_input_data"]["context_key"], context)
    return params
