"""Load context action: attaches the stored conversation context to the request."""

from typing import Any, Mapping, Optional

from relay.app import app
from relay.app.port.out import ContextRepository
from relay.context import validate_params


def main(params: Mapping[str, Any], repository: Optional[ContextRepository] = None) -> dict:
    validate_params(params)
    repository = repository or app().get_context_repository()

    result = dict(params)
    result["conversation"] = dict(params["conversation"])
    result["conversation"]["context"] = repository.load(params["raw_input_data"]["context_key"])
    return result
