"""
Facebook batched messages action.

Under load Facebook batches several webhook events into one request. Entries
are grouped per sender/recipient pair; groups run in parallel, and each
group's entries run one after another in timestamp order so a user's
messages reach the conversation in the order they were sent. A failed entry
is recorded and its group carries on.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Mapping, Optional

from relay.app import Application, app
from relay.app.port.out import ActionInvoker
from relay.exceptions import InvocationError, ValidationError

logger = logging.getLogger(__name__)

MAX_WORKERS = 8


def main(params: Mapping[str, Any], application: Optional[Application] = None) -> dict:
    validate_parameters(params)
    application = application or app()
    return run_batched_entries_in_parallel(params, application.get_action_invoker())


def run_batched_entries_in_parallel(params: Mapping[str, Any], invoker: ActionInvoker) -> dict:
    groups = organize_batched_entries(params)
    sub_pipeline = params["sub_pipeline"]
    auth = params.get("auth")

    failed = []
    successful = []
    if not groups:
        return {"failedActionInvocations": failed, "successfulActionInvocations": successful}

    with ThreadPoolExecutor(max_workers=min(MAX_WORKERS, len(groups))) as executor:
        futures = [
            executor.submit(run_batched_entries_in_series, entries, sub_pipeline, auth, invoker)
            for entries in groups.values()
        ]
        # Collected in group order, not completion order
        for future in futures:
            for outcome in future.result():
                if "failedInvocation" in outcome:
                    failed.append(outcome["failedInvocation"])
                else:
                    successful.append(outcome["successfulInvocation"])

    logger.info(f"Batched messages done: {len(successful)} succeeded, {len(failed)} failed")
    return {"failedActionInvocations": failed, "successfulActionInvocations": successful}


def run_batched_entries_in_series(
    entries: list[dict],
    sub_pipeline: str,
    auth: Any,
    invoker: ActionInvoker,
) -> list[dict]:
    return [invoke_pipeline(entry, sub_pipeline, auth, invoker) for entry in entries]


def organize_batched_entries(params: Mapping[str, Any]) -> dict[str, list[dict]]:
    """
    Group messaging entries by "{sender.id}_{recipient.id}".

    Groups keep first-seen order; entries within a group are sorted by
    timestamp.
    """
    groups: dict[str, list[dict]] = {}
    for entry in params.get("entry") or []:
        for messaging in entry.get("messaging") or []:
            key = f"{messaging['sender']['id']}_{messaging['recipient']['id']}"
            groups.setdefault(key, []).append(messaging)

    for entries in groups.values():
        entries.sort(key=lambda m: m.get("timestamp") or 0)
    return groups


def invoke_pipeline(messaging: Mapping[str, Any], sub_pipeline: str, auth: Any, invoker: ActionInvoker) -> dict:
    payload = {"facebook": messaging, "provider": "facebook", "auth": auth}
    try:
        response = invoker.invoke(sub_pipeline, payload, blocking=True)
    except InvocationError as e:
        error = e.error if isinstance(e.error, Mapping) else {}
        message = error.get("message") or error.get("error") or str(e)
        return {
            "failedInvocation": {
                "errorMessage": (
                    f"Recipient id: {messaging['recipient']['id']} , "
                    f"Sender id: {messaging['sender']['id']} -- {message}"
                ),
                "activationId": error.get("activationId"),
            }
        }

    return {
        "successfulInvocation": {
            "successResponse": response.result,
            "activationId": response.activation_id,
        }
    }


def validate_parameters(params: Mapping[str, Any]) -> None:
    if not params.get("sub_pipeline"):
        raise ValidationError(
            "Subpipeline name does not exist. Please make sure your channel package has the binding 'sub_pipeline'"
        )
