"""
Sequential multi-message dispatch.

A conversation turn can produce several reply fragments: text, attachments,
pauses. The dispatcher delivers them to the channel's post sequence one at a
time, in order, and stops at the first post that fails. Fragments after a
failure are never attempted, so a failed dispatch may already have delivered
a prefix of the reply.
"""

import logging
import time
from typing import Any, Callable, Mapping, Optional

from relay.app.port.out import ActionInvoker
from relay.exceptions import DispatchFailedError, InvocationError
from relay.models import (
    DispatcherConfig,
    DispatchResult,
    FragmentKind,
    PostFailure,
    PostOutcome,
    PostSuccess,
)
from relay_common.logging import log_info, log_warning

logger = logging.getLogger(__name__)

# Bookkeeping of a pause directive; any other response_type is Slack content
PAUSE_FIELDS = frozenset({"typing", "response_type"})


def delay_seconds(fragment: Any) -> float:
    """Delay configured on a fragment, in seconds. Missing or invalid -> 0."""
    if not isinstance(fragment, Mapping):
        return 0.0
    value = fragment.get("time")
    if not value:
        return 0.0
    try:
        milliseconds = float(value)
    except (TypeError, ValueError):
        log_warning("Ignoring non-numeric fragment delay", time=str(value))
        return 0.0
    return max(milliseconds, 0.0) / 1000.0


def fragment_count(payload: Mapping[str, Any]) -> int:
    message = payload.get("message")
    return len(message) if isinstance(message, list) else 1


class SequentialDispatcher:
    """
    Posts the fragments of one reply payload in order.

    Subclasses adapt fragment shaping to a channel family:
    - action_marker: fragment field that forces a post even for a pause
    - delay_after_post: whether a posted fragment's delay elapses after the
      post (True) or before it (False)
    """

    action_marker: Optional[str] = None
    delay_after_post: bool = False

    def __init__(
        self,
        invoker: ActionInvoker,
        config: DispatcherConfig,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.invoker = invoker
        self.config = config
        self.sleep = sleep

    def dispatch(self, payload: Mapping[str, Any]) -> DispatchResult:
        """Deliver every fragment of payload["message"], stopping at the first failure."""
        endpoint = self.config.post_sequence_name
        count = fragment_count(payload)
        result = DispatchResult()

        for index in range(count):
            fragment = self.fragment_at(payload, index)
            kind = self.classify(fragment)
            delay = delay_seconds(fragment)

            if kind is FragmentKind.SLEEP_ONLY:
                self._pause(delay)
                continue

            if delay and not self.delay_after_post:
                self._pause(delay)

            outcome = self._post(endpoint, self.invocation_params(payload, index))
            result.record(outcome)
            if not outcome.succeeded:
                log_warning(
                    "Post failed, remaining fragments skipped",
                    endpoint=endpoint,
                    index=index,
                    skipped=count - index - 1,
                )
                break

            if delay and self.delay_after_post:
                self._pause(delay)

        log_info(
            "Dispatch finished",
            endpoint=endpoint,
            fragments=count,
            successful=len(result.successful_posts),
            failed=len(result.failed_posts),
        )
        return result

    def fragment_at(self, payload: Mapping[str, Any], index: int) -> Any:
        """The fragment at index. A non-list message is its own single fragment."""
        message = payload.get("message")
        if isinstance(message, list):
            return message[index]
        if isinstance(message, Mapping):
            return message
        return payload

    def classify(self, fragment: Any) -> FragmentKind:
        if not isinstance(fragment, Mapping):
            return FragmentKind.POST
        if self.action_marker and fragment.get(self.action_marker):
            return FragmentKind.POST
        if fragment.get("response_type") == "pause":
            return FragmentKind.SLEEP_ONLY
        if "time" in fragment and set(fragment) <= {"time", "typing"}:
            return FragmentKind.SLEEP_ONLY
        return FragmentKind.POST

    def invocation_params(self, payload: Mapping[str, Any], index: int) -> dict:
        raise NotImplementedError

    def _pause(self, seconds: float) -> None:
        if seconds > 0:
            self.sleep(seconds)

    def _post(self, endpoint: str, params: dict) -> PostOutcome:
        logger.debug(f"Posting fragment to {endpoint}")
        try:
            response = self.invoker.invoke(endpoint, params, blocking=True)
        except InvocationError as e:
            return PostFailure(failure_response=e.error)
        return PostSuccess(success_response=response.result, activation_id=response.activation_id)


def _without_pacing(fragment: Mapping[str, Any]) -> dict:
    """Copy of fragment minus `time`, and minus the pause fields of a pause directive."""
    dropped = {"time"}
    if fragment.get("response_type") == "pause":
        dropped |= PAUSE_FIELDS
    return {k: v for k, v in fragment.items() if k not in dropped}


class SlackDispatcher(SequentialDispatcher):
    """
    Slack flavour: fragment fields are lifted to the root of the post params.

    Slack has no typing indicator, so pauses are always sleep-only.
    """

    def invocation_params(self, payload: Mapping[str, Any], index: int) -> dict:
        params = dict(payload)
        message = payload.get("message")
        if isinstance(message, list):
            fragment = message[index]
            if isinstance(fragment, Mapping):
                params.update(_without_pacing(fragment))
                params.pop("message", None)
            else:
                params["message"] = fragment
        return params


class FacebookDispatcher(SequentialDispatcher):
    """
    Facebook flavour: each fragment becomes the `message` of its post.

    Fragments carrying a sender_action (e.g. typing_on) are posted as root
    level sender actions and their delay elapses after the post.
    """

    action_marker = "sender_action"
    delay_after_post = True

    def invocation_params(self, payload: Mapping[str, Any], index: int) -> dict:
        params = dict(payload)
        fragment = self.fragment_at(payload, index)
        if not isinstance(fragment, Mapping) or fragment is payload:
            if isinstance(payload.get("message"), list):
                params["message"] = fragment
            return params

        if fragment.get(self.action_marker):
            params.update(_without_pacing(fragment))
            params.pop("message", None)
        else:
            params["message"] = _without_pacing(fragment)
        return params


def post_multiple_messages(dispatcher: SequentialDispatcher, params: Mapping[str, Any]) -> dict:
    """Dispatch params and enforce the multiple post contract.

    Returns the result's wire form when every post succeeded; raises
    DispatchFailedError carrying the same wire form otherwise. Posts made
    before the failure are not undone. A truthy `tagged_responses` param
    selects the single tagged list over the success/failure split.
    """
    tagged = bool(params.get("tagged_responses"))
    result = dispatcher.dispatch(params)
    if result.has_failures:
        raise DispatchFailedError(result.to_dict(tagged=tagged))
    return result.to_dict(tagged=tagged)
