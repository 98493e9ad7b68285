"""Slack multiple post action: delivers every reply fragment to the Slack post sequence."""

import time
from typing import Any, Callable, Mapping, Optional

from relay.app import Application, app
from relay.dispatch import SlackDispatcher, post_multiple_messages


def main(
    params: Mapping[str, Any],
    application: Optional[Application] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> dict:
    application = application or app()
    dispatcher = SlackDispatcher(
        application.get_action_invoker(),
        application.get_dispatcher_config(),
        sleep=sleep,
    )
    return post_multiple_messages(dispatcher, params)
