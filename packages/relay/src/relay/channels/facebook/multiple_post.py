"""Facebook multiple post action: delivers every reply fragment to the Facebook post sequence."""

import time
from typing import Any, Callable, Mapping, Optional

from relay.app import Application, app
from relay.dispatch import FacebookDispatcher, post_multiple_messages


def main(
    params: Mapping[str, Any],
    application: Optional[Application] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> dict:
    application = application or app()
    dispatcher = FacebookDispatcher(
        application.get_action_invoker(),
        application.get_dispatcher_config(),
        sleep=sleep,
    )
    return post_multiple_messages(dispatcher, params)
