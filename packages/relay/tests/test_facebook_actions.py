import hashlib
import hmac
import json
import threading
from typing import Any, Mapping
from unittest.mock import MagicMock, patch

import pytest

from fakes import FakeApplication, RecordingInvoker
from relay.app.port.out import ActionInvoker
from relay.channels.facebook import batched_messages, multiple_post, post, receive
from relay.exceptions import (
    DispatchFailedError,
    InvocationError,
    PostError,
    ReceiveError,
    ValidationError,
)
from relay.models import InvocationResponse

AUTH = {
    "facebook": {
        "app_secret": "app-secret",
        "page_access_token": "page-token",
        "verification_token": "verify-me",
    }
}


def messaging(sender, recipient="PAGE1", timestamp=1, text="hi"):
    return {
        "sender": {"id": sender},
        "recipient": {"id": recipient},
        "timestamp": timestamp,
        "message": {"text": text},
    }


def sign(body: dict, secret: str = "app-secret") -> str:
    payload = receive.escape_special_chars(json.dumps(body, separators=(",", ":"), ensure_ascii=False))
    return "sha1=" + hmac.new(secret.encode(), payload.encode("utf-8"), hashlib.sha1).hexdigest()


def page_params(entry, signature=None, **overrides):
    body = {"object": "page", "entry": entry}
    params = {
        **body,
        "sub_pipeline": "acme_sub_pipeline",
        "batched_messages": "acme_batched_messages",
        "auth": AUTH,
        "headers": {"x-hub-signature": signature or sign(body)},
    }
    params.update(overrides)
    return params


class TestFacebookPost:
    @patch("relay.channels.facebook.post.requests.post")
    def test_posts_json_with_page_token(self, mock_post):
        mock_post.return_value = MagicMock(status_code=200)
        params = {
            "recipient": {"id": "42"},
            "message": {"text": "hi"},
            "raw_input_data": {"provider": "facebook"},
            "auth": AUTH,
        }

        result = post.main(params)

        expected = {"recipient": {"id": "42"}, "message": {"text": "hi"}}
        assert result == {"text": 200, "params": expected, "url": "https://graph.facebook.com/v2.6/me/messages"}
        kwargs = mock_post.call_args.kwargs
        assert kwargs["params"] == {"access_token": "page-token"}
        assert kwargs["json"] == expected

    @patch("relay.channels.facebook.post.requests.post")
    def test_sender_action_is_enough(self, mock_post):
        mock_post.return_value = MagicMock(status_code=200)

        result = post.main({"recipient": {"id": "42"}, "sender_action": "typing_on", "auth": AUTH})

        assert result["params"] == {"recipient": {"id": "42"}, "sender_action": "typing_on"}

    @pytest.mark.parametrize(
        "params,message",
        [
            ({"message": {"text": "hi"}, "auth": AUTH}, "Recipient id not provided."),
            ({"recipient": {"id": "42"}, "auth": AUTH}, "Message object not provided."),
            ({"recipient": {"id": "42"}, "message": {"text": "hi"}}, "page_access_token not found"),
        ],
    )
    def test_validation(self, params, message):
        with pytest.raises(ValidationError, match=message):
            post.main(params)

    @patch("relay.channels.facebook.post.requests.post")
    def test_non_200_raises(self, mock_post):
        mock_post.return_value = MagicMock(status_code=400, reason="Bad Request")

        with pytest.raises(PostError, match="status code 400, message: Bad Request"):
            post.main({"recipient": {"id": "42"}, "message": {"text": "hi"}, "auth": AUTH})


class TestEscapeSpecialChars:
    def test_ascii_is_untouched(self):
        assert receive.escape_special_chars('{"a":"b c"}') == '{"a":"b c"}'

    def test_escapes(self):
        assert receive.escape_special_chars("a/b<c@d%") == "a\\/b\\u003Cc\\u0040d\\u0025"

    def test_non_ascii_lower_case_hex(self):
        assert receive.escape_special_chars("Aäöåc") == "A\\u00e4\\u00f6\\u00e5c"

    def test_astral_characters_become_surrogate_pairs(self):
        assert receive.escape_special_chars("\U0001F600") == "\\ud83d\\ude00"


class TestFacebookReceive:
    def test_requires_sub_pipeline(self):
        params = page_params([{"id": "PAGE1", "messaging": [messaging("U1")]}])
        del params["sub_pipeline"]

        with pytest.raises(ValidationError, match="Subpipeline name does not exist"):
            receive.main(params)

    def test_requires_batched_messages(self):
        params = page_params([{"id": "PAGE1", "messaging": [messaging("U1")]}])
        del params["batched_messages"]

        with pytest.raises(ValidationError, match="Batched Messages action name does not exist"):
            receive.main(params)

    def test_url_verification_returns_challenge(self):
        params = {
            "hub.mode": "subscribe",
            "hub.verify_token": "verify-me",
            "hub.challenge": "1158201444",
            "sub_pipeline": "acme_sub_pipeline",
            "batched_messages": "acme_batched_messages",
            "auth": AUTH,
        }

        assert receive.main(params) == {"text": "1158201444"}

    def test_single_message_invokes_sub_pipeline(self):
        invoker = RecordingInvoker()
        event = messaging("U1")
        params = page_params([{"id": "PAGE1", "messaging": [event]}])

        result = receive.main(params, application=FakeApplication(invoker))

        name, invoked_params, blocking = invoker.calls[0]
        assert name == "acme_sub_pipeline"
        assert invoked_params == {"facebook": event, "provider": "facebook", "auth": AUTH}
        assert blocking is False
        assert result["text"] == 200
        assert result["activationId"] == "act-0"
        assert result["actionName"] == "acme_sub_pipeline"

    def test_batched_message_invokes_batched_action(self):
        invoker = RecordingInvoker()
        params = page_params([{"id": "PAGE1", "messaging": [messaging("U1"), messaging("U2")]}])

        receive.main(params, application=FakeApplication(invoker))

        name, invoked_params, _ = invoker.calls[0]
        assert name == "acme_batched_messages"
        assert invoked_params["auth"] == AUTH
        assert len(invoked_params["entry"][0]["messaging"]) == 2

    def test_signature_over_non_ascii_payload(self):
        invoker = RecordingInvoker()
        params = page_params([{"id": "PAGE1", "messaging": [messaging("U1", text="héllo <b>/@%")]}])

        result = receive.main(params, application=FakeApplication(invoker))

        assert result["text"] == 200

    def test_wrong_signature_is_rejected(self):
        params = page_params([{"id": "PAGE1", "messaging": [messaging("U1")]}], signature="sha1=deadbeef")

        with pytest.raises(ValidationError, match="Verfication of facebook signature header failed"):
            receive.main(params, application=FakeApplication(RecordingInvoker()))

    def test_missing_signature_header(self):
        params = page_params([{"id": "PAGE1", "messaging": [messaging("U1")]}])
        params["headers"] = {}

        with pytest.raises(ValidationError, match="x-hub-signature header not found."):
            receive.main(params, application=FakeApplication(RecordingInvoker()))

    def test_invocation_failure(self):
        invoker = RecordingInvoker(fail_on=(0,))
        params = page_params([{"id": "PAGE1", "messaging": [messaging("U1")]}])

        with pytest.raises(ReceiveError) as excinfo:
            receive.main(params, application=FakeApplication(invoker))

        assert excinfo.value.payload["text"] == 400
        assert excinfo.value.payload["actionName"] == "acme_sub_pipeline"

    def test_neither_page_nor_verification(self):
        params = {
            "sub_pipeline": "acme_sub_pipeline",
            "batched_messages": "acme_batched_messages",
            "auth": AUTH,
            "object": "user",
        }

        with pytest.raises(ReceiveError) as excinfo:
            receive.main(params)

        assert excinfo.value.payload == {
            "status": 400,
            "text": "Neither a page type request nor a verfication type request detected",
        }


class TestFacebookMultiplePost:
    def test_returns_post_responses(self, sleep):
        invoker = RecordingInvoker()
        params = {
            "recipient": {"id": "42"},
            "message": [{"sender_action": "typing_on", "time": 100}, {"text": "a"}],
        }

        result = multiple_post.main(params, application=FakeApplication(invoker), sleep=sleep)

        assert len(result["postResponses"]["successfulPosts"]) == 2
        assert sleep.calls == [0.1]

    def test_raises_on_failure(self, sleep):
        invoker = RecordingInvoker(fail_on=(1,))
        params = {"recipient": {"id": "42"}, "message": [{"text": "a"}, {"text": "b"}, {"text": "c"}]}

        with pytest.raises(DispatchFailedError) as excinfo:
            multiple_post.main(params, application=FakeApplication(invoker), sleep=sleep)

        assert len(excinfo.value.result["postResponses"]["successfulPosts"]) == 1
        assert len(invoker.calls) == 2


class SenderFailingInvoker(ActionInvoker):
    """Fails every invocation for the given sender ids; thread safe."""

    def __init__(self, failing_senders=()):
        self.failing_senders = set(failing_senders)
        self.calls: list[dict] = []
        self.lock = threading.Lock()

    def invoke(self, name: str, params: Mapping[str, Any], blocking: bool = True) -> InvocationResponse:
        with self.lock:
            self.calls.append(dict(params))
        sender = params["facebook"]["sender"]["id"]
        if sender in self.failing_senders:
            raise InvocationError({"message": "pipeline failed", "activationId": f"fail-{sender}"}, action_name=name)
        return InvocationResponse(result={"text": 200}, activation_id=f"ok-{params['facebook']['timestamp']}")


class TestBatchedMessages:
    def test_organize_groups_and_sorts(self):
        params = {
            "entry": [
                {"id": "PAGE1", "messaging": [messaging("U1", timestamp=3), messaging("U2", timestamp=1)]},
                {"id": "PAGE1", "messaging": [messaging("U1", timestamp=2)]},
            ]
        }

        groups = batched_messages.organize_batched_entries(params)

        assert list(groups) == ["U1_PAGE1", "U2_PAGE1"]
        assert [m["timestamp"] for m in groups["U1_PAGE1"]] == [2, 3]

    def test_runs_each_group_in_timestamp_order(self):
        invoker = SenderFailingInvoker()
        params = {
            "sub_pipeline": "acme_sub_pipeline",
            "auth": AUTH,
            "entry": [
                {
                    "id": "PAGE1",
                    "messaging": [messaging("U1", timestamp=20), messaging("U2", timestamp=5), messaging("U1", timestamp=10)],
                }
            ],
        }

        result = batched_messages.main(params, application=FakeApplication(invoker))

        u1_calls = [c["facebook"]["timestamp"] for c in invoker.calls if c["facebook"]["sender"]["id"] == "U1"]
        assert u1_calls == [10, 20]
        assert result["failedActionInvocations"] == []
        assert [s["activationId"] for s in result["successfulActionInvocations"]] == ["ok-10", "ok-20", "ok-5"]
        assert all(c["provider"] == "facebook" and c["auth"] == AUTH for c in invoker.calls)

    def test_failures_do_not_stop_the_group(self):
        invoker = SenderFailingInvoker(failing_senders={"U1"})
        params = {
            "sub_pipeline": "acme_sub_pipeline",
            "entry": [{"id": "PAGE1", "messaging": [messaging("U1", timestamp=1), messaging("U1", timestamp=2), messaging("U2")]}],
        }

        result = batched_messages.main(params, application=FakeApplication(invoker))

        assert len(invoker.calls) == 3
        assert len(result["failedActionInvocations"]) == 2
        assert result["failedActionInvocations"][0] == {
            "errorMessage": "Recipient id: PAGE1 , Sender id: U1 -- pipeline failed",
            "activationId": "fail-U1",
        }
        assert len(result["successfulActionInvocations"]) == 1

    def test_requires_sub_pipeline(self):
        with pytest.raises(ValidationError, match="Subpipeline name does not exist"):
            batched_messages.main({"entry": []})
