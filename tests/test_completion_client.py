import json

import pytest
from requests.exceptions import ConnectionError as RequestsConnectionError

from broll.completion_client import (
    CompletionClient,
    CompletionSettings,
    MalformedResponse,
    TransportFailure,
    unwrap_envelope,
)
from broll.models import ExtractionMode
from broll.prompts import resolve_mode


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=None):
        self.status_code = status_code
        self._payload = payload
        self.text = text if text is not None else json.dumps(payload)

    def json(self):
        if self._payload is None:
            raise ValueError("No JSON object could be decoded")
        return self._payload


class FakeSession:
    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def post(self, url, json=None, headers=None, timeout=None):
        self.calls.append({"url": url, "json": json, "headers": headers, "timeout": timeout})
        outcome = self.responses.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def _completion(content):
    return {"id": "cmpl-1", "choices": [{"index": 0, "message": {"role": "assistant", "content": content}}]}


def _client(session, **overrides):
    settings = CompletionSettings(model="gpt-4", **overrides)
    return CompletionClient(settings, session=session)


def test_payload_carries_conversation_and_side_channels():
    session = FakeSession(FakeResponse(payload=_completion("doctor pauses spotlight")))
    client = _client(session)
    config = resolve_mode(ExtractionMode.SHORT_PHRASE)

    content = client.complete(config, "The lab was quiet that night.", knowledge_base="kb text")

    assert content == "doctor pauses spotlight"
    call = session.calls[0]
    assert call["url"] == client.settings.endpoint_url
    body = call["json"]
    assert body["model"] == "gpt-4"
    assert body["temperature"] == 0.7
    assert body["max_tokens"] == 1000
    assert body["knowledge_base"] == "kb text"
    assert body["schema_tool"] == ""
    messages = json.loads(body["messages"])
    assert [m["role"] for m in messages] == ["system", "user"]
    assert messages[0]["content"] == config.system_prompt
    assert messages[1]["content"] == "Extract 3-word cinematic keywords: The lab was quiet that night."


def test_messages_can_be_sent_as_plain_array():
    session = FakeSession(FakeResponse(payload=_completion("ok")))
    client = _client(session, encode_messages=False)
    client.complete(resolve_mode(ExtractionMode.METADATA), "Chunk text.")
    body = session.calls[0]["json"]
    assert isinstance(body["messages"], list)
    assert body["max_tokens"] == 1500


def test_nested_data_envelope_is_unwrapped():
    session = FakeSession(FakeResponse(payload={"success": True, "data": _completion("a b c")}))
    assert _client(session).complete(resolve_mode(ExtractionMode.SHORT_PHRASE), "x") == "a b c"


@pytest.mark.parametrize(
    "payload",
    [
        {},
        {"data": {}},
        {"choices": []},
        {"data": {"choices": [{"text": "legacy"}]}},
        {"choices": [{"message": {"content": None}}]},
        ["not", "an", "object"],
    ],
)
def test_malformed_envelopes_raise(payload):
    with pytest.raises(MalformedResponse):
        unwrap_envelope(payload)


def test_empty_object_response_is_malformed():
    session = FakeSession(FakeResponse(payload={}))
    with pytest.raises(MalformedResponse):
        _client(session).complete(resolve_mode(ExtractionMode.SHORT_PHRASE), "x")


def test_non_json_body_is_malformed():
    session = FakeSession(FakeResponse(payload=None, text="<html>Bad gateway</html>"))
    with pytest.raises(MalformedResponse):
        _client(session).complete(resolve_mode(ExtractionMode.SHORT_PHRASE), "x")


def test_error_status_fails_without_retry_by_default():
    session = FakeSession(FakeResponse(status_code=503, payload={"error": "busy"}))
    with pytest.raises(TransportFailure) as excinfo:
        _client(session).complete(resolve_mode(ExtractionMode.SHORT_PHRASE), "x")
    assert "503" in str(excinfo.value)
    assert len(session.calls) == 1


def test_network_error_is_transport_failure():
    session = FakeSession(RequestsConnectionError("connection refused"))
    with pytest.raises(TransportFailure):
        _client(session).complete(resolve_mode(ExtractionMode.SHORT_PHRASE), "x")


def test_opt_in_retries_recover_from_transient_status():
    session = FakeSession(
        FakeResponse(status_code=503, payload={"error": "busy"}),
        FakeResponse(payload=_completion("hands reveal macro")),
    )
    client = _client(session, max_attempts=3)
    delays = []
    client._sleep = delays.append
    assert client.complete(resolve_mode(ExtractionMode.SHORT_PHRASE), "x") == "hands reveal macro"
    assert delays == [0.5]
    assert len(session.calls) == 2


def test_client_errors_are_not_retried():
    session = FakeSession(FakeResponse(status_code=400, payload={"error": "bad"}))
    client = _client(session, max_attempts=3)
    client._sleep = lambda seconds: None
    with pytest.raises(TransportFailure):
        client.complete(resolve_mode(ExtractionMode.SHORT_PHRASE), "x")
    assert len(session.calls) == 1


def test_model_is_required():
    with pytest.raises(ValueError):
        CompletionClient(CompletionSettings(model="  "), session=FakeSession())
