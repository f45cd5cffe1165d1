import json
from unittest.mock import MagicMock, patch

import pytest
import requests

from trip_planner.agent.llm_client import LLMClient
from trip_planner.config import LLMConfig
from trip_planner.errors import ConfigurationError, EmptyCompletionError


def _session_returning(body):
    response = MagicMock()
    response.json.return_value = body
    response.raise_for_status.return_value = None
    session = MagicMock()
    session.post.return_value = response
    return session


def test_missing_api_key_raises_configuration_error():
    with pytest.raises(ConfigurationError) as excinfo:
        LLMClient(api_key=None)
    assert excinfo.value.setting_name == "OPENAI_API_KEY"


def test_from_config():
    client = LLMClient.from_config(LLMConfig(model="gpt-4o-mini", api_key="sk-test", timeout_s=30))
    assert client.model == "gpt-4o-mini"
    assert client.timeout_s == 30


def test_generate_posts_single_user_message_in_json_mode():
    session = _session_returning({"choices": [{"message": {"content": ' {"ok": true} '}}]})
    client = LLMClient(api_key="sk-test", base_url="https://example.test/v1/", session=session)

    content = client.generate("Plan a trip", json_mode=True)

    assert content == '{"ok": true}'
    args, kwargs = session.post.call_args
    assert args[0] == "https://example.test/v1/chat/completions"
    payload = json.loads(kwargs["data"].decode("utf-8"))
    assert payload["messages"] == [{"role": "user", "content": "Plan a trip"}]
    assert payload["temperature"] == 0.7
    assert payload["response_format"] == {"type": "json_object"}
    assert kwargs["headers"]["Authorization"] == "Bearer sk-test"
    assert kwargs["timeout"] == 120


def test_generate_without_json_mode_omits_response_format():
    session = _session_returning({"choices": [{"message": {"content": "Delhi"}}]})
    client = LLMClient(api_key="sk-test", session=session)

    client.generate("Capital?")

    payload = json.loads(session.post.call_args.kwargs["data"].decode("utf-8"))
    assert "response_format" not in payload


@pytest.mark.parametrize(
    "body",
    [
        {"choices": []},
        {"choices": [{"message": {"content": None}}]},
        {"choices": [{"message": {"content": "   "}}]},
    ],
)
def test_empty_completion_raises(body):
    client = LLMClient(api_key="sk-test", session=_session_returning(body))
    with pytest.raises(EmptyCompletionError):
        client.generate("Plan a trip")


def test_network_errors_propagate_unchanged():
    session = MagicMock()
    session.post.side_effect = requests.ConnectionError("connection reset")
    client = LLMClient(api_key="sk-test", session=session)

    with pytest.raises(requests.ConnectionError):
        client.generate("Plan a trip")


def test_http_errors_propagate_unchanged():
    session = _session_returning({})
    session.post.return_value.raise_for_status.side_effect = requests.HTTPError("429 Too Many Requests")
    client = LLMClient(api_key="sk-test", session=session)

    with pytest.raises(requests.HTTPError):
        client.generate("Plan a trip")


def test_client_without_session_posts_per_call():
    client = LLMClient(api_key="sk-test")
    response = MagicMock()
    response.json.return_value = {"choices": [{"message": {"content": "ok"}}]}

    with patch("trip_planner.agent.llm_client.requests.post", return_value=response) as post:
        assert client.generate("one") == "ok"
        assert client.generate("two") == "ok"

    assert client.session is None
    assert post.call_count == 2
