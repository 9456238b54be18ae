import httpx
import pytest
import requests
from google.genai import errors

from note_triage.adapters.chat_completion_adapter import ChatCompletionAdapter
from note_triage.adapters.gemini_adapter import GeminiAdapter
from note_triage.core.errors import (
    MissingCredentialError,
    ProviderTimeoutError,
    UnparseableResponseError,
    UpstreamError,
)


# --- Gemini ("generate content") ---


@pytest.fixture
def gemini(mocker):
    adapter = GeminiAdapter("test-key", model_name="gemini-test", timeout=8)
    adapter.client = mocker.MagicMock()
    return adapter


def test_gemini_missing_key_fails_before_network():
    adapter = GeminiAdapter(None)

    assert adapter.is_configured is False
    with pytest.raises(MissingCredentialError):
        adapter.invoke("prompt")


def test_gemini_returns_text(gemini, mocker):
    gemini.client.models.generate_content.return_value = mocker.MagicMock(text='  {"category": "Movies"} \n')

    assert gemini.invoke("prompt") == '{"category": "Movies"}'
    _, kwargs = gemini.client.models.generate_content.call_args
    assert kwargs["model"] == "gemini-test"
    assert kwargs["contents"] == "prompt"
    assert kwargs["config"].response_mime_type == "application/json"


def test_gemini_empty_text(gemini, mocker):
    gemini.client.models.generate_content.return_value = mocker.MagicMock(text=None)

    assert gemini.invoke("prompt") == ""


def test_gemini_api_error_becomes_upstream_error(gemini):
    gemini.client.models.generate_content.side_effect = errors.APIError(
        500, {"error": {"code": 500, "message": "boom", "status": "INTERNAL"}}
    )

    with pytest.raises(UpstreamError) as excinfo:
        gemini.invoke("prompt")

    assert excinfo.value.status == 500
    assert excinfo.value.provider == "gemini"


def test_gemini_timeout(gemini):
    gemini.client.models.generate_content.side_effect = httpx.ReadTimeout("timed out")

    with pytest.raises(ProviderTimeoutError):
        gemini.invoke("prompt")


def test_gemini_transport_error(gemini):
    gemini.client.models.generate_content.side_effect = httpx.ConnectError("refused")

    with pytest.raises(UpstreamError) as excinfo:
        gemini.invoke("prompt")

    assert excinfo.value.status is None


def test_parse_response_tags_provider(gemini):
    assert gemini.parse_response('ok: {"category": "Shows"}') == {"category": "Shows"}
    with pytest.raises(UnparseableResponseError) as excinfo:
        gemini.parse_response("not json at all")

    assert excinfo.value.provider == "gemini"


# --- Chat completion ---


def _response(mocker, status=200, body=None, text=""):
    response = mocker.MagicMock()
    response.ok = 200 <= status < 300
    response.status_code = status
    response.text = text
    response.json.return_value = body
    return response


@pytest.fixture
def mock_post(mocker):
    return mocker.patch("note_triage.adapters.chat_completion_adapter.requests.post")


def test_chat_missing_key_fails_before_network(mock_post):
    adapter = ChatCompletionAdapter("")

    with pytest.raises(MissingCredentialError):
        adapter.invoke("prompt")
    mock_post.assert_not_called()


def test_chat_returns_message_content(mocker, mock_post):
    mock_post.return_value = _response(
        mocker, body={"choices": [{"message": {"content": ' {"category": "To-do"} '}}]}
    )
    adapter = ChatCompletionAdapter("sk-test", model_name="gpt-test", base_url="http://ollama:11434/v1/", timeout=8)

    assert adapter.invoke("prompt") == '{"category": "To-do"}'

    args, kwargs = mock_post.call_args
    assert args[0] == "http://ollama:11434/v1/chat/completions"
    assert kwargs["timeout"] == 8
    assert kwargs["headers"]["Authorization"] == "Bearer sk-test"
    assert kwargs["json"]["model"] == "gpt-test"
    assert kwargs["json"]["response_format"] == {"type": "json_object"}
    assert kwargs["json"]["messages"][-1] == {"role": "user", "content": "prompt"}


def test_chat_non_success_status(mocker, mock_post):
    mock_post.return_value = _response(mocker, status=429, text="rate limited")

    with pytest.raises(UpstreamError) as excinfo:
        ChatCompletionAdapter("sk-test").invoke("prompt")

    assert excinfo.value.status == 429
    assert excinfo.value.detail == "rate limited"


def test_chat_timeout(mock_post):
    mock_post.side_effect = requests.exceptions.ReadTimeout("slow")

    with pytest.raises(ProviderTimeoutError):
        ChatCompletionAdapter("sk-test").invoke("prompt")


def test_chat_connection_error(mock_post):
    mock_post.side_effect = requests.exceptions.ConnectionError("refused")

    with pytest.raises(UpstreamError):
        ChatCompletionAdapter("sk-test").invoke("prompt")


def test_chat_malformed_envelope(mocker, mock_post):
    mock_post.return_value = _response(mocker, body={"choices": []})

    with pytest.raises(UpstreamError):
        ChatCompletionAdapter("sk-test").invoke("prompt")
