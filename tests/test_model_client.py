import pytest
import requests

from resume_pipeline.services.model_client import ModelClient
from resume_pipeline.utils.exceptions import ModelServiceError


class FakeHTTPResponse:
    def __init__(self, body=None, status_code=200, invalid_json=False):
        self.body = body
        self.status_code = status_code
        self.invalid_json = invalid_json

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} error")

    def json(self):
        if self.invalid_json:
            raise ValueError("not json")
        return self.body


@pytest.fixture
def client(settings):
    client = ModelClient(settings.model_copy(update={"MODEL_API_KEY": "secret"}))
    yield client
    client.close()


def test_call_model_returns_content_and_tokens(client, monkeypatch):
    captured = {}

    def fake_post(url, json=None, headers=None, timeout=None):
        captured.update(url=url, json=json, headers=headers, timeout=timeout)
        return FakeHTTPResponse(
            {"choices": [{"message": {"content": '{"a": 1}'}}], "usage": {"total_tokens": 42}}
        )

    monkeypatch.setattr(client.session, "post", fake_post)
    response = client.call_model([{"role": "user", "content": "hi"}], max_tokens=10)

    assert response.content == '{"a": 1}'
    assert response.total_tokens == 42
    assert captured["headers"]["Authorization"] == "Bearer secret"
    assert captured["json"]["max_tokens"] == 10
    assert captured["json"]["stream"] is False


def test_content_parts_are_joined(client, monkeypatch):
    body = {"choices": [{"message": {"content": [{"type": "text", "text": "{"}, {"text": "}"}]}}]}
    monkeypatch.setattr(client.session, "post", lambda *a, **k: FakeHTTPResponse(body))
    assert client.call_model([]).content == "{\n}"


def test_empty_choices_give_empty_content(client, monkeypatch):
    monkeypatch.setattr(client.session, "post", lambda *a, **k: FakeHTTPResponse({"choices": []}))
    response = client.call_model([])
    assert response.content == ""
    assert response.total_tokens == 0


@pytest.mark.parametrize(
    "fake",
    [
        FakeHTTPResponse(status_code=503),
        FakeHTTPResponse(invalid_json=True),
    ],
)
def test_http_failures_raise_model_service_error(client, monkeypatch, fake):
    monkeypatch.setattr(client.session, "post", lambda *a, **k: fake)
    with pytest.raises(ModelServiceError):
        client.call_model([])


def test_connection_error(client, monkeypatch):
    def refuse(*args, **kwargs):
        raise requests.exceptions.ConnectionError("refused")

    monkeypatch.setattr(client.session, "post", refuse)
    with pytest.raises(ModelServiceError):
        client.call_model([])
