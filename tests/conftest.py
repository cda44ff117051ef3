import json

import pytest
import requests

from form_gateway.app import create_app
from form_gateway.proxy.config import Settings

ALLOWED_ORIGIN = "https://app.prompttoform.ai"


def make_response(status=200, body=b"", content_type="application/json", reason=None, url="https://upstream.test/"):
    """Build a real ``requests.Response`` without touching the network."""
    response = requests.Response()
    response.status_code = status
    if isinstance(body, (dict, list)):
        body = json.dumps(body)
    if isinstance(body, str):
        body = body.encode("utf-8")
    response._content = body
    response._content_consumed = True
    response.encoding = "utf-8"
    response.reason = reason or ("OK" if status < 400 else "Error")
    response.url = url
    if content_type:
        response.headers["Content-Type"] = content_type
    return response


@pytest.fixture
def http_response():
    return make_response


@pytest.fixture
def settings(tmp_path):
    return Settings(
        env="production",
        allowed_origins=("https://prompttoform.ai", ALLOWED_ORIGIN),
        system_keys={"openai": "sk-system-openai", "gemini": "gemini-system-key"},
        database_path=str(tmp_path / "forms.db"),
        mailrelay_api_key="test-api-key",
        mailrelay_domain="test.mailrelay.com",
        netlify_client_id="test-client-id",
        netlify_client_secret="test-client-secret",
        netlify_redirect_uri="https://gateway.test/netlify/auth",
    )


@pytest.fixture
def app(settings):
    app = create_app(settings)
    app.config.update(TESTING=True)
    return app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_client(tmp_path):
    """Build a test client from a variant of the default settings."""

    def _make(**overrides):
        base = dict(
            env="production",
            allowed_origins=("https://prompttoform.ai", ALLOWED_ORIGIN),
            system_keys={"openai": "sk-system-openai"},
            database_path=str(tmp_path / "variant.db"),
        )
        base.update(overrides)
        app = create_app(Settings(**base))
        app.config.update(TESTING=True)
        return app.test_client()

    return _make
