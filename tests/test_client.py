from unittest.mock import patch

import pytest

from form_gateway.proxy import client as client_module
from form_gateway.proxy.client import MAX_CACHED_CLIENTS, _extract_bearer_token, _get_client
from form_gateway.proxy.config import Settings


@pytest.fixture(autouse=True)
def empty_cache():
    client_module.CLIENT_CACHE.clear()
    yield
    client_module.CLIENT_CACHE.clear()


def test_clients_are_reused_per_url_and_key():
    settings = Settings()
    first = _get_client("https://api.openai.com/v1", "sk-1", settings)
    assert _get_client("https://api.openai.com/v1", "sk-1", settings) is first
    assert _get_client("https://api.openai.com/v1", "sk-2", settings) is not first


def test_cache_is_bounded_for_caller_supplied_keys():
    settings = Settings()
    with patch.object(client_module, "OpenAI", side_effect=lambda **kwargs: object()):
        for index in range(MAX_CACHED_CLIENTS * 10):
            _get_client(f"https://llm-{index}.example/v1", f"token-{index}", settings)

    assert len(client_module.CLIENT_CACHE) == MAX_CACHED_CLIENTS
    newest = f"https://llm-{MAX_CACHED_CLIENTS * 10 - 1}.example/v1"
    assert (newest, f"token-{MAX_CACHED_CLIENTS * 10 - 1}") in client_module.CLIENT_CACHE
    assert ("https://llm-0.example/v1", "token-0") not in client_module.CLIENT_CACHE


def test_recently_used_client_survives_eviction():
    settings = Settings()
    with patch.object(client_module, "OpenAI", side_effect=lambda **kwargs: object()):
        kept = _get_client("https://kept.example/v1", "token", settings)
        for index in range(MAX_CACHED_CLIENTS - 1):
            _get_client(f"https://llm-{index}.example/v1", "token", settings)
        assert _get_client("https://kept.example/v1", "token", settings) is kept
        _get_client("https://one-more.example/v1", "token", settings)

    assert ("https://kept.example/v1", "token") in client_module.CLIENT_CACHE
    assert ("https://llm-0.example/v1", "token") not in client_module.CLIENT_CACHE


def test_extract_bearer_token():
    assert _extract_bearer_token("Bearer sk-abc") == "sk-abc"
    assert _extract_bearer_token("raw-key") == "raw-key"
    assert _extract_bearer_token("") is None
