import threading
from collections import OrderedDict

from openai import OpenAI

from .logger import logger

# Keys come from request headers, so the cache is an LRU. Evicted clients are
# only dropped; a round trip still holding one keeps using it.
MAX_CACHED_CLIENTS = 32
CLIENT_CACHE = OrderedDict()
_CACHE_LOCK = threading.Lock()


def _get_client(base_url, api_key, settings):
    cache_key = (base_url, api_key)
    with _CACHE_LOCK:
        client = CLIENT_CACHE.get(cache_key)
        if client is not None:
            CLIENT_CACHE.move_to_end(cache_key)
            return client
        client = OpenAI(
            api_key=api_key or "",
            base_url=base_url,
            timeout=settings.openai_timeout,
            max_retries=settings.openai_max_retries,
        )
        CLIENT_CACHE[cache_key] = client
        while len(CLIENT_CACHE) > MAX_CACHED_CLIENTS:
            (evicted_url, _), _ = CLIENT_CACHE.popitem(last=False)
            logger.debug("Evicted cached LLM client for %s.", evicted_url)
    return client


def _extract_bearer_token(auth_header):
    if auth_header and auth_header.lower().startswith("bearer "):
        return auth_header[7:].strip()
    return auth_header or None
