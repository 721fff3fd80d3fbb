"""Process-wide cache of Gemini clients keyed by API key."""
import logging
import os
import threading
from collections.abc import Callable
from typing import Optional

from google import genai

from .exceptions import ConfigError

logger = logging.getLogger(__name__)

API_KEY_ENV_VAR = "GEMINI_API_KEY"


class GenAIClientCache:
    """Builds one ``genai.Client`` per API key and reuses it.

    Args:
        factory: Callable creating a client from an API key. Defaults to
            ``genai.Client``; tests inject a fake.
    """

    def __init__(self, factory: Optional[Callable[[str], "genai.Client"]] = None) -> None:
        self._factory = factory or (lambda api_key: genai.Client(api_key=api_key))
        self._clients: dict[str, "genai.Client"] = {}
        self._lock = threading.Lock()

    def get(self, api_key: Optional[str] = None) -> "genai.Client":
        """Return the client for ``api_key``, falling back to ``GEMINI_API_KEY``.

        Raises:
            ConfigError: If no API key is available
        """
        key = api_key or os.getenv(API_KEY_ENV_VAR)
        if not key:
            raise ConfigError(f"{API_KEY_ENV_VAR} not configured in environment", source="credentials")

        with self._lock:
            client = self._clients.get(key)
            if client is None:
                logger.debug("Creating Gemini client")
                client = self._factory(key)
                self._clients[key] = client
            return client

    def reset(self) -> None:
        """Drop every cached client, e.g. after credential rotation."""
        with self._lock:
            self._clients.clear()

    def __len__(self) -> int:
        return len(self._clients)


default_client_cache = GenAIClientCache()
