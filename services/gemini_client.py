import json
import logging
import time

import httpx

logger = logging.getLogger(__name__)


class ProviderError(Exception):
    pass


def reply_text(data):
    """Pull candidates[0].content.parts[0].text out of a generateContent response."""
    try:
        text = data["candidates"][0]["content"]["parts"][0].get("text")
    except (KeyError, IndexError, TypeError, AttributeError):
        return ""
    return text if isinstance(text, str) else ""


class GeminiClient:
    """
    Thin wrapper around the Gemini generateContent REST endpoint.

    One retry after a fixed delay, then ProviderError. The retry is capped
    at one so a flaky provider cannot stretch a batch indefinitely.

    `timeout` bounds each attempt as a whole: httpx applies it per phase
    (connect/read/write/pool), and the body is read against a deadline so a
    slowly trickling reply cannot outlive it.
    """

    def __init__(self, api_key, api_base, model, timeout=20.0, retry_delay=1.5, http_client=None,
                 clock=time.monotonic):
        self.api_key = api_key
        self.url = f"{api_base}/models/{model}:generateContent"
        self.timeout = timeout
        self.retry_delay = retry_delay
        self.http_client = http_client or httpx.Client(timeout=timeout)
        self._clock = clock

    def _post(self, payload):
        deadline = self._clock() + self.timeout
        body = bytearray()
        with self.http_client.stream(
            "POST",
            self.url,
            params={"key": self.api_key},
            json=payload,
            headers={"Content-Type": "application/json"},
            timeout=self.timeout,
        ) as response:
            for chunk in response.iter_bytes():
                body.extend(chunk)
                if self._clock() > deadline:
                    raise ProviderError(f"Gemini did not answer within {self.timeout:g}s")

        if response.status_code != 200:
            text = bytes(body).decode("utf-8", errors="replace")
            raise ProviderError(f"Gemini returned {response.status_code}: {text[:200]}")
        try:
            return reply_text(json.loads(bytes(body)))
        except (ValueError, RecursionError) as e:
            raise ProviderError("Gemini returned a non-JSON body") from e

    def _attempt(self, payload):
        try:
            return self._post(payload)
        except httpx.HTTPError as e:
            raise ProviderError(f"Gemini request failed: {e}") from e

    def invoke(self, payload: dict) -> str:
        if not self.api_key:
            raise ProviderError("GEMINI_API_KEY is not configured")

        try:
            return self._attempt(payload)
        except ProviderError as e:
            logger.warning("Gemini attempt failed, retrying in %.1fs: %s", self.retry_delay, e)

        time.sleep(self.retry_delay)
        return self._attempt(payload)

    def close(self):
        self.http_client.close()
