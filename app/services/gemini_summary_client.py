import json
from collections.abc import Mapping
from http.client import RemoteDisconnected
from time import sleep
from typing import Any
from urllib import error, parse, request

# Generation parameters are part of the contract, not caller-tunable.
GENERATION_CONFIG: dict[str, Any] = {
    "temperature": 0.7,
    "topK": 40,
    "topP": 0.95,
    "maxOutputTokens": 2048,
}
_RETRYABLE_HTTP_STATUSES = frozenset({429, 500, 502, 503, 504})


class TextGenerationUnavailableError(Exception):
    pass


class GeminiSummaryClient:
    def __init__(
        self,
        api_key: str,
        model: str,
        timeout_seconds: float = 20.0,
        api_base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        max_attempts: int = 2,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.timeout_seconds = timeout_seconds
        self.api_base_url = api_base_url.rstrip("/")
        self.max_attempts = max(max_attempts, 1)

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key.strip() and self.model.strip())

    def generate(self, prompt: str) -> str:
        if not self.is_configured:
            raise TextGenerationUnavailableError("Gemini API key is not configured.")
        response_payload = self._post(prompt)
        return self._extract_text_response(response_payload)

    def _post(self, prompt: str) -> dict[str, Any]:
        query = parse.urlencode({"key": self.api_key})
        endpoint = f"{self.api_base_url}/models/{self.model}:generateContent?{query}"
        payload = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": GENERATION_CONFIG,
        }
        req = request.Request(
            endpoint,
            data=json.dumps(payload).encode("utf-8"),
            headers={"Content-Type": "application/json"},
            method="POST",
        )
        response_body: bytes | None = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                with request.urlopen(req, timeout=self.timeout_seconds) as response:
                    response_body = response.read()
                break
            except TimeoutError as exc:
                raise TextGenerationUnavailableError("Gemini API request timed out.") from exc
            except RemoteDisconnected as exc:
                if attempt >= self.max_attempts:
                    raise TextGenerationUnavailableError(
                        "Gemini API connection was closed before sending a response.",
                    ) from exc
            except error.HTTPError as exc:
                body = exc.read().decode("utf-8", errors="ignore")
                if exc.code not in _RETRYABLE_HTTP_STATUSES or attempt >= self.max_attempts:
                    raise TextGenerationUnavailableError(
                        f"Gemini API HTTP {exc.code}: {body or 'empty response body'}",
                    ) from exc
            except error.URLError as exc:
                raise TextGenerationUnavailableError(
                    f"Gemini API connection error: {exc.reason}",
                ) from exc

            sleep(0.5 * attempt)

        if response_body is None:
            raise TextGenerationUnavailableError("Gemini API request failed after multiple attempts.")

        try:
            parsed_body = json.loads(response_body.decode("utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise TextGenerationUnavailableError("Gemini API returned invalid JSON.") from exc

        if not isinstance(parsed_body, dict):
            raise TextGenerationUnavailableError("Gemini API response is not a JSON object.")
        return parsed_body

    def _extract_text_response(self, payload: Mapping[str, Any]) -> str:
        candidates = payload.get("candidates")
        if not isinstance(candidates, list) or not candidates:
            raise TextGenerationUnavailableError("Gemini API response missing candidates.")

        first_candidate = candidates[0]
        if not isinstance(first_candidate, Mapping):
            raise TextGenerationUnavailableError("Gemini API response candidate is invalid.")

        content = first_candidate.get("content")
        if not isinstance(content, Mapping):
            raise TextGenerationUnavailableError("Gemini API response missing content.")

        parts = content.get("parts")
        if not isinstance(parts, list):
            raise TextGenerationUnavailableError("Gemini API response missing content parts.")

        chunks: list[str] = []
        for part in parts:
            if not isinstance(part, Mapping):
                continue
            text = part.get("text")
            if isinstance(text, str) and text.strip():
                chunks.append(text.strip())

        if not chunks:
            raise TextGenerationUnavailableError("Gemini API response did not include text output.")
        return "\n".join(chunks)
