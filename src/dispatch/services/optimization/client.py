"""HTTP adapters for the external route optimizer."""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from typing import Any

import httpx

from ...config import settings
from ...errors import ConfigurationError, OptimizerResponseError, OptimizerUnavailableError
from .models import RouteRequest
from .prompt import build_prompt

logger = logging.getLogger(__name__)

# Statuses worth another attempt; anything else is a bad answer, not an outage.
RETRYABLE_STATUS_CODES = frozenset({408, 429, 500, 502, 503, 504})


class Optimizer(ABC):
    """Black-box route optimizer. Returns the raw response document."""

    @abstractmethod
    def optimize(self, request: RouteRequest) -> dict[str, Any]: ...


def extract_json_object(text: str) -> dict[str, Any]:
    """Parse the outermost JSON object embedded in model output."""
    start = text.find("{")
    end = text.rfind("}") + 1
    if start < 0 or end <= start:
        raise OptimizerResponseError("Optimizer answer does not contain a JSON object", text)
    try:
        parsed = json.loads(text[start:end])
    except json.JSONDecodeError as exc:
        raise OptimizerResponseError(f"Optimizer answer is not valid JSON: {exc}", text) from exc
    if not isinstance(parsed, dict):
        raise OptimizerResponseError("Optimizer answer must be a JSON object", text)
    return parsed


class _HttpOptimizerBase(Optimizer):
    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = (base_url or settings.optimizer_base_url or "").rstrip("/")
        if not self.base_url:
            raise ConfigurationError("Optimizer base URL is not configured.")
        self.api_key = api_key if api_key is not None else settings.optimizer_api_key
        self.timeout = timeout if timeout is not None else settings.optimizer_timeout_seconds
        self._transport = transport

    def _get_client(self) -> httpx.Client:
        # One client per call keeps concurrent dispatch runs from sharing connections.
        return httpx.Client(
            timeout=httpx.Timeout(self.timeout, connect=10.0),
            transport=self._transport,
        )

    def _post(self, url: str, body: dict[str, Any], params: dict[str, str] | None = None) -> Any:
        client = self._get_client()
        try:
            response = client.post(url, json=body, params=params, headers=self._headers())
            response.raise_for_status()
            return response.json()
        except httpx.TimeoutException as exc:
            raise OptimizerUnavailableError(f"Optimizer request timed out after {self.timeout}s: {exc}") from exc
        except httpx.HTTPStatusError as exc:
            status_code = exc.response.status_code
            if status_code in RETRYABLE_STATUS_CODES:
                raise OptimizerUnavailableError(f"Optimizer returned HTTP {status_code}") from exc
            raise OptimizerResponseError(f"Optimizer rejected the request with HTTP {status_code}") from exc
        except (httpx.ConnectError, httpx.NetworkError) as exc:
            raise OptimizerUnavailableError(f"Failed to connect to optimizer at {self.base_url}: {exc}") from exc
        except ValueError as exc:
            raise OptimizerResponseError(f"Optimizer response is not JSON: {exc}") from exc
        finally:
            client.close()

    def _headers(self) -> dict[str, str]:
        return {"Content-Type": "application/json"}


class GeminiOptimizer(_HttpOptimizerBase):
    """Asks a Gemini model to plan the routes and extracts the JSON from its answer."""

    def __init__(self, model: str | None = None, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        if not self.api_key:
            raise ConfigurationError("Optimizer API key is not configured.")
        self.model = model or settings.optimizer_model

    def optimize(self, request: RouteRequest) -> dict[str, Any]:
        body = {
            "contents": [{"parts": [{"text": build_prompt(request)}]}],
            "generationConfig": {
                "temperature": settings.optimizer_temperature,
                "maxOutputTokens": settings.optimizer_max_output_tokens,
            },
        }
        url = f"{self.base_url}/models/{self.model}:generateContent"
        logger.info(
            f"Requesting route plan for {request.warehouse}: "
            f"{len(request.orders)} orders, {len(request.trucks)} trucks"
        )
        data = self._post(url, body, params={"key": self.api_key})
        try:
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError) as exc:
            raise OptimizerResponseError("Gemini response has no candidate text", data) from exc
        logger.debug(f"Optimizer raw answer: {text}")
        return extract_json_object(text)


class HttpOptimizer(_HttpOptimizerBase):
    """Posts the request snapshot to a service that answers with the route response contract."""

    def optimize(self, request: RouteRequest) -> dict[str, Any]:
        data = self._post(f"{self.base_url}/optimize-routes", request.payload())
        if not isinstance(data, dict):
            raise OptimizerResponseError("Optimizer response must be a JSON object", data)
        return data

    def _headers(self) -> dict[str, str]:
        headers = super()._headers()
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers


def build_optimizer() -> Optimizer:
    if settings.optimizer_provider == "http":
        return HttpOptimizer()
    return GeminiOptimizer()


def check_health() -> bool:
    """Report whether an optimizer can be built from the current configuration."""
    try:
        build_optimizer()
    except ConfigurationError:
        return False
    return True
