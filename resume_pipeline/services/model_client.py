"""
HTTP client for the external language model (OpenAI-compatible chat API).
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..core.config import Settings, get_settings
from ..core.constants import RETRY_BACKOFF_FACTOR, RETRY_STATUS_CODES
from ..core.logger import logger
from ..utils.exceptions import ModelServiceError


@dataclass
class ModelResponse:
    content: str
    total_tokens: int = 0


class ModelClient:
    """Thin wrapper around a chat-completions endpoint"""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.session = requests.Session()

        retry = Retry(
            total=self.settings.MODEL_MAX_RETRIES,
            backoff_factor=RETRY_BACKOFF_FACTOR,
            status_forcelist=RETRY_STATUS_CODES,
            allowed_methods=frozenset(["POST"]),
            respect_retry_after_header=True,
        )
        adapter = HTTPAdapter(max_retries=retry)
        self.session.mount("https://", adapter)
        self.session.mount("http://", adapter)

    def call_model(
        self,
        messages: List[Dict[str, str]],
        temperature: float = 0.1,
        max_tokens: int = 4000,
    ) -> ModelResponse:
        headers = {"Content-Type": "application/json"}
        if self.settings.MODEL_API_KEY:
            headers["Authorization"] = f"Bearer {self.settings.MODEL_API_KEY}"

        payload = {
            "model": self.settings.MODEL_NAME,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
            "stream": False,
        }

        try:
            response = self.session.post(
                self.settings.MODEL_API_URL,
                json=payload,
                headers=headers,
                timeout=self.settings.MODEL_TIMEOUT_SECONDS,
            )
            response.raise_for_status()
            body = response.json()
        except requests.exceptions.RequestException as e:
            logger.error(f"Model request to {self.settings.MODEL_API_URL} failed: {str(e)}")
            raise ModelServiceError(f"Model request failed: {str(e)}") from e
        except ValueError as e:
            raise ModelServiceError("Model endpoint returned a non-JSON body") from e

        return ModelResponse(
            content=self._collect_content(body),
            total_tokens=int((body.get("usage") or {}).get("total_tokens") or 0),
        )

    @staticmethod
    def _collect_content(body: Dict[str, Any]) -> str:
        choices = body.get("choices") or []
        if not choices:
            return ""
        message = choices[0].get("message") or {}
        content = message.get("content")
        if isinstance(content, list):
            parts = [part.get("text", "") for part in content if isinstance(part, dict)]
            return "\n".join(p for p in parts if p)
        return content or ""

    def close(self):
        self.session.close()
