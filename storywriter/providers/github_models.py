"""
GitHub Models backend over HTTP.

POSTs an OpenAI-compatible chat body to the GitHub Models endpoint with the
GITHUB_TOKEN bearer token and returns choices[0].message.content.
"""

import logging
import os
from typing import Any, Callable, Dict, List, Optional

import httpx

from storywriter.core.cancellation import current_token
from storywriter.providers.gh_cli import DEFAULT_MODELS_ENDPOINT
from storywriter.utils.error_handling import CancellationFailure, GenerationFailure
from storywriter.utils.text import preview

logger = logging.getLogger(__name__)

# Signature: (url, json_payload, headers, timeout_seconds) -> response-like
PostFn = Callable[[str, Dict[str, Any], Dict[str, str], float], Any]


class MissingTokenError(RuntimeError):
    pass


class GitHubModelsBackend:
    def __init__(
        self,
        endpoint: str = DEFAULT_MODELS_ENDPOINT,
        timeout: float = 60,
        token: Optional[str] = None,
        post_fn: Optional[PostFn] = None,
    ):
        token = token or os.environ.get("GITHUB_TOKEN")
        if not token:
            raise MissingTokenError("GITHUB_TOKEN not found in environment")
        self._token = token
        self.endpoint = endpoint
        self.timeout = timeout

        # Injection seam for unit tests.
        self._post_fn = post_fn

    def get_config(self) -> Dict[str, Any]:
        return {"endpoint": self.endpoint, "timeout": self.timeout}

    def generate(
        self,
        role: str,
        model: str,
        system_prompt: str,
        user_prompt: str,
        timeout: Optional[float] = None,
    ) -> str:
        effective_timeout = timeout if timeout is not None else self.timeout
        logger.info(f"[{role}] Calling GitHub Models (model={model})")

        payload = {"model": model, "messages": self._build_messages(system_prompt, user_prompt)}
        try:
            resp = self._post(payload, effective_timeout)
        except httpx.TimeoutException as e:
            raise GenerationFailure(role, f"GitHub Models call timed out after {effective_timeout}s") from e
        except httpx.HTTPError as e:
            raise GenerationFailure(role, f"GitHub Models call failed: {e}") from e

        token = current_token()
        if token is not None and token.cancelled:
            raise CancellationFailure(f"[{role}] generation stopped: {token.reason}")

        self._raise_for_status(role, resp)
        return self._parse_response_text(role, resp)

    def _build_messages(self, system_prompt: str, user_prompt: str) -> List[Dict[str, str]]:
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": user_prompt})
        return messages

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "Authorization": f"Bearer {self._token}",
        }

    def _post(self, payload: Dict[str, Any], timeout: float) -> Any:
        if self._post_fn is not None:
            return self._post_fn(self.endpoint, payload, self._headers(), timeout)

        with httpx.Client(timeout=timeout) as client:
            return client.post(self.endpoint, json=payload, headers=self._headers())

    def _raise_for_status(self, role: str, resp: Any) -> None:
        status_code = getattr(resp, "status_code", None)
        if status_code is None:
            return

        if status_code in (401, 403):
            raise GenerationFailure(
                role,
                f"Permission error calling GitHub Models (HTTP {status_code}). "
                "Ensure GITHUB_TOKEN is valid and has the 'models:read' scope.",
            )

        if status_code >= 400:
            body = getattr(resp, "text", "")
            raise GenerationFailure(role, f"HTTP error calling GitHub Models: {status_code}. Body: {preview(body, 500)}")

    def _parse_response_text(self, role: str, resp: Any) -> str:
        try:
            data = resp.json()
            content = data["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            text = getattr(resp, "text", "") or ""
            raise GenerationFailure(role, f"unexpected GitHub Models response: {preview(text, 200)!r}") from e
        if not isinstance(content, str):
            raise GenerationFailure(role, "GitHub Models response has no text content")
        return content
