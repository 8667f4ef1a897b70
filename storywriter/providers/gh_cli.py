"""
GitHub CLI backend.

Strategy `gh-api`: calls
    gh api --method POST <models endpoint> --header "Content-Type: application/json" --input -
with an OpenAI-compatible chat body on stdin, using the currently
authenticated GitHub token.

Strategy `gh-copilot-explain`: calls `gh copilot explain "<prompt>"` for a
lightweight run without GitHub Models access.
"""

import json
import logging
import subprocess
from typing import Any, Callable, Dict, List, Optional

from storywriter.core.cancellation import current_token
from storywriter.utils.error_handling import CancellationFailure, GenerationFailure
from storywriter.utils.text import preview

logger = logging.getLogger(__name__)

STRATEGY_API = "gh-api"
STRATEGY_EXPLAIN = "gh-copilot-explain"

DEFAULT_MODELS_ENDPOINT = "https://models.inference.ai.azure.com/chat/completions"

PopenFactory = Callable[..., Any]


class GhCliBackend:
    """Runs each generation as a `gh` subprocess with a hard timeout."""

    def __init__(
        self,
        strategy: str = STRATEGY_API,
        models_endpoint: str = DEFAULT_MODELS_ENDPOINT,
        timeout: float = 60,
        gh_binary: str = "gh",
        popen: Optional[PopenFactory] = None,
    ):
        if strategy not in (STRATEGY_API, STRATEGY_EXPLAIN):
            raise ValueError(f"Unknown gh strategy: {strategy}")
        self.strategy = strategy
        self.models_endpoint = models_endpoint
        self.timeout = timeout
        self.gh_binary = gh_binary

        # Injection seam for unit tests; same signature as subprocess.Popen.
        self._popen = popen or subprocess.Popen

    def get_config(self) -> Dict[str, Any]:
        return {
            "strategy": self.strategy,
            "models_endpoint": self.models_endpoint,
            "timeout": self.timeout,
            "gh_binary": self.gh_binary,
        }

    def generate(
        self,
        role: str,
        model: str,
        system_prompt: str,
        user_prompt: str,
        timeout: Optional[float] = None,
    ) -> str:
        effective_timeout = timeout if timeout is not None else self.timeout
        logger.info(f"[{role}] Invoking gh CLI (strategy={self.strategy}, model={model})")

        if self.strategy == STRATEGY_EXPLAIN:
            args = [self.gh_binary, "copilot", "explain", user_prompt]
            return self._run(role, args, None, effective_timeout)

        body = self._build_body(model, system_prompt, user_prompt)
        args = [
            self.gh_binary, "api",
            "--method", "POST",
            self.models_endpoint,
            "--header", "Content-Type: application/json",
            "--input", "-",
        ]
        stdout = self._run(role, args, json.dumps(body), effective_timeout)
        return self._parse_content(role, stdout)

    def _build_body(self, model: str, system_prompt: str, user_prompt: str) -> Dict[str, Any]:
        messages: List[Dict[str, str]] = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": user_prompt})
        return {"model": model, "messages": messages}

    def _run(self, role: str, args: List[str], stdin_text: Optional[str], timeout: float) -> str:
        try:
            process = self._popen(
                args,
                stdin=subprocess.PIPE if stdin_text is not None else subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
            )
        except OSError as e:
            raise GenerationFailure(role, f"could not start {args[0]}: {e}") from e

        token = current_token()
        unregister = token.register(process.kill) if token is not None else (lambda: None)
        try:
            try:
                stdout, stderr = process.communicate(input=stdin_text, timeout=timeout)
            except subprocess.TimeoutExpired as e:
                process.kill()
                process.communicate()
                raise GenerationFailure(role, f"{' '.join(args[:2])} timed out after {timeout}s") from e
            except OSError as e:
                process.kill()
                raise GenerationFailure(role, f"I/O error talking to {args[0]}: {e}") from e
        finally:
            unregister()

        if token is not None and token.cancelled:
            raise CancellationFailure(f"[{role}] generation stopped: {token.reason}")

        if process.returncode != 0:
            logger.error(f"[{role}] {' '.join(args[:2])} exited with code {process.returncode}: {stderr}")
            raise GenerationFailure(role, f"{' '.join(args[:2])} failed with exit code {process.returncode}: {(stderr or '').strip()}")

        return stdout or ""

    def _parse_content(self, role: str, stdout: str) -> str:
        # OpenAI-compatible response: choices[0].message.content
        try:
            data = json.loads(stdout)
            content = data["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise GenerationFailure(
                role, f"unexpected GitHub Models response: {preview(stdout, 200)!r}"
            ) from e
        if not isinstance(content, str):
            raise GenerationFailure(role, "GitHub Models response has no text content")
        return content
