import json
import subprocess

import pytest

from storywriter.core.cancellation import CancellationToken, bind_token
from storywriter.providers.gh_cli import DEFAULT_MODELS_ENDPOINT, GhCliBackend
from storywriter.utils.error_handling import CancellationFailure, GenerationFailure


class FakeProcess:
    def __init__(self, stdout="", stderr="", returncode=0, timeout=False, on_communicate=None):
        self._stdout = stdout
        self._stderr = stderr
        self.returncode = returncode
        self._timeout = timeout
        self._on_communicate = on_communicate
        self.killed = False
        self.stdin_text = None

    def communicate(self, input=None, timeout=None):
        if self._on_communicate is not None:
            self._on_communicate(self)
        if self._timeout and not self.killed:
            self.stdin_text = input
            raise subprocess.TimeoutExpired(cmd="gh", timeout=timeout)
        if input is not None:
            self.stdin_text = input
        return self._stdout, self._stderr

    def kill(self):
        self.killed = True


class FakePopen:
    def __init__(self, process=None, error=None):
        self.process = process
        self.error = error
        self.args = None
        self.kwargs = None

    def __call__(self, args, **kwargs):
        self.args = args
        self.kwargs = kwargs
        if self.error is not None:
            raise self.error
        return self.process


def completion(content):
    return json.dumps({"choices": [{"message": {"role": "assistant", "content": content}}]})


def test_api_strategy_builds_command_and_body():
    popen = FakePopen(FakeProcess(stdout=completion("hello")))
    backend = GhCliBackend(popen=popen, timeout=30)

    text = backend.generate("RootCause", "gpt-4o-mini", "system", "user prompt")

    assert text == "hello"
    assert popen.args == [
        "gh", "api", "--method", "POST", DEFAULT_MODELS_ENDPOINT,
        "--header", "Content-Type: application/json", "--input", "-",
    ]
    body = json.loads(popen.process.stdin_text)
    assert body["model"] == "gpt-4o-mini"
    assert body["messages"] == [
        {"role": "system", "content": "system"},
        {"role": "user", "content": "user prompt"},
    ]
    assert popen.kwargs["stdin"] == subprocess.PIPE


def test_explain_strategy_returns_stdout():
    popen = FakePopen(FakeProcess(stdout="explanation text\n"))
    backend = GhCliBackend(strategy="gh-copilot-explain", gh_binary="/usr/bin/gh", popen=popen)

    text = backend.generate("TechnicalAnalyzer", "any", "system", "explain this")

    assert text == "explanation text\n"
    assert popen.args == ["/usr/bin/gh", "copilot", "explain", "explain this"]
    assert popen.kwargs["stdin"] == subprocess.DEVNULL


def test_unknown_strategy_rejected():
    with pytest.raises(ValueError):
        GhCliBackend(strategy="telnet")


def test_timeout_kills_process():
    process = FakeProcess(timeout=True)
    backend = GhCliBackend(popen=FakePopen(process), timeout=5)

    with pytest.raises(GenerationFailure, match="timed out after 5s") as exc_info:
        backend.generate("Severity", "m", "s", "u")

    assert process.killed
    assert exc_info.value.role == "Severity"


def test_per_call_timeout_overrides_default():
    process = FakeProcess(timeout=True)
    backend = GhCliBackend(popen=FakePopen(process), timeout=60)

    with pytest.raises(GenerationFailure, match="timed out after 2s"):
        backend.generate("Severity", "m", "s", "u", timeout=2)


def test_non_zero_exit_is_generation_failure():
    process = FakeProcess(stderr="HTTP 401: Bad credentials\n", returncode=1)
    backend = GhCliBackend(popen=FakePopen(process))

    with pytest.raises(GenerationFailure, match="exit code 1: HTTP 401: Bad credentials"):
        backend.generate("BugWriter", "m", "s", "u")


def test_missing_binary_is_generation_failure():
    backend = GhCliBackend(popen=FakePopen(error=FileNotFoundError("gh")))

    with pytest.raises(GenerationFailure, match="could not start gh"):
        backend.generate("BugWriter", "m", "s", "u")


def test_malformed_api_response_is_generation_failure():
    backend = GhCliBackend(popen=FakePopen(FakeProcess(stdout="<html>gateway error</html>")))

    with pytest.raises(GenerationFailure, match="unexpected GitHub Models response"):
        backend.generate("StoryWriter", "m", "s", "u")


def test_cancellation_kills_process():
    token = CancellationToken()

    def cancel_midway(process):
        token.cancel("sibling failed")

    process = FakeProcess(stdout="partial", on_communicate=cancel_midway)
    backend = GhCliBackend(strategy="gh-copilot-explain", popen=FakePopen(process))

    with bind_token(token):
        with pytest.raises(CancellationFailure, match="sibling failed"):
            backend.generate("StoryWriter", "m", "s", "u")

    assert process.killed


def test_get_config():
    backend = GhCliBackend(popen=FakePopen())

    assert backend.get_config()["strategy"] == "gh-api"
    assert backend.get_config()["gh_binary"] == "gh"
