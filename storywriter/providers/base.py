from typing import Optional, Protocol, runtime_checkable


@runtime_checkable
class GenerationBackend(Protocol):
    """
    Synchronous text-generation call used by every agent step.

    Implementations apply their configured timeout when timeout is None and
    raise GenerationFailure on timeout, non-zero exit or I/O error.
    """

    def generate(
        self,
        role: str,
        model: str,
        system_prompt: str,
        user_prompt: str,
        timeout: Optional[float] = None,
    ) -> str:
        ...
