"""Client-side state for the two pages: code generation and problem solving."""

from __future__ import annotations

from dataclasses import dataclass

import httpx
import structlog

from codegen_relay.client.api import Ok, RelayClient, parse_result
from codegen_relay.models.request import DEFAULT_LANGUAGE

logger = structlog.get_logger()

LANGUAGE_OPTIONS = {
    "javascript": "JavaScript",
    "python": "Python",
    "java": "Java",
    "cpp": "C++",
}

EMPTY_PSEUDOCODE = "Please enter pseudocode before generating code."
NO_CODE_GENERATED = "No code generated. Please check the backend."
BACKEND_UNREACHABLE = (
    "Failed to connect to the backend. Ensure the server is running and API is working."
)
EMPTY_PROBLEM = "Please enter a problem statement before generating an answer."
NO_RESPONSE = "No response received."
FETCH_FAILED = "Error fetching response."


@dataclass
class ViewState:
    text: str = ""
    result: str = ""
    error: str = ""
    loading: bool = False


class CodeGeneratorView:
    """Pseudocode input, language selector and a read-only result."""

    def __init__(self, client: RelayClient, language: str = DEFAULT_LANGUAGE) -> None:
        self.client = client
        self.state = ViewState()
        self.select_language(language)

    @property
    def language(self) -> str:
        return self._language

    def select_language(self, language: str) -> None:
        if language not in LANGUAGE_OPTIONS:
            raise ValueError(f"language must be one of {sorted(LANGUAGE_OPTIONS)}")
        self._language = language

    async def submit(self, text: str | None = None) -> ViewState:
        if text is not None:
            self.state.text = text

        if not self.state.text.strip():
            self.state.error = EMPTY_PSEUDOCODE
            return self.state

        self.state.loading = True
        self.state.error = ""
        self.state.result = ""
        try:
            payload = await self.client.generate(self.state.text, self._language)
            parsed = parse_result(payload, "code")
            if isinstance(parsed, Ok):
                self.state.result = parsed.text
            else:
                self.state.error = NO_CODE_GENERATED
        except httpx.HTTPError as e:
            logger.warning("generate_request_failed", error=str(e))
            self.state.error = BACKEND_UNREACHABLE
        finally:
            self.state.loading = False

        return self.state


class ProblemSolverView:
    """Free-text problem statement in, prose answer out."""

    def __init__(self, client: RelayClient) -> None:
        self.client = client
        self.state = ViewState()

    async def submit(self, text: str | None = None) -> ViewState:
        if text is not None:
            self.state.text = text

        if not self.state.text.strip():
            self.state.error = EMPTY_PROBLEM
            return self.state

        self.state.loading = True
        self.state.error = ""
        self.state.result = ""
        try:
            payload = await self.client.solve(self.state.text)
            parsed = parse_result(payload, "solution")
            self.state.result = parsed.text if isinstance(parsed, Ok) else NO_RESPONSE
        except httpx.HTTPError as e:
            logger.warning("solve_request_failed", error=str(e))
            self.state.result = FETCH_FAILED
        finally:
            self.state.loading = False

        return self.state
