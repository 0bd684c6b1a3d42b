"""Single-turn completion clients with a client-side token ceiling."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Protocol

import requests

from reviewrunner.tokens import TokenCountError, TokenCounter

if TYPE_CHECKING:
    from reviewrunner.config import Config

logger = logging.getLogger(__name__)

DEFAULT_TOKEN_CEILING = 120000
DEFAULT_TIMEOUT = 90.0


class LLMError(Exception):
    """Base class for completion failures."""

    retryable = False


class TokenLimitExceededError(LLMError):
    def __init__(self, tokens: int, limit: int) -> None:
        super().__init__(f"prompt too large: {tokens} tokens (limit: {limit})")
        self.tokens = tokens
        self.limit = limit


class LLMRequestError(LLMError):
    """Transport failure or non-success status from the endpoint."""

    def __init__(self, message: str, status_code: int | None = None, retryable: bool = False) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.retryable = retryable


class LLMResponseError(LLMError):
    """The endpoint answered but the completion could not be used."""


class Completer(Protocol):
    """What the review workflow needs from a completion backend."""

    model: str

    def complete(self, prompt: str) -> str: ...

    def count_text(self, text: str) -> int: ...


def _is_retryable_status(status: int) -> bool:
    return status == 429 or status >= 500


class CompletionClient:
    """Shared behaviour: token counting and the pre-send ceiling check."""

    def __init__(
        self,
        model: str,
        token_ceiling: int = DEFAULT_TOKEN_CEILING,
        counter: TokenCounter | None = None,
    ) -> None:
        self.model = model
        self.token_ceiling = token_ceiling
        self.counter = counter or TokenCounter()

    def count_text(self, text: str) -> int:
        return self.counter.count_text(text, self.model)

    def complete(self, prompt: str) -> str:
        """Send ``prompt`` as a single user message and return the reply text."""
        try:
            tokens = self.count_text(prompt)
        except TokenCountError as e:
            logger.debug("Could not count prompt tokens, sending without the ceiling check: %s", e)
        else:
            if tokens > self.token_ceiling:
                raise TokenLimitExceededError(tokens, self.token_ceiling)
            logger.debug("Sending %d-token prompt to %s", tokens, self.model)
        return self._send(prompt)

    def _send(self, prompt: str) -> str:
        raise NotImplementedError


class OpenAIClient(CompletionClient):
    """OpenAI-compatible ``/chat/completions`` client over requests."""

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o",
        base_url: str = "https://api.openai.com/v1",
        timeout: float = DEFAULT_TIMEOUT,
        token_ceiling: int = DEFAULT_TOKEN_CEILING,
        counter: TokenCounter | None = None,
    ) -> None:
        if not api_key:
            raise LLMError("OpenAI API key is required. Set OPENAI_API_KEY env var or config openai_api_key.")
        super().__init__(model, token_ceiling=token_ceiling, counter=counter)
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers.update(
            {
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            }
        )

    def _send(self, prompt: str) -> str:
        body = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
        }
        try:
            resp = self.session.post(
                f"{self.base_url}/chat/completions", json=body, timeout=self.timeout
            )
        except requests.Timeout as e:
            raise LLMRequestError(f"request timed out after {self.timeout:.0f}s", retryable=True) from e
        except requests.RequestException as e:
            raise LLMRequestError(f"error sending request: {e}", retryable=True) from e

        if resp.status_code != 200:
            raise LLMRequestError(
                f"unexpected status code: {resp.status_code}, body: {resp.text}",
                status_code=resp.status_code,
                retryable=_is_retryable_status(resp.status_code),
            )

        try:
            data = resp.json()
        except ValueError as e:
            raise LLMResponseError(f"error decoding response: {e}") from e

        choices = data.get("choices") or []
        if not choices:
            raise LLMResponseError("no choices in response")
        content = (choices[0].get("message") or {}).get("content")
        if not content:
            raise LLMResponseError("empty completion in response")
        return content


class AnthropicClient(CompletionClient):
    """Claude Messages API client."""

    def __init__(
        self,
        api_key: str,
        model: str = "claude-sonnet-4-20250514",
        max_output_tokens: int = 4096,
        timeout: float = DEFAULT_TIMEOUT,
        token_ceiling: int = DEFAULT_TOKEN_CEILING,
        counter: TokenCounter | None = None,
        client: Any = None,
    ) -> None:
        if not api_key and client is None:
            raise LLMError("Anthropic API key is required. Set ANTHROPIC_API_KEY env var or config anthropic_api_key.")
        super().__init__(model, token_ceiling=token_ceiling, counter=counter)
        self.max_output_tokens = max_output_tokens
        if client is None:
            import anthropic
            client = anthropic.Anthropic(api_key=api_key, timeout=timeout, max_retries=0)
        self.client = client

    def _send(self, prompt: str) -> str:
        import anthropic

        try:
            response = self.client.messages.create(
                model=self.model,
                max_tokens=self.max_output_tokens,
                messages=[{"role": "user", "content": prompt}],
            )
        except anthropic.APIStatusError as e:
            raise LLMRequestError(
                f"unexpected status code: {e.status_code}, body: {e.message}",
                status_code=e.status_code,
                retryable=_is_retryable_status(e.status_code),
            ) from e
        except anthropic.APIError as e:
            # Timeouts and connection errors
            raise LLMRequestError(f"error sending request: {e}", retryable=True) from e

        text = "".join(
            getattr(block, "text", "") for block in (response.content or [])
        )
        if not text:
            raise LLMResponseError("empty completion in response")
        return text


def create_client(cfg: Config, counter: TokenCounter | None = None) -> CompletionClient:
    """Build the completion client selected by ``cfg.llm.provider``."""
    llm = cfg.llm
    if llm.provider == "openai":
        return OpenAIClient(
            api_key=cfg.openai_api_key.get_secret_value(),
            model=llm.model,
            base_url=llm.base_url,
            timeout=llm.timeout_seconds,
            token_ceiling=llm.token_ceiling,
            counter=counter,
        )
    if llm.provider == "anthropic":
        return AnthropicClient(
            api_key=cfg.anthropic_api_key.get_secret_value(),
            model=llm.model,
            max_output_tokens=llm.max_output_tokens,
            timeout=llm.timeout_seconds,
            token_ceiling=llm.token_ceiling,
            counter=counter,
        )
    raise LLMError(f"Unknown LLM provider: {llm.provider}")
