"""Model-aware token counting backed by tiktoken."""

from __future__ import annotations

import logging
import threading
from typing import Any

import tiktoken

logger = logging.getLogger(__name__)

DEFAULT_FALLBACK_ENCODING = "o200k_base"


class TokenCountError(Exception):
    pass


class TokenCounter:
    """Counts tokens for a model, caching one encoder per model name.

    Cache hits never take the lock; a miss takes it and re-checks before
    building the encoder, so concurrent callers share a single instance.
    Models tiktoken does not know (e.g. Claude models) are counted with
    ``fallback_encoding`` as an approximation, or rejected when it is None.
    """

    def __init__(self, fallback_encoding: str | None = DEFAULT_FALLBACK_ENCODING) -> None:
        self.fallback_encoding = fallback_encoding
        self._encoders: dict[str, Any] = {}
        self._lock = threading.Lock()

    def count_text(self, text: str, model: str) -> int:
        encoder = self._encoder_for(model)
        return len(encoder.encode(text, disallowed_special=()))

    def _encoder_for(self, model: str) -> Any:
        encoder = self._encoders.get(model)
        if encoder is not None:
            return encoder

        with self._lock:
            encoder = self._encoders.get(model)
            if encoder is not None:
                return encoder
            encoder = self._build_encoder(model)
            self._encoders[model] = encoder
            return encoder

    def _build_encoder(self, model: str) -> Any:
        try:
            return tiktoken.encoding_for_model(model)
        except KeyError:
            if not self.fallback_encoding:
                raise TokenCountError(f"No tokenizer known for model {model}") from None
            logger.debug("No tokenizer mapping for %s; using %s", model, self.fallback_encoding)
        except Exception as e:
            raise TokenCountError(f"Failed to get encoding for model {model}: {e}") from e
        try:
            return tiktoken.get_encoding(self.fallback_encoding)
        except Exception as e:
            raise TokenCountError(
                f"Failed to load encoding {self.fallback_encoding} for model {model}: {e}"
            ) from e
