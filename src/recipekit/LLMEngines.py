from __future__ import annotations

# LLMEngines.py
# Engines are stateless adapters around provider SDKs. The recipe executor
# talks to them through `send(system_prompt, user_prompt)`.

import logging
import os
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from openai import OpenAI

from .core.Exceptions import ExecutionFailure, PermanentExecutionFailure
from .retry import classify_failure

logger = logging.getLogger(__name__)

__all__ = ["LLMEngine", "OpenAIEngine"]

TokenCallback = Callable[[str], None]


class LLMEngine(ABC):
    """
    Base template-method primitive for chat provider adapters.

    Public contract
    ---------------
    - `invoke(messages: list[{"role": str, "content": str}]) -> str`
    - `send(system_prompt, user_prompt, on_token=None) -> str`, the chat
      collaborator contract used by the recipe executor.

    The provider is called exactly once per `invoke`; whole-run retry is the
    caller's business (see `recipekit.retry`). Provider exceptions are
    classified into `TransientExecutionFailure` / `PermanentExecutionFailure`.
    """

    def __init__(self, *, name: Optional[str] = None, timeout_seconds: float = 120.0) -> None:
        self._name = name or type(self).__name__
        self._timeout_seconds = float(timeout_seconds)

    @property
    def name(self) -> str:
        """Human-friendly identifier for this engine instance."""
        return self._name

    @property
    def timeout_seconds(self) -> float:
        return self._timeout_seconds

    # Template `invoke` --------------------------------------------------- #

    def invoke(self, messages: List[Dict[str, str]], on_token: Optional[TokenCallback] = None) -> str:
        """
        Template method that defines the engine invocation lifecycle.

        Steps:
        1. Normalize and validate the input `messages`.
        2. Ask the subclass to build a provider-specific payload.
        3. Call the provider once (streaming when `on_token` is given).
        4. Extract and normalize the assistant text.

        Subclasses customize behavior via the protected hooks below.
        """
        start = time.time()
        try:
            normalized = self._normalize_messages(messages)
            payload = self._build_provider_payload(normalized)
            if on_token is None:
                text = self._extract_text(self._call_provider(payload))
            else:
                chunks: List[str] = []
                for chunk in self._stream_provider(payload):
                    if chunk:
                        chunks.append(chunk)
                        on_token(chunk)
                text = "".join(chunks)

            if not isinstance(text, str):
                raise PermanentExecutionFailure(
                    f"{type(self).__name__}._extract_text must return str; got {type(text)!r}"
                )
            return text.strip()
        except ExecutionFailure:
            raise
        except Exception as exc:
            raise classify_failure(exc, context=f"{self._name}.invoke") from exc
        finally:
            logger.debug("LLMEngine %s.invoke completed in %.3fs", self._name, time.time() - start)

    def send(self, system_prompt: str, user_prompt: str, on_token: Optional[TokenCallback] = None) -> str:
        messages = []
        if system_prompt and system_prompt.strip():
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": user_prompt})
        return self.invoke(messages, on_token=on_token)

    # --------------------------------------------------------------------- #
    # Shared helpers used by the template
    # --------------------------------------------------------------------- #

    def _normalize_messages(self, messages: List[Dict[str, Any]]) -> List[Dict[str, str]]:
        """
        Validate and normalize a sequence of chat messages.

        - Ensures `messages` is a non-empty list of mappings.
        - Ensures each entry has string `role` and `content` keys.
        - Normalizes `role` to lowercase.
        """
        if not isinstance(messages, list) or not messages:
            raise PermanentExecutionFailure("LLMEngine.invoke: messages must be a non-empty list")

        normalized: List[Dict[str, str]] = []
        for idx, msg in enumerate(messages):
            if not isinstance(msg, Mapping):
                raise PermanentExecutionFailure(
                    f"LLMEngine.invoke: message {idx} is not a mapping (got {type(msg)!r})"
                )
            role = msg.get("role")
            content = msg.get("content")
            if not isinstance(role, str) or not isinstance(content, str):
                raise PermanentExecutionFailure(
                    "LLMEngine.invoke: each message must have 'role' and 'content' as strings"
                )
            normalized.append({"role": role.lower(), "content": content})
        return normalized

    def _stream_provider(self, payload: Any) -> Iterable[str]:
        """Yield text chunks. Engines without streaming emit the whole reply once."""
        yield self._extract_text(self._call_provider(payload))

    # --------------------------------------------------------------------- #
    # Abstract hooks for subclasses
    # --------------------------------------------------------------------- #

    @abstractmethod
    def _build_provider_payload(self, messages: List[Dict[str, str]]) -> Any:
        """Convert normalized messages into the provider-specific request payload."""
        raise NotImplementedError

    @abstractmethod
    def _call_provider(self, payload: Any) -> Any:
        """Perform a single call to the underlying provider; honor the timeout."""
        raise NotImplementedError

    @abstractmethod
    def _extract_text(self, response: Any) -> str:
        """Extract the assistant's textual reply from a provider response object."""
        raise NotImplementedError

    def to_dict(self) -> Dict[str, Any]:
        return {"provider": type(self).__name__, "name": self._name, "timeout_seconds": self._timeout_seconds}


# ── OPENAI (Chat Completions) ─────────────────────────────────────────────────
class OpenAIEngine(LLMEngine):
    """
    OpenAI adapter using the Chat Completions API.

    Works against any OpenAI-compatible server (Ollama, vLLM, LM Studio...)
    through `base_url`. The client is created on first use so that commands
    that never reach the model need no API key.
    """

    def __init__(
        self,
        model: str,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        temperature: float = 0.2,
        *,
        name: Optional[str] = None,
        timeout_seconds: float = 120.0,
    ) -> None:
        """
        Parameters
        ----------
        model:
            Model identifier (e.g. "gpt-4o-mini", "llama3.1").
        api_key:
            Optional API key; if omitted, `OPENAI_API_KEY` from the environment is used.
        base_url:
            Optional OpenAI-compatible endpoint.
        temperature:
            Sampling temperature.
        name, timeout_seconds:
            Template-method engine configuration (see `LLMEngine`).
        """
        super().__init__(name=name or f"openai:{model}", timeout_seconds=timeout_seconds)
        self.model = model
        self.api_key = api_key or os.getenv("OPENAI_API_KEY")
        self.base_url = base_url
        self.temperature = float(temperature)
        self._client: Optional[OpenAI] = None

    @property
    def llm(self) -> OpenAI:
        if self._client is None:
            api_key = self.api_key
            if not api_key:
                if not self.base_url:
                    raise PermanentExecutionFailure(
                        "OPENAI_API_KEY is not set. Export it or configure RECIPEKIT_BASE_URL for a local server."
                    )
                # Local OpenAI-compatible servers ignore the key but the SDK requires one.
                api_key = "unused"
            # Whole-run retry lives in recipekit.retry; the SDK must not retry on its own.
            self._client = OpenAI(
                api_key=api_key,
                base_url=self.base_url,
                timeout=self._timeout_seconds,
                max_retries=0,
            )
        return self._client

    # ------------------------------------------------------------------ #
    # Template hooks
    # ------------------------------------------------------------------ #
    def _build_provider_payload(self, messages: List[Dict[str, str]]) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"model": self.model, "messages": messages}
        # Reasoning models reject a custom temperature.
        if not self.model.lower().startswith(("o1", "o3", "o4", "gpt-5")):
            payload["temperature"] = self.temperature
        return payload

    def _call_provider(self, payload: Dict[str, Any]) -> Any:
        return self.llm.chat.completions.create(**payload)

    def _stream_provider(self, payload: Dict[str, Any]) -> Iterable[str]:
        stream = self.llm.chat.completions.create(stream=True, **payload)
        for chunk in stream:
            choices = getattr(chunk, "choices", None) or []
            if not choices:
                continue
            delta = getattr(choices[0], "delta", None)
            content = getattr(delta, "content", None)
            if content:
                yield content

    def _extract_text(self, response: Any) -> str:
        choices = getattr(response, "choices", None) or []
        if not choices:
            return ""
        message = getattr(choices[0], "message", None)
        return (getattr(message, "content", None) or "").strip()

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d.update({"model": self.model, "base_url": self.base_url, "temperature": self.temperature})
        return d
