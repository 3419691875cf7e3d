"""
responder.py — Mistral remote responder for chat and "analyse latest".

Components:
  SYSTEM_PROMPT     — assistant persona + answer-length constraints
  TextResponder     — the capability resolve() consumes: async respond(prompt) -> str
  MistralResponder  — TextResponder over mistralai's async chat completion,
                      bounded by asyncio.wait_for(settings.remote_timeout_seconds)

Every failure mode (no API key, timeout, SDK/HTTP error, empty content) is
raised as RemoteResponderError; resolver.py turns that into a local answer.

No HTTPException anywhere — this is pure business logic, HTTP layer is routes.py.
"""
import asyncio
import logging
from typing import Optional, Protocol

from mistralai import Mistral

from summary_backend.config import settings
from summary_backend.errors import RemoteResponderError

logger = logging.getLogger(__name__)


SYSTEM_PROMPT = """You are the assistant inside a browser extension that summarises web pages and stores voice notes.

Rules you MUST follow:
1. Answer clearly and concisely — at most 6 short sentences or a short bullet list.
2. When the user provides captured page or voice text, base your answer on that text.
3. For health questions, give general information only and recommend seeing a doctor for anything serious.
4. If you do not know, say so plainly instead of guessing."""


class TextResponder(Protocol):
    @property
    def available(self) -> bool: ...

    async def respond(self, prompt: str) -> str: ...


class MistralResponder:
    """
    Remote text responder backed by the Mistral chat completion API.

    client=None means no credentials were configured; respond() then fails
    fast with RemoteResponderError so callers degrade without a network call.
    """

    def __init__(
        self,
        client: Optional[Mistral],
        model: str = settings.mistral_model,
        timeout_seconds: float = settings.remote_timeout_seconds,
        temperature: float = settings.remote_temperature,
        max_tokens: int = settings.remote_max_tokens,
        system_prompt: str = SYSTEM_PROMPT,
    ) -> None:
        self._client = client
        self.model = model
        self.timeout_seconds = timeout_seconds
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.system_prompt = system_prompt

    @classmethod
    def from_settings(cls) -> "MistralResponder":
        """Build from module settings; no client when MISTRAL_API_KEY is empty."""
        if not settings.remote_configured:
            logger.info("MISTRAL_API_KEY not set — chat will use the local classifier only")
            return cls(client=None)
        return cls(client=Mistral(api_key=settings.mistral_api_key))

    @property
    def available(self) -> bool:
        return self._client is not None

    async def respond(self, prompt: str) -> str:
        if self._client is None:
            raise RemoteResponderError("Remote responder is not configured")

        logger.info(
            "Calling Mistral API model=%s prompt_len=%d timeout=%.1fs",
            self.model, len(prompt), self.timeout_seconds,
        )
        try:
            response = await asyncio.wait_for(
                self._client.chat.complete_async(
                    model=self.model,
                    messages=[
                        {"role": "system", "content": self.system_prompt},
                        {"role": "user", "content": prompt},
                    ],
                    temperature=self.temperature,
                    max_tokens=self.max_tokens,
                ),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError as exc:
            raise RemoteResponderError(
                f"Mistral call timed out after {self.timeout_seconds:.1f}s"
            ) from exc
        except Exception as exc:
            # SDK raises its own HTTP / validation error types; all are "remote failed"
            raise RemoteResponderError(f"Mistral call failed: {type(exc).__name__}") from exc

        try:
            content = response.choices[0].message.content
        except (AttributeError, IndexError, TypeError) as exc:
            raise RemoteResponderError("Mistral response had no choices") from exc

        # content may be a list of chunks in newer SDKs
        if isinstance(content, list):
            content = "".join(getattr(part, "text", "") or "" for part in content)
        answer_text = (content or "").strip()
        if not answer_text:
            raise RemoteResponderError("Mistral returned an empty answer")

        logger.info("Mistral response received answer_len=%d", len(answer_text))
        return answer_text
