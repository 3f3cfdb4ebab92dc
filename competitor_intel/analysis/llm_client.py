"""Unified LLM client: routes to Anthropic (primary) or OpenAI (fallback)."""

from __future__ import annotations

import asyncio
import logging

from competitor_intel.config import Config

logger = logging.getLogger(__name__)

# Maximum time (seconds) to wait for a single LLM call before giving up
_LLM_TIMEOUT = 120


class _AnthropicBillingError(Exception):
    """Raised when Anthropic returns a billing/credit error."""


class LLMClient:
    """Reasoning engine shared by every stage of a run.

    SDK clients are created lazily on first use and reused until
    ``aclose()``. Tries Anthropic first. If Anthropic returns a billing/auth
    error (400/401/402), falls back to OpenAI for this call AND all future
    calls made through this client.
    """

    def __init__(self, config: Config, timeout: float = _LLM_TIMEOUT):
        self.config = config
        self.timeout = timeout
        self._anthropic = None
        self._openai = None
        self._active_provider: str | None = None
        self._anthropic_failed = False

    @property
    def active_provider(self) -> str:
        return self._active_provider or ("anthropic" if self.config.anthropic_api_key else "openai")

    async def complete(self, prompt: str, system: str | None = None) -> str:
        """Send a prompt (plus optional system instruction) and return the response text."""
        cfg = self.config

        if not self._anthropic_failed and cfg.anthropic_api_key:
            try:
                return await asyncio.wait_for(
                    self._call_anthropic(prompt, system),
                    timeout=self.timeout,
                )
            except asyncio.TimeoutError:
                logger.warning("Anthropic call timed out after %ds", self.timeout)
                if cfg.openai_api_key:
                    logger.info("Falling back to OpenAI for this call")
                else:
                    raise RuntimeError(f"Anthropic LLM call timed out after {self.timeout}s")
            except _AnthropicBillingError:
                logger.warning("Anthropic billing error: switching to OpenAI for all future calls")
                self._anthropic_failed = True
            except Exception as e:
                logger.error("Anthropic error: %s", e)
                # For non-billing errors, still try OpenAI as fallback
                if cfg.openai_api_key:
                    logger.info("Falling back to OpenAI for this call")
                else:
                    raise

        if cfg.openai_api_key:
            if self._active_provider != "openai":
                self._active_provider = "openai"
                logger.info("Using OpenAI (%s) for analysis", cfg.openai_model)
            return await asyncio.wait_for(
                self._call_openai(prompt, system),
                timeout=self.timeout,
            )

        raise RuntimeError(
            "No LLM provider available. Both Anthropic (credit balance too low) "
            "and OpenAI (no OPENAI_API_KEY set) are unavailable.\n"
            "Add OPENAI_API_KEY to your .env file as a fallback."
        )

    async def _call_anthropic(self, prompt: str, system: str | None) -> str:
        import anthropic

        if self._anthropic is None:
            self._anthropic = anthropic.AsyncAnthropic(api_key=self.config.anthropic_api_key)

        kwargs = {}
        if system:
            kwargs["system"] = system
        try:
            response = await self._anthropic.messages.create(
                model=self.config.anthropic_model,
                max_tokens=self.config.llm_max_tokens,
                temperature=self.config.llm_temperature,
                messages=[{"role": "user", "content": prompt}],
                **kwargs,
            )
            if self._active_provider != "anthropic":
                self._active_provider = "anthropic"
            block = response.content[0] if response.content else None
            return getattr(block, "text", "") or ""
        except anthropic.APIStatusError as e:
            if e.status_code in (400, 401, 402):
                msg = str(e).lower()
                if "credit" in msg or "balance" in msg or "billing" in msg:
                    raise _AnthropicBillingError(str(e)) from e
            raise

    async def _call_openai(self, prompt: str, system: str | None) -> str:
        from openai import AsyncOpenAI

        if self._openai is None:
            self._openai = AsyncOpenAI(api_key=self.config.openai_api_key)

        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        response = await self._openai.chat.completions.create(
            model=self.config.openai_model,
            max_tokens=self.config.llm_max_tokens,
            temperature=self.config.llm_temperature,
            messages=messages,
        )
        return response.choices[0].message.content or ""

    async def aclose(self) -> None:
        if self._anthropic is not None:
            await self._anthropic.close()
            self._anthropic = None
        if self._openai is not None:
            await self._openai.close()
            self._openai = None
