"""LLM client using LiteLLM for model abstraction."""

from typing import Any, Dict, List, Optional

from litellm import acompletion

from config import settings


class LLMClient:
    """Wrapper around LiteLLM for consistent LLM access."""

    def __init__(self, model: Optional[str] = None, timeout: Optional[int] = None):
        """Initialize the client with a default model if omitted."""
        self.model = self._normalize_model_name(model or settings.llm.model)
        self.timeout = timeout if timeout is not None else settings.llm.timeout

    def _normalize_model_name(self, model: str) -> str:
        """Normalize model name for LiteLLM compatibility.

        LiteLLM expects Anthropic models without the 'anthropic:' prefix.
        For example: 'claude-haiku-4-5', not 'anthropic:claude-haiku-4-5'.
        """
        if model.startswith("anthropic:"):
            return model[len("anthropic:") :]
        return model

    def _litellm_kwargs(self) -> Dict[str, Any]:
        """Build LiteLLM keyword arguments from settings."""
        extra: Dict[str, Any] = {}
        if settings.llm.base_url:
            extra["api_base"] = settings.llm.base_url
        if settings.anthropic_api_key and self._uses_anthropic():
            extra["api_key"] = settings.anthropic_api_key
        return extra

    def _uses_anthropic(self) -> bool:
        """Return True if the configured model is an Anthropic model."""
        model = (self.model or "").lower()
        return "claude" in model or "anthropic" in model

    async def complete(
        self,
        messages: List[Dict[str, str]],
        temperature: float = 0.0,
        max_tokens: int = 400,
        **kwargs,
    ) -> str:
        """Async completion request.

        Args:
            messages: List of message dicts with 'role' and 'content'
            temperature: Sampling temperature
            max_tokens: Maximum response tokens
            **kwargs: Additional LiteLLM parameters

        Returns:
            Response text
        """
        response = await acompletion(
            model=self.model,
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens,
            timeout=self.timeout,
            **self._litellm_kwargs(),
            **kwargs,
        )
        return response.choices[0].message.content or ""
