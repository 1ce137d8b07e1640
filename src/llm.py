"""LLM client using LiteLLM for model abstraction."""

from litellm import acompletion
from typing import List, Dict, Any, Optional
from config import settings


class LLMClient:
    """Wrapper around LiteLLM for consistent LLM access."""

    def __init__(self, model: Optional[str] = None, timeout: Optional[float] = None):
        """Initialize the client with a default model if omitted."""
        self.model = self._normalize_model_name(model or settings.llm.model)
        self.timeout = timeout if timeout is not None else settings.llm.timeout

    def _normalize_model_name(self, model: str) -> str:
        """Normalize model name for LiteLLM compatibility.

        LiteLLM expects OpenAI models without the 'openai:' prefix.
        For example: 'gpt-4o', not 'openai:gpt-4o'.
        """
        if model.startswith("openai:"):
            return model[len("openai:") :]
        return model

    def _litellm_kwargs(self, api_key: Optional[str]) -> Dict[str, Any]:
        """Build LiteLLM keyword arguments from settings and the caller's key."""
        extra: Dict[str, Any] = {}
        if settings.llm.base_url:
            extra["api_base"] = settings.llm.base_url
        key = api_key or settings.openai_api_key
        if key:
            extra["api_key"] = key
        return extra

    async def complete(
        self,
        messages: List[Dict[str, str]],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        api_key: Optional[str] = None,
        **kwargs,
    ) -> str:
        """Async completion request.

        Args:
            messages: List of message dicts with 'role' and 'content'
            temperature: Sampling temperature (default: settings.llm.temperature)
            max_tokens: Maximum response tokens (default: settings.llm.max_tokens)
            api_key: Per-request provider key, overriding settings
            **kwargs: Additional LiteLLM parameters

        Returns:
            Response text
        """
        response = await acompletion(
            model=self.model,
            messages=messages,
            temperature=settings.llm.temperature if temperature is None else temperature,
            max_tokens=settings.llm.max_tokens if max_tokens is None else max_tokens,
            timeout=self.timeout,
            **self._litellm_kwargs(api_key),
            **kwargs,
        )
        return response.choices[0].message.content or ""
