"""LLM provider abstraction using LangChain."""

from typing import Literal

from langchain_anthropic import ChatAnthropic
from langchain_openai import ChatOpenAI
from langchain_core.language_models.chat_models import BaseChatModel

import config


def get_chat_model(
    provider: Literal["anthropic", "openai"] | None = None,
    model: str | None = None,
    **kwargs,
) -> BaseChatModel:
    """Get a text chat model instance based on provider.

    Args:
        provider: LLM provider ("anthropic" or "openai"). Uses config default if None.
        model: Model name. Uses provider default if None.
        **kwargs: Additional arguments passed to the model constructor.

    Returns:
        LangChain chat model instance.
    """
    provider = provider or config.LLM_PROVIDER

    if provider == "anthropic":
        return ChatAnthropic(
            model=model or config.ANTHROPIC_MODEL,
            api_key=config.ANTHROPIC_API_KEY,
            **kwargs,
        )
    elif provider == "openai":
        return ChatOpenAI(
            model=model or config.OPENAI_MODEL,
            api_key=config.OPENAI_API_KEY,
            **kwargs,
        )
    else:
        raise ValueError(f"Unknown provider: {provider}. Use 'anthropic' or 'openai'.")


def get_vision_model(
    provider: Literal["anthropic", "openai"] | None = None,
    **kwargs,
) -> BaseChatModel:
    """Get a vision-capable chat model.

    Both provider defaults accept image content blocks, so this is the text
    factory under a name that states the requirement.

    Args:
        provider: LLM provider. Uses config default if None.
        **kwargs: Additional arguments passed to the model constructor,
            e.g. ``max_tokens``.

    Returns:
        LangChain chat model with vision capabilities.
    """
    return get_chat_model(provider=provider, **kwargs)
