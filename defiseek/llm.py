"""
DeFiSeek - Language Model Catalogue

Selectable chat models and the factory that turns a provider identifier
into a LangChain chat model. Provider keys are checked here so a missing
key fails fast with the variable name.
"""

from __future__ import annotations

from typing import Any, Callable

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import BaseMessage

from defiseek.config import Settings, settings as default_settings
from defiseek.errors import MissingCredentialError
from defiseek.models import ModelSpec


DEEPSEEK_BASE_URL = "https://api.deepseek.com"

MODELS: list[ModelSpec] = [
    ModelSpec(
        id="gemini-1.5-flash-latest",
        label="Gemini 1.5 Flash",
        api_identifier="gemini-1.5-flash-latest",
        description="Google's fast multimodal model",
    ),
    ModelSpec(
        id="gpt-4o-mini",
        label="GPT 4o mini",
        api_identifier="gpt-4o-mini",
        description="Small model for fast, lightweight tasks",
    ),
    ModelSpec(
        id="deepseek-chat",
        label="DeepSeek Chat",
        api_identifier="deepseek-chat",
        description="DeepSeek general-purpose chat model",
    ),
    ModelSpec(
        id="llama-3.1-8b-instant",
        label="Llama 3.1 8B (Groq)",
        api_identifier="llama-3.1-8b-instant",
        description="Low-latency open model served by Groq",
    ),
]

# Builds a chat model for the default model at a given temperature.
LLMFactory = Callable[[float], BaseChatModel]


def find_model(model_id: str) -> ModelSpec | None:
    """Look up a catalogue entry by id."""
    return next((m for m in MODELS if m.id == model_id), None)


def _require(key: str, env_var: str) -> str:
    if not key:
        raise MissingCredentialError(env_var)
    return key


def custom_model(
    api_identifier: str,
    settings: Settings | None = None,
    temperature: float = 0.3,
    **kwargs: Any,
) -> BaseChatModel:
    """
    Build a chat model for a provider identifier.

    Args:
        api_identifier: Provider model name, e.g. ``gpt-4o-mini``
        settings: Settings holding provider keys (defaults to global settings)
        temperature: Sampling temperature
        **kwargs: Extra keyword arguments for the LangChain model class

    Raises:
        MissingCredentialError: The provider's API key is not configured
        ValueError: The identifier matches no supported provider
    """
    llm = (settings or default_settings).llm

    if api_identifier.startswith("gemini"):
        from langchain_google_genai import ChatGoogleGenerativeAI

        return ChatGoogleGenerativeAI(
            model=api_identifier,
            google_api_key=_require(llm.google_api_key, "GOOGLE_GENERATIVE_AI_API_KEY"),
            temperature=temperature,
            **kwargs,
        )

    if api_identifier.startswith("gpt-"):
        from langchain_openai import ChatOpenAI

        return ChatOpenAI(
            model=api_identifier,
            api_key=_require(llm.openai_api_key, "OPENAI_API_KEY"),
            temperature=temperature,
            **kwargs,
        )

    if api_identifier.startswith("deepseek"):
        from langchain_openai import ChatOpenAI

        return ChatOpenAI(
            model=api_identifier,
            api_key=_require(llm.deepseek_api_key, "DEEPSEEK_API_KEY"),
            base_url=DEEPSEEK_BASE_URL,
            temperature=temperature,
            **kwargs,
        )

    if api_identifier.startswith(("llama", "mixtral")):
        from langchain_groq import ChatGroq

        return ChatGroq(
            model=api_identifier,
            api_key=_require(llm.groq_api_key, "GROQ_API_KEY"),
            temperature=temperature,
            **kwargs,
        )

    raise ValueError(f"Unsupported model identifier: {api_identifier}")


def message_text(message: BaseMessage | str) -> str:
    """Plain text of a LangChain message whose content may be a list of parts."""
    if isinstance(message, str):
        return message
    content = message.content
    if isinstance(content, str):
        return content
    parts = []
    for part in content:
        if isinstance(part, str):
            parts.append(part)
        elif isinstance(part, dict) and part.get("type") == "text":
            parts.append(part.get("text", ""))
    return "".join(parts)

