"""
Chat completion client for the AI confirmation pass.

Azure OpenAI is used when ``AZURE_OPENAI_API_KEY`` (or ``AZURE_KEY_1``) and
``AZURE_OPENAI_ENDPOINT`` (or ``AZURE_ENDPOINT``) are set; otherwise a plain
OpenAI client is built from ``OPENAI_API_KEY``. With neither, the service
counts as unconfigured and ``get_chat_client`` returns ``None``.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field

from openai import AzureOpenAI, OpenAI, OpenAIError

from ..logger import get_logger

logger = get_logger(__name__)

DEFAULT_AZURE_DEPLOYMENT = "gpt-5-mini"
DEFAULT_AZURE_API_VERSION = "2024-12-01-preview"
DEFAULT_OPENAI_MODEL = "gpt-4o-mini"
REQUEST_TIMEOUT_SECONDS = 120.0


class TransientCallError(RuntimeError):
    """The call to the AI service failed (network, HTTP or SDK error)."""


@dataclass
class TokenUsage:
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0


@dataclass
class ChatResponse:
    content: str
    usage: TokenUsage = field(default_factory=TokenUsage)


@dataclass
class AICredentials:
    """Resolved connection settings for the AI service."""

    provider: str  # "azure" or "openai"
    api_key: str
    model: str
    endpoint: str | None = None
    api_version: str | None = None

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> AICredentials | None:
        """Read credentials from the environment, or ``None`` if absent."""
        env = os.environ if env is None else env

        azure_key = env.get("AZURE_OPENAI_API_KEY") or env.get("AZURE_KEY_1")
        azure_endpoint = env.get("AZURE_OPENAI_ENDPOINT") or env.get("AZURE_ENDPOINT")
        if azure_key and azure_endpoint:
            return cls(
                provider="azure",
                api_key=azure_key,
                endpoint=azure_endpoint,
                model=env.get("AZURE_OPENAI_DEPLOYMENT") or DEFAULT_AZURE_DEPLOYMENT,
                api_version=env.get("AZURE_OPENAI_API_VERSION") or DEFAULT_AZURE_API_VERSION,
            )

        openai_key = env.get("OPENAI_API_KEY")
        if openai_key:
            return cls(
                provider="openai",
                api_key=openai_key,
                model=env.get("OPENAI_MODEL") or DEFAULT_OPENAI_MODEL,
                endpoint=env.get("OPENAI_BASE_URL"),
            )

        return None


class ChatClient:
    """Thin wrapper returning message content and token usage."""

    def __init__(self, sdk_client, model: str):
        self._client = sdk_client
        self.model = model

    def complete(
        self, system_prompt: str, user_prompt: str, max_tokens: int = 2000
    ) -> ChatResponse:
        """
        Run one system + user chat completion.

        Raises:
            TransientCallError: If the SDK raises for any reason
        """
        try:
            # Reasoning deployments reject ``temperature``; leave it at the default
            response = self._client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                max_completion_tokens=max_tokens,
            )
        except OpenAIError as e:
            raise TransientCallError(str(e)) from e

        content = ""
        if response.choices:
            content = response.choices[0].message.content or ""

        usage = response.usage
        return ChatResponse(
            content=content,
            usage=TokenUsage(
                input_tokens=getattr(usage, "prompt_tokens", 0) or 0,
                output_tokens=getattr(usage, "completion_tokens", 0) or 0,
                total_tokens=getattr(usage, "total_tokens", 0) or 0,
            ),
        )


def build_chat_client(credentials: AICredentials) -> ChatClient:
    if credentials.provider == "azure":
        sdk_client = AzureOpenAI(
            api_key=credentials.api_key,
            azure_endpoint=credentials.endpoint,
            api_version=credentials.api_version,
            azure_deployment=credentials.model,
            timeout=REQUEST_TIMEOUT_SECONDS,
        )
    else:
        sdk_client = OpenAI(
            api_key=credentials.api_key,
            base_url=credentials.endpoint,
            timeout=REQUEST_TIMEOUT_SECONDS,
        )
    logger.debug(f"Created {credentials.provider} chat client for model {credentials.model}")
    return ChatClient(sdk_client, credentials.model)


_client: ChatClient | None = None


def get_chat_client() -> ChatClient | None:
    """Return the shared ChatClient, or ``None`` if the service is unconfigured."""
    global _client
    if _client is None:
        credentials = AICredentials.from_env()
        if credentials is None:
            return None
        _client = build_chat_client(credentials)
    return _client


def is_ai_available() -> bool:
    return AICredentials.from_env() is not None
