"""
厂商注册表（Provider Registry）

provider 名 -> LLMClient 子类。内置 ollama；其他厂商请直接传入自定义 client。
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Type

from ..core.errors import ConfigError

if TYPE_CHECKING:
    from ..config.config import LLMSettings
    from .base import LLMClient

logger = logging.getLogger(__name__)

# 有计划但尚未内置的厂商
_PLANNED_PROVIDERS = ("openai", "ai-sdk")


class ProviderRegistry:
    """
    厂商注册表

    使用示例：
        @ProviderRegistry.register("ollama")
        class OllamaClient(LLMClient):
            ...

        client_cls = ProviderRegistry.get_client_class("ollama")
    """

    _providers: dict[str, Type["LLMClient"]] = {}

    @classmethod
    def register(cls, provider_id: str):
        """装饰器：注册客户端类"""

        def decorator(client_class: Type["LLMClient"]):
            if provider_id in cls._providers:
                logger.warning(f"厂商 '{provider_id}' 已注册，将被覆盖")
            cls._providers[provider_id] = client_class
            logger.debug(f"已注册厂商: {provider_id} -> {client_class.__name__}")
            return client_class

        return decorator

    @classmethod
    def has_provider(cls, provider_id: str) -> bool:
        return provider_id in cls._providers

    @classmethod
    def list_providers(cls) -> list[str]:
        return list(cls._providers)

    @classmethod
    def get_client_class(cls, provider_id: str) -> Type["LLMClient"] | None:
        return cls._providers.get(provider_id)


def create_llm_client(settings: "LLMSettings") -> "LLMClient":
    """
    按配置创建 LLM 客户端。

    Raises:
        ConfigError: 厂商未内置或未知
    """
    # 注册副作用：确保内置厂商已加载
    from . import ollama  # noqa: F401

    provider = settings.provider or "ollama"
    client_class = ProviderRegistry.get_client_class(provider)
    if client_class is None:
        if provider in _PLANNED_PROVIDERS:
            raise ConfigError(
                f'Provider "{provider}" is not yet built-in. Pass a custom client to Linter(client=...) instead.'
            )
        supported = ", ".join(ProviderRegistry.list_providers())
        raise ConfigError(
            f'Unknown LLM provider: "{provider}". Supported: {supported}. Or pass a custom client to Linter(client=...).'
        )

    logger.debug(f"创建 LLM 客户端: {provider} ({settings.model})")
    return client_class(
        host=settings.host,
        model=settings.model,
        timeout_s=settings.timeout_s,
        health_check_timeout_s=settings.health_check_timeout_s,
        temperature=settings.temperature,
        num_predict=settings.num_predict,
    )
