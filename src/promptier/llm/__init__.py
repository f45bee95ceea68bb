from .base import HealthStatus, LLMClient
from .ollama import OllamaClient
from .registry import ProviderRegistry, create_llm_client

__all__ = ["HealthStatus", "LLMClient", "OllamaClient", "ProviderRegistry", "create_llm_client"]
