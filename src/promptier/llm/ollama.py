"""
Ollama 客户端（Ollama Client）

本地 Ollama 服务：
- POST {host}/api/generate  非流式生成
- GET  {host}/api/tags      健康检查（模型名精确匹配，或带 tag 后缀匹配）
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..core.errors import ProviderError
from .base import HealthStatus, LLMClient
from .registry import ProviderRegistry

logger = logging.getLogger(__name__)

DEFAULT_HOST = "http://localhost:11434"
DEFAULT_MODEL = "llama3.2:3b"
DEFAULT_TIMEOUT_S = 60.0
HEALTH_CHECK_TIMEOUT_S = 5.0


@ProviderRegistry.register("ollama")
class OllamaClient(LLMClient):
    """
    Ollama 本地客户端

    特点：
    - 无需 API Key
    - 低温度（0.1）保证输出尽量确定
    - transport 可注入（测试中使用 httpx.MockTransport）
    """

    PROVIDER_ID = "ollama"

    def __init__(
        self,
        *,
        host: str = DEFAULT_HOST,
        model: str = DEFAULT_MODEL,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        health_check_timeout_s: float = HEALTH_CHECK_TIMEOUT_S,
        temperature: float = 0.1,
        num_predict: int = 2048,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.host = host.rstrip("/")
        self.model = model
        self.timeout_s = timeout_s
        self.health_check_timeout_s = health_check_timeout_s
        self.temperature = temperature
        self.num_predict = num_predict
        self._transport = transport

    @property
    def model_name(self) -> str:
        return self.model

    def _client(self, timeout: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self.host, timeout=timeout, transport=self._transport)

    def build_payload(self, prompt: str, system: str | None = None) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": self.model,
            "prompt": prompt,
            "stream": False,
            "options": {
                "temperature": self.temperature,
                "num_predict": self.num_predict,
            },
        }
        if system:
            payload["system"] = system
        return payload

    async def generate(self, prompt: str, system: str | None = None) -> str:
        """
        调用 /api/generate。

        Raises:
            ProviderError: 网络错误、超时、非 2xx 响应或响应缺少 response 字段
        """
        try:
            async with self._client(self.timeout_s) as client:
                resp = await client.post("/api/generate", json=self.build_payload(prompt, system))
                resp.raise_for_status()
                data = resp.json()
        except httpx.HTTPStatusError as e:
            body = e.response.text or e.response.reason_phrase
            raise ProviderError(f"Ollama returned {e.response.status_code}: {body}") from e
        except httpx.TimeoutException as e:
            raise ProviderError(f"Ollama request timed out after {self.timeout_s}s") from e
        except httpx.HTTPError as e:
            raise ProviderError(f"Cannot connect to Ollama at {self.host}: {e}") from e
        except ValueError as e:
            raise ProviderError(f"Ollama returned invalid JSON: {e}") from e

        if not isinstance(data, dict) or not isinstance(data.get("response"), str):
            raise ProviderError("Ollama response is missing the 'response' field")
        return data["response"]

    async def health_check(self) -> HealthStatus:
        """检查 Ollama 是否运行、模型是否已拉取"""
        try:
            async with self._client(self.health_check_timeout_s) as client:
                resp = await client.get("/api/tags")
        except httpx.HTTPError:
            return HealthStatus(
                ok=False,
                error=f"Cannot connect to Ollama at {self.host}. Is it running? Start with: ollama serve",
            )

        if resp.status_code != 200:
            return HealthStatus(ok=False, error=f"Ollama returned {resp.status_code} from {self.host}/api/tags")

        try:
            data = resp.json()
        except ValueError as e:
            return HealthStatus(ok=False, error=f"Ollama health check failed: {e}")

        models = data.get("models") if isinstance(data, dict) else None
        available = [m.get("name", "") for m in models or [] if isinstance(m, dict)]
        if any(name == self.model or name.startswith(f"{self.model}:") for name in available):
            return HealthStatus(ok=True)

        listing = ", ".join(available) if available else "(none)"
        return HealthStatus(
            ok=False,
            error=f'Model "{self.model}" not found. Available: {listing}. Run: ollama pull {self.model}',
        )
