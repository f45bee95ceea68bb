"""
LLM 客户端抽象基类（LLM Client Abstract Base Class）

语义检查只需要三项能力：generate / health_check / model_name。
自定义厂商实现同一接口即可直接传给 Linter(client=...)。
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class HealthStatus:
    """健康检查结果：ok=False 时 error 给出可读原因"""

    ok: bool
    error: str | None = None


class LLMClient(ABC):
    """
    LLM 客户端抽象基类

    实现约定：
    - generate 失败时抛出异常（推荐 ProviderError），由调用方决定降级策略
    - health_check 不抛异常，统一返回 HealthStatus
    """

    PROVIDER_ID: str = "unknown"

    @property
    @abstractmethod
    def model_name(self) -> str:
        """配置的模型名（用于展示）"""

    @abstractmethod
    async def generate(self, prompt: str, system: str | None = None) -> str:
        """
        生成一次补全。

        Args:
            prompt: 用户消息
            system: 系统消息（可选）

        Returns:
            模型输出的原始文本
        """

    @abstractmethod
    async def health_check(self) -> HealthStatus:
        """检查服务可达且模型可用"""

    async def aclose(self) -> None:
        """释放连接等资源（默认无操作）"""
        return None
