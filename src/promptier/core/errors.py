from __future__ import annotations

from typing import Any


class PromptierError(Exception):
    """promptier 通用异常基类。"""


class RenderError(PromptierError):
    """
    渲染失败（Render Failure）。

    仅由动态 section 生成器（generator）抛错触发；原始异常保存在 `__cause__`。
    这是渲染链路中唯一允许“致命”的错误，调用方必须显式处理。
    """

    def __init__(self, message: str, *, section_type: Any = None, section_index: int | None = None) -> None:
        super().__init__(message)
        self.section_type = section_type
        self.section_index = section_index


class FragmentLoadError(PromptierError):
    """片段文件加载失败（扩展名不支持、文件不可读等）。"""


class ProviderError(PromptierError):
    """LLM 厂商调用失败（网络 / 协议 / 响应格式）。由 semantic 规则捕获并降级。"""


class ConfigError(PromptierError):
    """配置错误（如未知的 LLM provider）。"""
