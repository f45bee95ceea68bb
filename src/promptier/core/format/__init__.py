"""
Formatter 选择（Formatter Lookup）

显式指定 > 模型偏好格式。
"""

from __future__ import annotations

from typing import Callable, Sequence

from ..models import ModelRegistry, get_model_config
from ..types import FormatName, RenderedSection
from .base import Formatter, JoinFormatter
from .markdown import MarkdownFormatter
from .plain import PlainFormatter
from .xml import XmlFormatter, sanitize_tag_name

FORMATTERS: dict[str, Callable[[], Formatter]] = {
    "xml": XmlFormatter,
    "markdown": MarkdownFormatter,
    "plain": PlainFormatter,
}


def create_formatter(name: FormatName) -> Formatter:
    try:
        return FORMATTERS[name]()
    except KeyError:
        raise ValueError(f"Unknown format: {name!r}. Supported: {', '.join(FORMATTERS)}") from None


def formatter_for_model(model_id: str, registry: ModelRegistry | None = None) -> Formatter:
    return create_formatter(get_model_config(model_id, registry).preferred_format)


def format_for_model(sections: Sequence[RenderedSection], model_id: str) -> str:
    return formatter_for_model(model_id).format(sections)


__all__ = [
    "FORMATTERS",
    "Formatter",
    "JoinFormatter",
    "MarkdownFormatter",
    "PlainFormatter",
    "XmlFormatter",
    "create_formatter",
    "format_for_model",
    "formatter_for_model",
    "sanitize_tag_name",
]
