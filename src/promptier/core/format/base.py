from __future__ import annotations

from typing import Protocol, Sequence

from ..types import RenderedSection


class Formatter(Protocol):
    """
    Formatter 能力接口：把有序 section 排版为最终文本。

    内置三种策略（xml / markdown / plain），按名称查表选择，而非继承。
    """

    def format(self, sections: Sequence[RenderedSection]) -> str: ...

    def format_section(self, section: RenderedSection) -> str: ...


class JoinFormatter:
    """不加任何装饰：各 section 原文以空行拼接（format_for_model=False 时使用）"""

    def format(self, sections: Sequence[RenderedSection]) -> str:
        return "\n\n".join(self.format_section(s) for s in sections)

    def format_section(self, section: RenderedSection) -> str:
        return section.content
