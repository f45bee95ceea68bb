from __future__ import annotations

import re
from typing import Sequence

from ..types import RenderedSection, SectionType

SECTION_LABELS: dict[SectionType, str] = {
    SectionType.IDENTITY: "IDENTITY",
    SectionType.CAPABILITIES: "CAPABILITIES",
    SectionType.CONSTRAINTS: "CONSTRAINTS",
    SectionType.CONTEXT: "CONTEXT",
    SectionType.DOMAIN: "DOMAIN",
    SectionType.TOOLS: "TOOLS",
    SectionType.FORMAT: "OUTPUT FORMAT",
    SectionType.EXAMPLES: "EXAMPLES",
    SectionType.CUSTOM: "SECTION",
}


class PlainFormatter:
    """纯文本标签（未知模型的默认格式）"""

    def __init__(self, separator: str = "---", include_labels: bool = True) -> None:
        self.separator = separator
        self.include_labels = include_labels

    def format(self, sections: Sequence[RenderedSection]) -> str:
        return f"\n\n{self.separator}\n\n".join(self.format_section(s) for s in sections)

    def format_section(self, section: RenderedSection) -> str:
        content = section.content.strip()
        if not self.include_labels:
            return content
        label = self._label(section)
        if not content:
            return f"[{label}]"
        return f"[{label}]\n{content}"

    def _label(self, section: RenderedSection) -> str:
        if section.type is SectionType.CUSTOM and section.name:
            return re.sub(r"[-_]", " ", section.name.upper())
        return SECTION_LABELS[section.type]
