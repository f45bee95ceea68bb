from __future__ import annotations

import re
from typing import Sequence

from ..types import RenderedSection, SectionType

SECTION_HEADERS: dict[SectionType, str] = {
    SectionType.IDENTITY: "Identity",
    SectionType.CAPABILITIES: "Capabilities",
    SectionType.CONSTRAINTS: "Constraints",
    SectionType.CONTEXT: "Context",
    SectionType.DOMAIN: "Domain Knowledge",
    SectionType.TOOLS: "Available Tools",
    SectionType.FORMAT: "Output Format",
    SectionType.EXAMPLES: "Examples",
    SectionType.CUSTOM: "Section",
}


class MarkdownFormatter:
    """Markdown 标题包裹（GPT / Gemini 偏好）"""

    def __init__(self, header_level: int = 2) -> None:
        self.header_level = header_level

    def format(self, sections: Sequence[RenderedSection]) -> str:
        return "\n\n".join(self.format_section(s) for s in sections)

    def format_section(self, section: RenderedSection) -> str:
        header = f"{'#' * self.header_level} {self._header(section)}"
        content = section.content.strip()
        if not content:
            return header
        return f"{header}\n\n{content}"

    def _header(self, section: RenderedSection) -> str:
        if section.type is SectionType.CUSTOM and section.name:
            return _title_case(section.name)
        return SECTION_HEADERS[section.type]


def _title_case(value: str) -> str:
    return re.sub(r"\b\w", lambda m: m.group(0).upper(), re.sub(r"[-_]", " ", value))
