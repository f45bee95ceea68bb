from __future__ import annotations

import re
from typing import Sequence

from ..types import RenderedSection, SectionType

SECTION_TAGS: dict[SectionType, str] = {
    SectionType.IDENTITY: "identity",
    SectionType.CAPABILITIES: "capabilities",
    SectionType.CONSTRAINTS: "constraints",
    SectionType.CONTEXT: "context",
    SectionType.DOMAIN: "domain",
    SectionType.TOOLS: "tools",
    SectionType.FORMAT: "format",
    SectionType.EXAMPLES: "examples",
    SectionType.CUSTOM: "section",
}

# 单行且短于该长度的内容内联在标签里
INLINE_MAX_CHARS = 80


class XmlFormatter:
    """XML 标签包裹（Claude 系模型偏好）"""

    def format(self, sections: Sequence[RenderedSection]) -> str:
        return "\n\n".join(self.format_section(s) for s in sections)

    def format_section(self, section: RenderedSection) -> str:
        tag = self._tag_name(section)
        content = section.content.strip()
        if not content:
            return f"<{tag}></{tag}>"
        if "\n" not in content and len(content) < INLINE_MAX_CHARS:
            return f"<{tag}>{content}</{tag}>"
        return f"<{tag}>\n{content}\n</{tag}>"

    def _tag_name(self, section: RenderedSection) -> str:
        if section.type is SectionType.CUSTOM and section.name:
            return sanitize_tag_name(section.name)
        return SECTION_TAGS[section.type]


def sanitize_tag_name(name: str) -> str:
    """转成合法的 XML 标签名：小写，非法字符换成 `-`，必须以字母或下划线开头"""
    sanitized = re.sub(r"[^a-z0-9_.-]", "-", name.lower())
    sanitized = re.sub(r"-+", "-", sanitized).strip("-")
    if not sanitized:
        return "section"
    if not re.match(r"[a-z_]", sanitized):
        sanitized = "_" + sanitized
    return sanitized
