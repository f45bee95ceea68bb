"""
内容解析器（Content Resolver）

有序 section 声明 + 渲染上下文 -> 有序 RenderedSection（顺序与输入一致）。

- 字面/片段文本：`{{path.to.value}}` 按点路径在上下文中查找，找不到的占位符原样保留
- 动态 section：生成器按声明顺序逐个 await，绝不并发，保证溯源顺序确定
- 生成器抛错会中止整个渲染（RenderError），这是核心流程里唯一的致命错误
"""

from __future__ import annotations

import inspect
import json
import re
from collections.abc import Mapping
from datetime import date, datetime
from typing import Any, Sequence

from .errors import RenderError
from .section import Section
from .types import FragmentDefinition, Origin, RenderContext, RenderedSection, SectionConfig


_PLACEHOLDER_RE = re.compile(r"\{\{(\$?\w+(?:\.\w+)*)\}\}")
_MISSING = object()


def lookup_path(context: Mapping[str, Any], path: str) -> Any:
    """
    点路径查找：支持 dict 键与对象属性。

    返回:
        找到的值；路径不存在时返回内部哨兵 `_MISSING`
    """
    current: Any = context
    for part in path.split("."):
        if current is None:
            return _MISSING
        if isinstance(current, Mapping):
            if part not in current:
                return _MISSING
            current = current[part]
        elif isinstance(current, (list, tuple)) and part.isdigit():
            index = int(part)
            if index >= len(current):
                return _MISSING
            current = current[index]
        else:
            current = getattr(current, part, _MISSING)
            if current is _MISSING:
                return _MISSING
    return current


def _stringify(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (str, int, float)):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    try:
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"), default=str)
    except (TypeError, ValueError):
        return str(value)


def interpolate(text: str, context: Mapping[str, Any]) -> str:
    """替换模板占位符；未解析的路径原样保留（不是错误）"""

    def _repl(m: re.Match[str]) -> str:
        value = lookup_path(context, m.group(1))
        if value is _MISSING:
            return m.group(0)
        return _stringify(value)

    return _PLACEHOLDER_RE.sub(_repl, text)


def provisional_origin(section: SectionConfig, index: int) -> Origin:
    """解析阶段的临时溯源描述（最终位置由装配器填充）"""
    if Section.is_dynamic(section):
        return Origin(kind="dynamic", section_type=section.type, section_index=index, dynamic_key=section.name)
    if isinstance(section.content, FragmentDefinition):
        fragment = section.content
        return Origin(
            kind="fragment",
            section_type=section.type,
            section_index=index,
            fragment_id=fragment.id,
            fragment_version=fragment.version,
            file=fragment.source_file,
            file_line=fragment.source_line,
        )
    return Origin(kind="literal", section_type=section.type, section_index=index)


async def resolve_content(section: SectionConfig, index: int, context: RenderContext) -> str:
    if Section.is_dynamic(section):
        try:
            result = section.content(context)  # type: ignore[operator]
            if inspect.isawaitable(result):
                result = await result
        except Exception as e:
            raise RenderError(
                f"Dynamic section '{Section.display_name(section)}' (index {index}) failed: {e}",
                section_type=section.type,
                section_index=index,
            ) from e
        return "" if result is None else str(result)
    if isinstance(section.content, FragmentDefinition):
        return interpolate(section.content.content, context)
    return interpolate(section.content, context)  # type: ignore[arg-type]


async def resolve_sections(sections: Sequence[SectionConfig], context: RenderContext) -> list[RenderedSection]:
    """逐个解析 section（严格按声明顺序，不并发）"""
    resolved: list[RenderedSection] = []
    for index, section in enumerate(sections):
        content = await resolve_content(section, index, context)
        resolved.append(
            RenderedSection(
                type=section.type,
                name=section.name,
                content=content,
                priority=section.priority,
                cacheable=section.cacheable,
                origin=provisional_origin(section, index),
                index=index,
            )
        )
    return resolved
