"""
Section 工厂（Section Factories）

Section 是 prompt 中带语义的槽位：类型决定默认优先级、默认可缓存性与展示标签。
这里用按类型查表的方式分派，custom 类型额外携带用户提供的名称。
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Sequence, Union

from .fragment import Fragment
from .types import DynamicContent, FragmentDefinition, SectionConfig, SectionType

DEFAULT_PRIORITIES: dict[SectionType, int] = {
    SectionType.IDENTITY: 0,
    SectionType.CAPABILITIES: 10,
    SectionType.CONSTRAINTS: 20,
    SectionType.DOMAIN: 30,
    SectionType.TOOLS: 40,
    SectionType.CONTEXT: 50,
    SectionType.EXAMPLES: 60,
    SectionType.FORMAT: 70,
    SectionType.CUSTOM: 50,
}

# 动态上下文默认不可缓存，其余默认可缓存
DEFAULT_CACHEABLE: dict[SectionType, bool] = {t: t is not SectionType.CONTEXT for t in SectionType}

StaticContent = Union[Fragment, FragmentDefinition, str]


@dataclass(frozen=True)
class ToolDefinition:
    """工具定义。parameters 可以是普通 dict，也可以是带 schema 方法的对象（如 pydantic 模型）。"""

    name: str
    description: str
    parameters: Any = None


class Section:
    """
    Section 构造入口（全部为静态方法，返回不可变的 SectionConfig）。

    可选参数：priority / cacheable / truncatable / max_tokens，未提供时按类型取默认值。
    """

    @staticmethod
    def identity(content: StaticContent, **options: Any) -> SectionConfig:
        """身份：agent 是谁"""
        return Section._create(SectionType.IDENTITY, content, **options)

    @staticmethod
    def capabilities(content: StaticContent | Sequence[str], **options: Any) -> SectionConfig:
        """能力：agent 能做什么（列表会渲染成 `- item` 行）"""
        return Section._create(SectionType.CAPABILITIES, _bulleted(content), **options)

    @staticmethod
    def constraints(content: StaticContent | Sequence[str], **options: Any) -> SectionConfig:
        """约束：agent 不能做什么"""
        return Section._create(SectionType.CONSTRAINTS, _bulleted(content), **options)

    @staticmethod
    def domain(content: StaticContent, **options: Any) -> SectionConfig:
        return Section._create(SectionType.DOMAIN, content, **options)

    @staticmethod
    def tools(tools: Iterable[ToolDefinition | Mapping[str, Any]], **options: Any) -> SectionConfig:
        """工具定义：渲染为 `### name` + 描述 + 参数列表"""
        return Section._create(SectionType.TOOLS, format_tools(tools), **options)

    @staticmethod
    def context(generator: DynamicContent, **options: Any) -> SectionConfig:
        """动态上下文：生成器在每次渲染时被调用（可为 async）"""
        return Section._build(SectionType.CONTEXT, generator, cacheable_default=False, **options)

    @staticmethod
    def examples(content: StaticContent, **options: Any) -> SectionConfig:
        return Section._create(SectionType.EXAMPLES, content, **options)

    @staticmethod
    def format(content: StaticContent, **options: Any) -> SectionConfig:
        """输出格式说明（建议放在最后）"""
        return Section._create(SectionType.FORMAT, content, **options)

    @staticmethod
    def custom(name: str, content: StaticContent | DynamicContent, **options: Any) -> SectionConfig:
        """
        自定义 section，必须提供名称。

        动态内容默认不可缓存；静态内容默认可缓存。
        """
        if not name or not name.strip():
            raise ValueError("custom section requires a non-empty name")
        if callable(content) and not isinstance(content, (Fragment, FragmentDefinition, str)):
            return Section._build(SectionType.CUSTOM, content, name=name, cacheable_default=False, **options)
        return Section._create(SectionType.CUSTOM, content, name=name, **options)

    # ========== 辅助方法 ==========

    @staticmethod
    def is_dynamic(section: SectionConfig) -> bool:
        return callable(section.content) and not isinstance(section.content, (str, FragmentDefinition))

    @staticmethod
    def get_fragment(section: SectionConfig) -> FragmentDefinition | None:
        """
        获取 section 的片段定义。

        字面字符串视为匿名片段 `anonymous-<type>@1.0.0`；动态 section 返回 None。
        """
        if Section.is_dynamic(section):
            return None
        if isinstance(section.content, str):
            return FragmentDefinition(id=f"anonymous-{section.type.value}", version="1.0.0", content=section.content)
        return section.content  # type: ignore[return-value]

    @staticmethod
    def display_name(section: SectionConfig) -> str:
        return section.name or section.type.value

    @staticmethod
    def _create(section_type: SectionType, content: StaticContent, **options: Any) -> SectionConfig:
        return Section._build(section_type, _normalize(content), **options)

    @staticmethod
    def _build(
        section_type: SectionType,
        content: Any,
        *,
        name: str | None = None,
        cacheable_default: bool | None = None,
        priority: int | None = None,
        cacheable: bool | None = None,
        truncatable: bool = False,
        max_tokens: int | None = None,
    ) -> SectionConfig:
        if cacheable is None:
            cacheable = DEFAULT_CACHEABLE[section_type] if cacheable_default is None else cacheable_default
        return SectionConfig(
            type=section_type,
            content=content,
            name=name,
            priority=DEFAULT_PRIORITIES[section_type] if priority is None else priority,
            cacheable=cacheable,
            truncatable=truncatable,
            max_tokens=max_tokens,
        )


def _normalize(content: StaticContent) -> FragmentDefinition | str:
    if isinstance(content, Fragment):
        return content.to_definition()
    return content


def _bulleted(content: StaticContent | Sequence[str]) -> StaticContent:
    if isinstance(content, (list, tuple)):
        return "\n".join(f"- {item}" for item in content)
    return content  # type: ignore[return-value]


# ============================================================
# 工具定义格式化
# ============================================================

def format_tools(tools: Iterable[ToolDefinition | Mapping[str, Any]]) -> str:
    blocks = []
    for tool in tools:
        if isinstance(tool, Mapping):
            tool = ToolDefinition(
                name=str(tool.get("name", "")),
                description=str(tool.get("description", "")),
                parameters=tool.get("parameters"),
            )
        text = f"### {tool.name}\n{tool.description}"
        if tool.parameters:
            params = _format_parameters(tool.parameters)
            if params:
                text += f"\n\nParameters:\n{params}"
        blocks.append(text)
    return "\n\n".join(blocks)


def _format_parameters(params: Any) -> str:
    # 带 schema 方法的对象（pydantic 模型类等）不做内省
    if not isinstance(params, Mapping):
        if hasattr(params, "model_json_schema") or hasattr(params, "parse"):
            return "(schema object - see tool documentation)"
        return ""
    lines = []
    for key, value in params.items():
        if isinstance(value, bool):
            value_str = "true" if value else "false"
        elif isinstance(value, (str, int, float)):
            value_str = str(value)
        else:
            value_str = json.dumps(value, ensure_ascii=False, separators=(",", ":"))
        lines.append(f"- {key}: {value_str}")
    return "\n".join(lines)
