"""
Prompt 组合与渲染（Prompt Composition & Rendering）

渲染流水线：
1. 解析（resolver）：section 声明 + 上下文 -> RenderedSection
2. 排序（ordering）：可选的缓存友好重排
3. 装配（assembler）：formatter 排版出最终文本，并用只前进的搜索游标构建溯源表
4. 元数据：token 统计、可缓存前缀、片段引用、渲染期警告
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Mapping, Sequence

from .format import Formatter, JoinFormatter, create_formatter, formatter_for_model
from .models import ModelRegistry, get_model_config
from .ordering import optimize_for_caching
from .resolver import resolve_sections
from .section import Section, StaticContent, ToolDefinition
from .source_map import ProvenanceTable
from .tokens import TokenCounter, default_token_counter
from .types import (
    CONTEXT_MODEL_KEY,
    CONTEXT_NOW_KEY,
    CONTEXT_TOKEN_BUDGET_KEY,
    CompiledPrompt,
    DynamicContent,
    Finding,
    FormatName,
    FragmentReference,
    PromptMetadata,
    PromptOptions,
    RenderContext,
    RenderedSection,
    SectionConfig,
    SectionType,
)

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-sonnet-4-20250514"

# 每个 section 的分隔符近似开销（字符数）
_SECTION_OVERHEAD_CHARS = 4
_TOKEN_WARNING_RATIO = 0.8


class Prompt:
    """
    Prompt：面向某个模型、由有序 section 组成的部署单元（构建后不可变）。
    """

    def __init__(
        self,
        name: str,
        model: str = DEFAULT_MODEL,
        sections: Sequence[SectionConfig] = (),
        options: PromptOptions | None = None,
    ) -> None:
        self._name = name
        self._model = model
        self._sections = tuple(sections)
        self._options = options or PromptOptions()

    @property
    def name(self) -> str:
        return self._name

    @property
    def model(self) -> str:
        return self._model

    @property
    def sections(self) -> tuple[SectionConfig, ...]:
        return self._sections

    @property
    def options(self) -> PromptOptions:
        return self._options

    def __repr__(self) -> str:
        return f"Prompt(name={self._name!r}, model={self._model!r}, sections={len(self._sections)})"

    @classmethod
    def compose(
        cls,
        name: str,
        model: str = DEFAULT_MODEL,
        sections: Sequence[SectionConfig] = (),
        options: PromptOptions | None = None,
    ) -> "Prompt":
        return cls(name, model, sections, options)

    # ========== 渲染 ==========

    async def render(
        self,
        context: Mapping[str, Any] | None = None,
        *,
        registry: ModelRegistry | None = None,
        token_counter: TokenCounter | None = None,
    ) -> CompiledPrompt:
        """
        渲染为最终文本 + 元数据。

        Raises:
            RenderError: 动态 section 生成器失败（唯一的致命错误）
        """
        model_config = get_model_config(self._model, registry)
        if token_counter is not None:
            counter = token_counter
        else:
            counter = TokenCounter(registry) if registry is not None else default_token_counter

        enriched: RenderContext = dict(context or {})
        enriched[CONTEXT_MODEL_KEY] = self._model
        enriched[CONTEXT_NOW_KEY] = datetime.now(timezone.utc)
        enriched[CONTEXT_TOKEN_BUDGET_KEY] = self._options.max_tokens or model_config.context_window

        resolved = await resolve_sections(self._sections, enriched)
        ordered = optimize_for_caching(resolved) if self._options.cache_optimize else resolved

        text = self._formatter(registry).format(ordered)
        provenance = build_provenance(self._name, text, ordered)
        meta = self._build_metadata(text, ordered, provenance, counter, model_config.context_window)
        return CompiledPrompt(text=text, meta=meta)

    def render_sync(self, context: Mapping[str, Any] | None = None, **kwargs: Any) -> CompiledPrompt:
        """同步渲染（内部 asyncio.run，不能在运行中的事件循环里调用）"""
        return asyncio.run(self.render(context, **kwargs))

    def _formatter(self, registry: ModelRegistry | None) -> Formatter:
        if not self._options.format_for_model:
            return JoinFormatter()
        if self._options.format:
            return create_formatter(self._options.format)
        return formatter_for_model(self._model, registry)

    def _build_metadata(
        self,
        text: str,
        sections: Sequence[RenderedSection],
        provenance: ProvenanceTable,
        counter: TokenCounter,
        window: int,
    ) -> PromptMetadata:
        token_count = counter.count(text, self._model)

        tokens_by_section: dict[str, int] = {}
        section_tokens: list[int] = []
        for section in sections:
            tokens = counter.count(section.content, self._model)
            section_tokens.append(tokens)
            tokens_by_section[section.key] = tokens_by_section.get(section.key, 0) + tokens

        prefix_chars = 0
        prefix_tokens = 0
        for section, tokens in zip(sections, section_tokens):
            if not section.cacheable:
                break
            prefix_chars += len(section.content) + _SECTION_OVERHEAD_CHARS
            prefix_tokens += tokens

        warnings = self.quick_lint()
        warnings.extend(token_budget_findings(token_count, window))

        return PromptMetadata(
            name=self._name,
            model=self._model,
            token_count=token_count,
            tokens_by_section=tokens_by_section,
            provenance=provenance,
            warnings=warnings,
            cacheable_prefix_chars=prefix_chars,
            cacheable_prefix_tokens=prefix_tokens,
            fragment_references=self.fragment_references(),
        )

    # ========== 组合 ==========

    def extend(
        self,
        *,
        name: str | None = None,
        sections: Sequence[SectionConfig] = (),
        options: Mapping[str, Any] | None = None,
    ) -> "Prompt":
        """追加 section 并合并选项，返回新 Prompt"""
        return Prompt(
            name or f"{self._name}-extended",
            self._model,
            self._sections + tuple(sections),
            replace(self._options, **dict(options or {})),
        )

    def override(self, overrides: Mapping[SectionType | str, SectionConfig]) -> "Prompt":
        """按类型替换 section，返回新 Prompt"""
        by_type = {SectionType(k): v for k, v in overrides.items()}
        return Prompt(
            self._name,
            self._model,
            [by_type.get(s.type, s) for s in self._sections],
            self._options,
        )

    def dependencies(self) -> list[str]:
        """引用的片段 id（去重，保持顺序）"""
        return list(dict.fromkeys(ref.id for ref in self.fragment_references()))

    def fragment_references(self) -> list[FragmentReference]:
        refs = []
        for index, section in enumerate(self._sections):
            if Section.is_dynamic(section) or isinstance(section.content, str):
                continue
            fragment = section.content
            refs.append(
                FragmentReference(
                    id=fragment.id,  # type: ignore[union-attr]
                    version=fragment.version,  # type: ignore[union-attr]
                    section_type=section.type,
                    section_index=index,
                )
            )
        return refs

    def to_config(self) -> dict[str, Any]:
        return {
            "name": self._name,
            "model": self._model,
            "sections": list(self._sections),
            "options": self._options,
        }

    # ========== 免渲染快速检查 ==========

    def quick_lint(self) -> list[Finding]:
        """不渲染的快速检查：缺少 identity、format 不在最后、弃用片段、动态内容在静态之前"""
        findings: list[Finding] = []
        sections = self._sections

        if not any(s.type is SectionType.IDENTITY for s in sections):
            findings.append(
                Finding(
                    id="missing-identity",
                    category="best-practice",
                    severity="warning",
                    message="No identity section. Agent may lack consistent persona.",
                )
            )

        format_index = next((i for i, s in enumerate(sections) if s.type is SectionType.FORMAT), -1)
        if format_index != -1 and format_index != len(sections) - 1:
            findings.append(
                Finding(
                    id="format-not-last",
                    category="ordering",
                    severity="info",
                    message="Output format instructions work best at the end.",
                )
            )

        for section in sections:
            fragment = Section.get_fragment(section)
            if fragment is not None and fragment.metadata is not None and fragment.metadata.deprecated:
                superseded = fragment.metadata.superseded_by
                findings.append(
                    Finding(
                        id="deprecated-fragment",
                        category="deprecated",
                        severity="warning",
                        message=f"Fragment '{fragment.id}' is deprecated.",
                        suggestion=f"Use '{superseded}' instead." if superseded else None,
                        fragments=(fragment.id,),
                    )
                )

        if has_dynamic_before_static(sections):
            findings.append(
                Finding(
                    id="dynamic-before-static",
                    category="cache-inefficiency",
                    severity="warning",
                    message="Dynamic content before static content reduces cache efficiency.",
                )
            )
        return findings


# ============================================================
# 装配器：溯源表构建
# ============================================================

def build_provenance(prompt_name: str, text: str, sections: Sequence[RenderedSection]) -> ProvenanceTable:
    """
    在最终文本中定位每个 section 的内容。

    搜索游标只前进：从上一个匹配的末尾开始查找，因此重复的子串会映射到各自、有序的区间。
    找不到的 section 只丢失这一条映射，不影响渲染。
    """
    table = ProvenanceTable(prompt_name, text)
    cursor = 0
    for section in sections:
        needle = section.content.strip()
        if not needle:
            continue
        start = text.find(needle, cursor)
        if start == -1:
            logger.debug(f"未在输出中定位到 section [{section.type.value}#{section.index}]，跳过映射")
            continue
        end = start + len(needle)
        origin = section.origin
        if origin.kind == "dynamic":
            table.add_dynamic_mapping(
                start, end, section_type=section.type, section_index=section.index, dynamic_key=origin.dynamic_key
            )
        elif origin.kind == "fragment":
            table.add_fragment_mapping(
                start,
                end,
                fragment_id=origin.fragment_id or "",
                fragment_version=origin.fragment_version or "1.0.0",
                section_type=section.type,
                section_index=section.index,
                source_file=origin.file,
                source_line=origin.file_line,
            )
        else:
            table.add_literal_mapping(start, end, section_type=section.type, section_index=section.index)
        cursor = end
    return table


def has_dynamic_before_static(sections: Sequence[SectionConfig]) -> bool:
    first_volatile = next((i for i, s in enumerate(sections) if not s.cacheable), -1)
    last_cacheable = next((i for i in range(len(sections) - 1, -1, -1) if sections[i].cacheable), -1)
    return first_volatile != -1 and last_cacheable != -1 and first_volatile < last_cacheable


def token_budget_findings(token_count: int, window: int, threshold: float = _TOKEN_WARNING_RATIO) -> list[Finding]:
    if token_count > window:
        return [
            Finding(
                id="token-limit-exceeded",
                category="token-budget",
                severity="error",
                message=f"Prompt exceeds context window ({token_count:,} > {window:,} tokens)",
            )
        ]
    if token_count > window * threshold:
        return [
            Finding(
                id="token-limit-warning",
                category="token-budget",
                severity="warning",
                message=(
                    f"Prompt approaching context window ({token_count:,} tokens, "
                    f"{round(token_count / window * 100)}% of limit)"
                ),
            )
        ]
    return []


# ============================================================
# 链式构建器
# ============================================================

def prompt(name: str) -> "PromptBuilder":
    return PromptBuilder(name)


class PromptBuilder:
    """链式构建 Prompt：prompt("x").model(...).identity(...).build()"""

    def __init__(self, name: str) -> None:
        self._name = name
        self._model = DEFAULT_MODEL
        self._sections: list[SectionConfig] = []
        self._options: dict[str, Any] = {}

    def model(self, model_id: str) -> "PromptBuilder":
        self._model = model_id
        return self

    def section(self, section: SectionConfig) -> "PromptBuilder":
        self._sections.append(section)
        return self

    def identity(self, content: StaticContent, **options: Any) -> "PromptBuilder":
        return self.section(Section.identity(content, **options))

    def capabilities(self, content: StaticContent | Sequence[str], **options: Any) -> "PromptBuilder":
        return self.section(Section.capabilities(content, **options))

    def constraints(self, content: StaticContent | Sequence[str], **options: Any) -> "PromptBuilder":
        return self.section(Section.constraints(content, **options))

    def domain(self, content: StaticContent, **options: Any) -> "PromptBuilder":
        return self.section(Section.domain(content, **options))

    def tools(self, tools: Sequence[ToolDefinition | Mapping[str, Any]], **options: Any) -> "PromptBuilder":
        return self.section(Section.tools(tools, **options))

    def context(self, generator: DynamicContent, **options: Any) -> "PromptBuilder":
        return self.section(Section.context(generator, **options))

    def examples(self, content: StaticContent, **options: Any) -> "PromptBuilder":
        return self.section(Section.examples(content, **options))

    def format(self, content: StaticContent, **options: Any) -> "PromptBuilder":
        return self.section(Section.format(content, **options))

    def custom(self, name: str, content: StaticContent | DynamicContent, **options: Any) -> "PromptBuilder":
        return self.section(Section.custom(name, content, **options))

    def options(self, **options: Any) -> "PromptBuilder":
        self._options.update(options)
        return self

    def output_format(self, fmt: FormatName) -> "PromptBuilder":
        """覆盖由模型推断的格式"""
        self._options["format"] = fmt
        return self

    def build(self) -> Prompt:
        return Prompt.compose(self._name, self._model, self._sections, PromptOptions(**self._options))


__all__ = [
    "DEFAULT_MODEL",
    "Prompt",
    "PromptBuilder",
    "build_provenance",
    "has_dynamic_before_static",
    "prompt",
    "token_budget_findings",
]
