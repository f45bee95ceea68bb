"""
启发式规则（Heuristic Rules）

纯文本/结构检查，不依赖外部服务。注册顺序即执行顺序，也决定输出中 finding 的顺序。
"""

from __future__ import annotations

import re
from typing import Sequence

from ...core.prompt import has_dynamic_before_static
from ...core.section import Section
from ...core.types import Finding, FragmentDefinition, Position, SectionConfig, SectionType
from ..types import LintContext, LintRule

_XML_TAG_RE = re.compile(r"<[a-z][a-z0-9-]*>", re.IGNORECASE)
_MD_HEADER_RE = re.compile(r"^#{1,6}\s+", re.MULTILINE)
_SENTENCE_SPLIT_RE = re.compile(r"[.!?]+")
_ALWAYS_RE = re.compile(r"always\s+(\w+(?:\s+\w+)?)")
_NEVER_RE = re.compile(r"never\s+(\w+(?:\s+\w+)?)")

_USER_INPUT_MARKERS = [
    re.compile(r"\{\{user\.[^}]*\}\}", re.IGNORECASE),
    re.compile(r"\$user\.\w+", re.IGNORECASE),
    re.compile(r"user_input", re.IGNORECASE),
    re.compile(r"user_message", re.IGNORECASE),
    re.compile(r"<user_input>", re.IGNORECASE),
    re.compile(r"\[USER INPUT\]", re.IGNORECASE),
]

_MIN_SENTENCE_CHARS = 20
_DEFAULT_WARNING_THRESHOLD = 0.8


# ============================================================
# 工具函数
# ============================================================

def static_text(section: SectionConfig) -> str:
    """section 的声明期文本；动态 section 返回空串"""
    if isinstance(section.content, FragmentDefinition):
        return section.content.content
    if isinstance(section.content, str):
        return section.content
    return ""


def position_at(text: str, start: int, end: int) -> Position:
    line = text.count("\n", 0, start) + 1
    column = start - text.rfind("\n", 0, start)
    return Position(start=start, end=end, line=line, column=column)


def has_xml_tags(text: str) -> bool:
    return _XML_TAG_RE.search(text) is not None


def has_markdown_headers(text: str) -> bool:
    return _MD_HEADER_RE.search(text) is not None


def find_duplicate_sentences(text: str) -> list[str]:
    """小写比较；只统计长度超过 20 的句子，第二次出现时记录"""
    seen: dict[str, int] = {}
    duplicates: list[str] = []
    for raw in _SENTENCE_SPLIT_RE.split(text):
        sentence = raw.strip().lower()
        if len(sentence) <= _MIN_SENTENCE_CHARS:
            continue
        seen[sentence] = seen.get(sentence, 0) + 1
        if seen[sentence] == 2:
            duplicates.append(sentence)
    return duplicates


def find_user_input_marker(text: str) -> re.Match[str] | None:
    for pattern in _USER_INPUT_MARKERS:
        match = pattern.search(text)
        if match:
            return match
    return None


# ============================================================
# 规则检查函数
# ============================================================

def _check_token_limit_exceeded(ctx: LintContext) -> list[Finding]:
    window = ctx.model_config.context_window
    if ctx.token_count <= window:
        return []
    return [
        Finding(
            id="token-limit-exceeded",
            category="token-budget",
            severity="error",
            message=f"Prompt exceeds context window ({ctx.token_count:,} > {window:,} tokens)",
            suggestion="Remove or shorten sections, or target a model with a larger context window.",
        )
    ]


def _check_token_limit_warning(ctx: LintContext) -> list[Finding]:
    threshold = (ctx.options or {}).get("threshold", _DEFAULT_WARNING_THRESHOLD)
    if isinstance(threshold, bool) or not isinstance(threshold, (int, float)):
        threshold = _DEFAULT_WARNING_THRESHOLD
    ratio = ctx.token_count / ctx.model_config.context_window
    if not (threshold < ratio <= 1):
        return []
    return [
        Finding(
            id="token-limit-warning",
            category="token-budget",
            severity="warning",
            message=(
                f"Prompt approaching context window ({round(ratio * 100)}% of limit, "
                f"threshold: {round(threshold * 100)}%)"
            ),
        )
    ]


def _check_xml_tags_with_gpt(ctx: LintContext) -> list[Finding]:
    if ctx.model_id.startswith("gpt") and has_xml_tags(ctx.text):
        return [
            Finding(
                id="xml-tags-with-gpt",
                category="model-mismatch",
                severity="warning",
                message="XML tags detected but targeting GPT model. Consider using markdown headers instead.",
                suggestion="Switch to markdown formatting or change model to Claude.",
            )
        ]
    return []


def _check_markdown_with_claude(ctx: LintContext) -> list[Finding]:
    if ctx.model_id.startswith("claude") and has_markdown_headers(ctx.text) and not has_xml_tags(ctx.text):
        return [
            Finding(
                id="markdown-with-claude",
                category="model-mismatch",
                severity="info",
                message="Claude performs better with XML tags than markdown headers.",
                suggestion="Consider using XML tags for structure.",
            )
        ]
    return []


def _check_dynamic_before_static(ctx: LintContext) -> list[Finding]:
    if not has_dynamic_before_static(ctx.sections):
        return []
    return [
        Finding(
            id="dynamic-before-static",
            category="cache-inefficiency",
            severity="warning",
            message="Dynamic content before static content reduces cache efficiency.",
            suggestion="Reorder sections to put static content first, or enable the cache_optimize option.",
        )
    ]


def _check_missing_identity(ctx: LintContext) -> list[Finding]:
    if any(s.type is SectionType.IDENTITY for s in ctx.sections):
        return []
    return [
        Finding(
            id="missing-identity",
            category="best-practice",
            severity="warning",
            message="No identity section. Agent may lack consistent persona.",
            suggestion="Add an identity section to define who the agent is.",
        )
    ]


def _check_format_not_last(ctx: LintContext) -> list[Finding]:
    index = next((i for i, s in enumerate(ctx.sections) if s.type is SectionType.FORMAT), -1)
    if index == -1 or index == len(ctx.sections) - 1:
        return []
    return [
        Finding(
            id="format-not-last",
            category="ordering",
            severity="info",
            message="Output format instructions work best at the end.",
            suggestion="Move the format section to be the last section.",
        )
    ]


def _check_duplicate_instructions(ctx: LintContext) -> list[Finding]:
    lowered = ctx.text.lower()
    findings = []
    for sentence in find_duplicate_sentences(ctx.text):
        first = lowered.find(sentence)
        second = lowered.find(sentence, first + 1)
        preview = sentence[:50] + ("..." if len(sentence) > 50 else "")
        findings.append(
            Finding(
                id="duplicate-instructions",
                category="duplication",
                severity="warning",
                message=f'Duplicate instruction detected: "{preview}"',
                suggestion="Remove or consolidate duplicate instructions.",
                position=position_at(ctx.text, second, second + len(sentence)) if second != -1 else None,
            )
        )
    return findings


def _check_user_input_in_system(ctx: LintContext) -> list[Finding]:
    findings = []
    for section in ctx.sections:
        if section.type is SectionType.CONTEXT:
            continue
        content = static_text(section)
        match = find_user_input_marker(content)
        if match is None:
            continue
        content_start = ctx.text.find(content.strip()) if content.strip() else -1
        position = None
        if content_start != -1:
            # 格式化器会去掉首尾空白，偏移需按去掉的前导空白修正
            offset = content_start + match.start() - (len(content) - len(content.lstrip()))
            position = position_at(ctx.text, offset, offset + len(match.group(0)))
        fragment = section.content.id if isinstance(section.content, FragmentDefinition) else None
        findings.append(
            Finding(
                id="user-input-in-system",
                category="security",
                severity="error",
                message=(
                    f'Potential user input detected in {Section.display_name(section)} section: '
                    f'"{match.group(0)}". Injection risk.'
                ),
                suggestion="Move user-provided content to a context section with proper sanitization.",
                position=position,
                fragments=(fragment,) if fragment else (),
            )
        )
    return findings


def _check_empty_sections(ctx: LintContext) -> list[Finding]:
    return [
        Finding(
            id="empty-sections",
            category="best-practice",
            severity="warning",
            message=f"Empty {Section.display_name(section)} section.",
            suggestion="Remove empty sections or add content.",
        )
        for section in ctx.sections
        if not Section.is_dynamic(section) and not static_text(section).strip()
    ]


def _check_conflicting_patterns(ctx: LintContext) -> list[Finding]:
    text = ctx.text.lower()
    findings = []

    never_actions = {m.group(1) for m in _NEVER_RE.finditer(text)}
    for action in dict.fromkeys(m.group(1) for m in _ALWAYS_RE.finditer(text)):
        if action in never_actions:
            findings.append(
                Finding(
                    id="conflicting-patterns",
                    category="contradiction",
                    severity="warning",
                    message=f'Conflicting instructions: both "always {action}" and "never {action}" found.',
                    suggestion="Clarify the intended behavior.",
                )
            )

    if "concise" in text and ("detailed" in text or "comprehensive" in text):
        findings.append(
            Finding(
                id="conflicting-patterns",
                category="contradiction",
                severity="info",
                message="Potentially conflicting: instructions for both concise and detailed responses.",
                suggestion="Clarify when to be concise vs detailed.",
            )
        )
    return findings


# ============================================================
# 规则表
# ============================================================

token_limit_exceeded = LintRule(
    id="token-limit-exceeded",
    category="token-budget",
    default_severity="error",
    description="Checks if the prompt exceeds the model context window",
    check=_check_token_limit_exceeded,
)

token_limit_warning = LintRule(
    id="token-limit-warning",
    category="token-budget",
    default_severity="warning",
    description="Warns when prompt is approaching the context window limit (option: threshold)",
    check=_check_token_limit_warning,
)

xml_tags_with_gpt = LintRule(
    id="xml-tags-with-gpt",
    category="model-mismatch",
    default_severity="warning",
    description="Warns when using XML tags with GPT models",
    check=_check_xml_tags_with_gpt,
)

markdown_with_claude = LintRule(
    id="markdown-with-claude",
    category="model-mismatch",
    default_severity="info",
    description="Suggests using XML tags instead of markdown for Claude",
    check=_check_markdown_with_claude,
)

dynamic_before_static = LintRule(
    id="dynamic-before-static",
    category="cache-inefficiency",
    default_severity="warning",
    description="Warns when dynamic content appears before static content",
    check=_check_dynamic_before_static,
)

missing_identity = LintRule(
    id="missing-identity",
    category="best-practice",
    default_severity="warning",
    description="Warns when no identity section is defined",
    check=_check_missing_identity,
)

format_not_last = LintRule(
    id="format-not-last",
    category="ordering",
    default_severity="info",
    description="Suggests placing format section at the end",
    check=_check_format_not_last,
)

duplicate_instructions = LintRule(
    id="duplicate-instructions",
    category="duplication",
    default_severity="warning",
    description="Detects duplicate sentences in the prompt",
    check=_check_duplicate_instructions,
)

user_input_in_system = LintRule(
    id="user-input-in-system",
    category="security",
    default_severity="error",
    description="Detects potential user input markers in non-context sections",
    check=_check_user_input_in_system,
)

empty_sections = LintRule(
    id="empty-sections",
    category="best-practice",
    default_severity="warning",
    description="Warns about empty sections",
    check=_check_empty_sections,
)

conflicting_patterns = LintRule(
    id="conflicting-patterns",
    category="contradiction",
    default_severity="warning",
    description="Detects potentially conflicting instruction patterns (configured severity applies to all findings)",
    check=_check_conflicting_patterns,
)

HEURISTIC_RULES: Sequence[LintRule] = (
    token_limit_exceeded,
    token_limit_warning,
    xml_tags_with_gpt,
    markdown_with_claude,
    dynamic_before_static,
    missing_identity,
    format_not_last,
    duplicate_instructions,
    user_input_in_system,
    empty_sections,
    conflicting_patterns,
)
