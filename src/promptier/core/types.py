"""
核心数据模型（Core Data Model）

Section / Fragment / 渲染结果 / 溯源描述（Origin）/ Finding 等类型定义。
所有声明类对象构建后不可变（frozen dataclass）。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Literal, Mapping, Union

if TYPE_CHECKING:
    from .source_map import ProvenanceTable


class SectionType(str, Enum):
    """Section 类型（封闭集合）。custom 需要额外的用户名称。"""

    IDENTITY = "identity"
    CAPABILITIES = "capabilities"
    CONSTRAINTS = "constraints"
    DOMAIN = "domain"
    TOOLS = "tools"
    CONTEXT = "context"
    EXAMPLES = "examples"
    FORMAT = "format"
    CUSTOM = "custom"


FormatName = Literal["xml", "markdown", "plain"]
Severity = Literal["error", "warning", "info"]
OriginKind = Literal["fragment", "dynamic", "literal", "generated"]

LintCategory = Literal[
    "contradiction",
    "ambiguity",
    "model-mismatch",
    "cache-inefficiency",
    "token-budget",
    "ordering",
    "duplication",
    "deprecated",
    "security",
    "best-practice",
]

# 渲染上下文：任意 key/value，保留键 $model / $now / $tokenBudget
RenderContext = dict[str, Any]
DynamicContent = Callable[[RenderContext], Union[str, Awaitable[str]]]

CONTEXT_MODEL_KEY = "$model"
CONTEXT_NOW_KEY = "$now"
CONTEXT_TOKEN_BUDGET_KEY = "$tokenBudget"


@dataclass(frozen=True)
class FragmentMetadata:
    """片段元数据（来自 define() 参数或 front matter）"""

    description: str | None = None
    author: str | None = None
    tags: tuple[str, ...] = ()
    deprecated: bool = False
    superseded_by: str | None = None


@dataclass(frozen=True)
class FragmentDefinition:
    """片段定义（Fragment 的纯数据形式，section 中引用的就是它）"""

    id: str
    version: str
    content: str
    metadata: FragmentMetadata | None = None
    source_file: str | None = None
    source_line: int | None = None


SectionContent = Union[FragmentDefinition, DynamicContent, str]


@dataclass(frozen=True)
class SectionConfig:
    """
    Section 声明（Section Declaration）

    content 三选一：字面字符串、片段定义、或 context -> str 的生成器（可为 async）。
    """

    type: SectionType
    content: SectionContent
    name: str | None = None
    priority: int = 0
    cacheable: bool = True
    truncatable: bool = False
    max_tokens: int | None = None


@dataclass(frozen=True)
class Origin:
    """
    溯源描述（Origin Descriptor）

    kind:
        - fragment: 来自片段（id + version，可选源文件/行号）
        - dynamic: 来自动态生成器
        - literal: 来自内联字符串
        - generated: formatter 插入的装饰文本（标签、标题、分隔符）
    """

    kind: OriginKind
    section_type: SectionType | None = None
    section_index: int | None = None
    fragment_id: str | None = None
    fragment_version: str | None = None
    file: str | None = None
    file_line: int | None = None
    dynamic_key: str | None = None

    def describe(self) -> str:
        """可视化用的单行描述"""
        prefix = f"[{self.section_type.value}] " if self.section_type is not None else ""
        if self.kind == "fragment":
            return f"{prefix}{self.fragment_id}@{self.fragment_version}"
        if self.kind == "dynamic":
            key = f": {self.dynamic_key}" if self.dynamic_key else ""
            return f"{prefix}<dynamic{key}>"
        if self.kind == "literal":
            return f"{prefix}<literal>"
        return f"{prefix}<generated>"

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"type": self.kind}
        if self.section_type is not None:
            data["sectionType"] = self.section_type.value
        optional = {
            "sectionIndex": self.section_index,
            "fragmentId": self.fragment_id,
            "fragmentVersion": self.fragment_version,
            "file": self.file,
            "fileLine": self.file_line,
            "dynamicKey": self.dynamic_key,
        }
        data.update({k: v for k, v in optional.items() if v is not None})
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Origin":
        section_type = data.get("sectionType")
        return cls(
            kind=data["type"],
            section_type=SectionType(section_type) if section_type is not None else None,
            section_index=data.get("sectionIndex"),
            fragment_id=data.get("fragmentId"),
            fragment_version=data.get("fragmentVersion"),
            file=data.get("file"),
            file_line=data.get("fileLine"),
            dynamic_key=data.get("dynamicKey"),
        )


@dataclass(frozen=True)
class RenderedSection:
    """针对一次渲染上下文解析后的 section：具体文本 + 临时溯源描述"""

    type: SectionType
    content: str
    priority: int
    cacheable: bool
    origin: Origin
    index: int
    name: str | None = None

    @property
    def key(self) -> str:
        """tokens_by_section 的键：名称优先，否则类型"""
        return self.name or self.type.value


@dataclass(frozen=True)
class FragmentReference:
    id: str
    version: str
    section_type: SectionType
    section_index: int


@dataclass(frozen=True)
class Position:
    """输出文本中的位置（半开区间 + 1 起始的行列）"""

    start: int
    end: int
    line: int
    column: int


@dataclass(frozen=True)
class Finding:
    """
    单条检查结果（Lint Finding）

    severity 在聚合前会被规则配置覆盖，因此规则返回的 severity 只是默认值。
    """

    id: str
    category: LintCategory
    severity: Severity
    message: str
    suggestion: str | None = None
    evidence: str | None = None
    position: Position | None = None
    fragments: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "category": self.category,
            "severity": self.severity,
            "message": self.message,
        }
        if self.suggestion is not None:
            data["suggestion"] = self.suggestion
        if self.evidence is not None:
            data["evidence"] = self.evidence
        if self.position is not None:
            data["position"] = {
                "start": self.position.start,
                "end": self.position.end,
                "line": self.position.line,
                "column": self.position.column,
            }
        if self.fragments:
            data["fragments"] = list(self.fragments)
        return data


@dataclass(frozen=True)
class PromptOptions:
    """
    渲染选项

    - max_tokens: token 预算（写入 $tokenBudget，默认取模型上下文窗口）
    - cache_optimize: 是否按缓存友好顺序重排（默认开启）
    - format_for_model: 关闭时各 section 仅以空行拼接，不加装饰
    - format: 显式指定 formatter（否则由模型推断）
    """

    max_tokens: int | None = None
    cache_optimize: bool = True
    format_for_model: bool = True
    format: FormatName | None = None


@dataclass
class PromptMetadata:
    name: str
    model: str
    token_count: int
    tokens_by_section: dict[str, int]
    provenance: "ProvenanceTable"
    warnings: list[Finding] = field(default_factory=list)
    cacheable_prefix_chars: int = 0
    cacheable_prefix_tokens: int = 0
    fragment_references: list[FragmentReference] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "model": self.model,
            "tokenCount": self.token_count,
            "tokensBySection": dict(self.tokens_by_section),
            "provenanceTable": self.provenance.to_dict(),
            "warnings": [w.to_dict() for w in self.warnings],
            "cacheablePrefixChars": self.cacheable_prefix_chars,
            "cacheablePrefixTokens": self.cacheable_prefix_tokens,
            "fragmentReferences": [
                {
                    "id": ref.id,
                    "version": ref.version,
                    "sectionType": ref.section_type.value,
                    "sectionIndex": ref.section_index,
                }
                for ref in self.fragment_references
            ],
        }


@dataclass
class CompiledPrompt:
    """渲染结果：最终文本 + 元数据"""

    text: str
    meta: PromptMetadata
