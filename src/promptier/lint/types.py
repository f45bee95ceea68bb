"""
Lint 类型定义（Lint Types）

规则（LintRule）、规则配置（RuleConfig）、检查上下文（LintContext）与聚合结果（LintResult）。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Literal, Mapping, Sequence, Tuple, Union

from ..core.types import Finding, FormatName, LintCategory, SectionConfig, Severity

if TYPE_CHECKING:
    from ..core.prompt import Prompt

logger = logging.getLogger(__name__)

RuleSeverity = Literal["error", "warning", "info", "off"]
RuleOptions = dict[str, Any]
# 只写严重级别，或 (严重级别, 规则选项)
RuleConfig = Union[RuleSeverity, Tuple[RuleSeverity, RuleOptions]]

VALID_RULE_SEVERITIES: frozenset[str] = frozenset({"error", "warning", "info", "off"})


def parse_rule_config(config: Any, default: Severity = "warning") -> tuple[RuleSeverity, RuleOptions | None]:
    """
    解析规则配置为 (severity, options)。

    宽松处理：列表/元组取前两项；非法的严重级别回退到规则默认值并记录警告。
    """
    options: RuleOptions | None = None
    severity: Any = config
    if isinstance(config, (list, tuple)):
        severity = config[0] if config else default
        if len(config) > 1 and isinstance(config[1], Mapping):
            options = dict(config[1])
    if not isinstance(severity, str) or severity.lower() not in VALID_RULE_SEVERITIES:
        logger.warning(f"无效的规则严重级别 {severity!r}，使用默认值 {default!r}")
        return default, options
    return severity.lower(), options  # type: ignore[return-value]


@dataclass(frozen=True)
class ModelFacts:
    """规则可见的模型能力摘要"""

    context_window: int
    preferred_format: FormatName
    supports_caching: bool


@dataclass(frozen=True)
class LintContext:
    """
    传给每条规则的检查上下文（同一次 lint 内共享，options 按规则合并）。
    """

    prompt: "Prompt"
    text: str
    sections: Sequence[SectionConfig]
    model_id: str
    model_config: ModelFacts
    token_count: int
    options: RuleOptions | None = None


CheckResult = Union[Sequence[Finding], Awaitable[Sequence[Finding]]]
CheckFn = Callable[[LintContext], CheckResult]


@dataclass(frozen=True)
class LintRule:
    """
    Lint 规则

    check 可以是普通函数或协程函数；返回的 severity 会被配置的严重级别覆盖。
    """

    id: str
    category: LintCategory
    default_severity: Severity
    description: str
    check: CheckFn


@dataclass
class LintStats:
    rules_checked: int = 0
    time_ms: float = 0.0
    llm_calls: int = 0


@dataclass
class LintResult:
    passed: bool
    errors: list[Finding] = field(default_factory=list)
    warnings: list[Finding] = field(default_factory=list)
    info: list[Finding] = field(default_factory=list)
    stats: LintStats = field(default_factory=LintStats)

    @property
    def findings(self) -> list[Finding]:
        """errors + warnings + info（按桶顺序拼接）"""
        return [*self.errors, *self.warnings, *self.info]

    def to_dict(self) -> dict[str, Any]:
        return {
            "passed": self.passed,
            "errors": [f.to_dict() for f in self.errors],
            "warnings": [f.to_dict() for f in self.warnings],
            "info": [f.to_dict() for f in self.info],
            "stats": {
                "rulesChecked": self.stats.rules_checked,
                "timeMs": self.stats.time_ms,
                "llmCalls": self.stats.llm_calls,
            },
        }


__all__ = [
    "CheckFn",
    "Finding",
    "LintContext",
    "LintResult",
    "LintRule",
    "LintStats",
    "ModelFacts",
    "RuleConfig",
    "RuleOptions",
    "RuleSeverity",
    "parse_rule_config",
]
