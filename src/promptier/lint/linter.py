"""
规则引擎（Linter）

lint(prompt) 流程：
1. 以空上下文渲染 -> 文本、section、token 数
2. 解析行内忽略指令
3. 构建共享的 LintContext
4. 按注册顺序执行启用且未被忽略的规则（同步/异步统一 await），配置的严重级别覆盖返回值
5. 单条规则抛错只跳过该规则（记录日志），不中止整次检查
6. 若启用语义检查且前面没有 error，最后调用一次 LLM
7. 按严重级别分桶；passed = 没有 error
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from dataclasses import replace
from typing import Any, Callable, Iterable, Mapping

from ..config.config import LLMSettings, PromptierConfig
from ..core.models import ModelRegistry, get_model_config
from ..core.prompt import Prompt
from ..core.types import Finding, LintCategory, Severity
from ..llm.base import LLMClient
from ..llm.registry import create_llm_client
from .ignores import is_ignored, parse_ignored_rules
from .rules.heuristic import HEURISTIC_RULES
from .semantic.rule import SEMANTIC_RULE_ID, SemanticRule, unavailable_finding
from .types import CheckFn, LintContext, LintResult, LintRule, LintStats, ModelFacts, RuleConfig, parse_rule_config

logger = logging.getLogger(__name__)


class Linter:
    """
    Lint 规则引擎

    Args:
        rules: 规则 id -> RuleConfig；未知 id 会被保留，只是永远匹配不到规则
        custom: 自定义规则（在内置规则之后注册，同 id 覆盖内置规则）
        llm: 语义检查配置（LLMSettings 或等价 dict）
        client: 预先构建的 LLM 客户端；提供时直接启用语义检查，不走厂商工厂
        registry: 模型注册表（默认进程级 model_registry）
    """

    def __init__(
        self,
        rules: Mapping[str, RuleConfig] | None = None,
        custom: Iterable[LintRule] | None = None,
        llm: LLMSettings | Mapping[str, Any] | None = None,
        client: LLMClient | None = None,
        registry: ModelRegistry | None = None,
    ) -> None:
        self._rules: dict[str, LintRule] = {}
        self._rule_config: dict[str, RuleConfig] = {}
        self._registry = registry

        for rule in [*HEURISTIC_RULES, *(custom or [])]:
            self._rules[rule.id] = rule
            self._rule_config[rule.id] = rule.default_severity
        for rule_id, config in (rules or {}).items():
            self._rule_config[rule_id] = config

        settings = llm if isinstance(llm, LLMSettings) else LLMSettings.model_validate(dict(llm or {}))
        self._semantic: SemanticRule | None = None
        if client is None and settings.enabled:
            client = create_llm_client(settings)
        if client is not None:
            self._semantic = SemanticRule(client, timeout_s=settings.timeout_s)
            self._rule_config.setdefault(SEMANTIC_RULE_ID, SemanticRule.default_severity)

    @classmethod
    def from_config(
        cls,
        config: PromptierConfig,
        *,
        custom: Iterable[LintRule] | None = None,
        client: LLMClient | None = None,
    ) -> "Linter":
        return cls(rules=config.lint.rules, custom=custom, llm=config.lint.llm, client=client)

    @property
    def semantic_enabled(self) -> bool:
        return self._semantic is not None

    # ========== 执行 ==========

    async def lint(self, prompt: Prompt) -> LintResult:
        """
        检查一个 Prompt。

        规则、厂商、解析失败都不会抛出；只有动态 section 渲染失败（RenderError）会向上传播。
        """
        started = time.perf_counter()
        compiled = await prompt.render({}, registry=self._registry)
        text = compiled.text

        ignored = parse_ignored_rules(text)
        model_config = get_model_config(prompt.model, self._registry)
        ctx = LintContext(
            prompt=prompt,
            text=text,
            sections=prompt.sections,
            model_id=prompt.model,
            model_config=ModelFacts(
                context_window=model_config.context_window,
                preferred_format=model_config.preferred_format,
                supports_caching=model_config.supports_caching,
            ),
            token_count=compiled.meta.token_count,
        )

        findings: list[Finding] = []
        stats = LintStats()

        for rule_id, rule in self._rules.items():
            severity, options = parse_rule_config(self._rule_config.get(rule_id, rule.default_severity), rule.default_severity)
            if severity == "off" or is_ignored(rule_id, ignored):
                continue
            stats.rules_checked += 1
            try:
                result = rule.check(replace(ctx, options=options) if options else ctx)
                if inspect.isawaitable(result):
                    result = await result
                # 结果在保护范围内完整消费，规则中途失败不会留下部分 finding
                produced = [replace(f, severity=severity) for f in result or ()]
            except Exception as e:
                logger.warning(f"Lint rule '{rule_id}' failed: {e}")
                logger.debug(f"Lint rule '{rule_id}' traceback", exc_info=True)
                continue
            findings.extend(produced)

        if self._semantic is not None:
            await self._run_semantic(self._semantic, ctx, ignored, findings, stats)

        stats.time_ms = (time.perf_counter() - started) * 1000
        errors = [f for f in findings if f.severity == "error"]
        return LintResult(
            passed=not errors,
            errors=errors,
            warnings=[f for f in findings if f.severity == "warning"],
            info=[f for f in findings if f.severity == "info"],
            stats=stats,
        )

    async def _run_semantic(
        self,
        semantic: SemanticRule,
        ctx: LintContext,
        ignored: set[str],
        findings: list[Finding],
        stats: LintStats,
    ) -> None:
        severity, _ = parse_rule_config(self._rule_config.get(SEMANTIC_RULE_ID, "warning"), "warning")
        if severity == "off" or is_ignored(SEMANTIC_RULE_ID, ignored):
            return
        if any(f.severity == "error" for f in findings):
            logger.debug("启发式规则已产生 error，跳过语义检查")
            return

        stats.rules_checked += 1
        try:
            outcome = await semantic.analyze(ctx)
        except Exception as e:
            logger.warning(f"Lint rule '{SEMANTIC_RULE_ID}' failed: {e}")
            logger.debug(f"Lint rule '{SEMANTIC_RULE_ID}' traceback", exc_info=True)
            findings.append(unavailable_finding(str(e) or type(e).__name__))
            return
        stats.llm_calls += outcome.llm_calls
        # 语义 finding 保留模型给出的严重级别
        findings.extend(outcome.findings)

    def lint_sync(self, prompt: Prompt) -> LintResult:
        """同步检查（内部 asyncio.run，不能在运行中的事件循环里调用）"""
        return asyncio.run(self.lint(prompt))

    # ========== 规则管理 ==========

    def add_rule(self, rule: LintRule, config: RuleConfig | None = None) -> None:
        self._rules[rule.id] = rule
        self._rule_config[rule.id] = config if config is not None else rule.default_severity

    def configure_rule(self, rule_id: str, config: RuleConfig) -> None:
        self._rule_config[rule_id] = config

    def disable_rule(self, rule_id: str) -> None:
        self._rule_config[rule_id] = "off"

    def rule_ids(self) -> list[str]:
        ids = list(self._rules)
        if self._semantic is not None:
            ids.append(SEMANTIC_RULE_ID)
        return ids

    def rule_config(self, rule_id: str) -> RuleConfig | None:
        return self._rule_config.get(rule_id)


def create_linter(
    rules: Mapping[str, RuleConfig] | None = None,
    custom: Iterable[LintRule] | None = None,
    llm: LLMSettings | Mapping[str, Any] | None = None,
    client: LLMClient | None = None,
) -> Linter:
    return Linter(rules=rules, custom=custom, llm=llm, client=client)


async def lint(prompt: Prompt) -> list[Finding]:
    """默认配置检查，返回 errors + warnings + info 的扁平列表"""
    return (await Linter().lint(prompt)).findings


def define_rule(
    id: str,
    *,
    category: LintCategory = "best-practice",
    default_severity: Severity = "warning",
    description: str = "",
    check: CheckFn | None = None,
) -> LintRule | Callable[[CheckFn], LintRule]:
    """
    定义自定义规则；省略 check 时作为装饰器使用：

        @define_rule("no-draft", category="best-practice")
        def no_draft(ctx): ...
    """

    def wrap(fn: CheckFn) -> LintRule:
        return LintRule(
            id=id,
            category=category,
            default_severity=default_severity,
            description=description or (fn.__doc__ or "").strip(),
            check=fn,
        )

    return wrap(check) if check is not None else wrap
