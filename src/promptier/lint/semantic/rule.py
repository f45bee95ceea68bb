"""
语义规则（Semantic Rule）

把整次 LLM 分析包装成一条规则：每次合格的 lint 只调用一次 generate，
模型在一个响应里返回多条 finding。

失败策略：健康检查失败或返回值不合规、generate 抛错、超时或返回非文本，一律转为一条 info 级别的
semantic-unavailable，不影响整体 lint 结果。
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

from ...core.section import Section
from ...core.types import Finding
from ...llm.base import HealthStatus, LLMClient
from ..types import LintContext, LintRule
from .parser import parse_semantic_response
from .system_prompt import render_linter_prompt

logger = logging.getLogger(__name__)

SEMANTIC_RULE_ID = "semantic-analysis"
UNAVAILABLE_ID = "semantic-unavailable"


@dataclass
class SemanticOutcome:
    findings: list[Finding] = field(default_factory=list)
    llm_calls: int = 0


def build_user_message(ctx: LintContext) -> str:
    """模型 id、section 类型列表、token 数与完整渲染文本打包成一条用户消息"""
    section_types = ", ".join(Section.display_name(s) for s in ctx.sections)
    return "\n".join(
        [
            f"Target model: {ctx.model_id}",
            f"Sections: {section_types or 'none'}",
            f"Token count: {ctx.token_count}",
            "",
            "=== SYSTEM PROMPT TO ANALYZE ===",
            ctx.text,
            "=== END ===",
        ]
    )


def unavailable_finding(reason: str) -> Finding:
    return Finding(
        id=UNAVAILABLE_ID,
        category="best-practice",
        severity="info",
        message=f"Semantic analysis unavailable: {reason}",
        suggestion="Check that the LLM provider is running and the model is available, or disable semantic linting.",
    )


class SemanticRule:
    """
    语义分析规则

    Args:
        client: 满足 LLMClient 接口的客户端
        timeout_s: 单次 generate 的超时（秒）
        health_check: 调用前是否先做健康检查
    """

    id = SEMANTIC_RULE_ID
    category = "best-practice"
    default_severity = "warning"
    description = "LLM-powered semantic analysis of prompt quality"

    def __init__(self, client: LLMClient, *, timeout_s: float = 60.0, health_check: bool = True) -> None:
        self.client = client
        self.timeout_s = timeout_s
        self.health_check = health_check

    async def analyze(self, ctx: LintContext) -> SemanticOutcome:
        if self.health_check:
            reason = await self._health_failure()
            if reason is not None:
                logger.warning(f"语义检查不可用（{self.client.model_name}）: {reason}")
                return SemanticOutcome(findings=[unavailable_finding(reason)])

        system = await render_linter_prompt()
        try:
            raw = await asyncio.wait_for(self.client.generate(build_user_message(ctx), system), self.timeout_s)
        except asyncio.TimeoutError:
            reason = f"request timed out after {self.timeout_s}s"
            logger.warning(f"语义检查不可用（{self.client.model_name}）: {reason}")
            return SemanticOutcome(findings=[unavailable_finding(reason)], llm_calls=1)
        except Exception as e:
            reason = str(e) or type(e).__name__
            logger.warning(f"语义检查不可用（{self.client.model_name}）: {reason}")
            return SemanticOutcome(findings=[unavailable_finding(reason)], llm_calls=1)

        if not isinstance(raw, str):
            reason = f"provider returned {type(raw).__name__} instead of text"
            logger.warning(f"语义检查不可用（{self.client.model_name}）: {reason}")
            return SemanticOutcome(findings=[unavailable_finding(reason)], llm_calls=1)

        return SemanticOutcome(findings=parse_semantic_response(raw), llm_calls=1)

    async def _health_failure(self) -> str | None:
        """健康检查失败原因；通过返回 None"""
        try:
            status = await asyncio.wait_for(self.client.health_check(), self.timeout_s)
        except Exception as e:
            return str(e) or type(e).__name__
        if not isinstance(status, HealthStatus):
            return f"health check returned {type(status).__name__} instead of HealthStatus"
        return None if status.ok else (status.error or "health check failed")

    async def check(self, ctx: LintContext) -> list[Finding]:
        """LintRule 兼容入口（只返回 finding，不统计调用次数）"""
        return (await self.analyze(ctx)).findings

    def as_rule(self) -> LintRule:
        return LintRule(
            id=self.id,
            category=self.category,  # type: ignore[arg-type]
            default_severity=self.default_severity,  # type: ignore[arg-type]
            description=self.description,
            check=self.check,
        )


def create_semantic_rule(client: LLMClient, **kwargs) -> SemanticRule:
    return SemanticRule(client, **kwargs)
