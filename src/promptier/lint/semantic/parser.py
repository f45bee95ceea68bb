"""
语义检查输出解析（Semantic Response Parser）

小模型的输出经常不规范，按顺序尝试：
1. 直接 json.loads
2. 取 markdown 代码块（```json ... ``` 或 ``` ... ```）里的内容
3. 取第一个 `[` 到最后一个 `]` 之间的子串
4. 全部失败：返回一条 info 级别的 semantic-parse-error，不抛异常
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from ...core.types import Finding, LintCategory, Severity

logger = logging.getLogger(__name__)

PARSE_ERROR_ID = "semantic-parse-error"

CATEGORY_MAP: dict[str, LintCategory] = {
    "semantic-contradiction": "contradiction",
    "semantic-ambiguity": "ambiguity",
    "semantic-injection-risk": "security",
    "semantic-verbosity": "token-budget",
    "semantic-missing-practice": "best-practice",
    "semantic-scope-creep": "best-practice",
}

_VALID_SEVERITIES = ("error", "warning", "info")
_FENCE_RE = re.compile(r"```(?:json|JSON)?\s*(.*?)```", re.DOTALL)
_RAW_PREVIEW_CHARS = 200


def _candidates(text: str) -> list[str]:
    candidates = [text]

    fence = _FENCE_RE.search(text)
    if fence:
        candidates.append(fence.group(1).strip())

    start = text.find("[")
    end = text.rfind("]")
    if 0 <= start < end:
        candidates.append(text[start : end + 1])
    return candidates


def extract_json_array(raw: str) -> list[Any] | None:
    """按顺序尝试各候选串，返回第一个解析为 JSON 数组的结果"""
    for candidate in _candidates((raw or "").strip()):
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, list):
            return parsed
    return None


def _parse_error() -> Finding:
    return Finding(
        id=PARSE_ERROR_ID,
        category="best-practice",
        severity="info",
        message="LLM linter returned unparseable response. Raw output available in debug mode.",
    )


def _to_finding(item: Any) -> Finding | None:
    if not isinstance(item, dict):
        return None
    finding_id = item.get("id")
    message = item.get("message")
    if not isinstance(finding_id, str) or not finding_id or not isinstance(message, str) or not message:
        return None

    severity: Severity = item["severity"] if item.get("severity") in _VALID_SEVERITIES else "info"
    suggestion = item.get("suggestion")
    evidence = item.get("evidence")
    return Finding(
        id=finding_id,
        category=CATEGORY_MAP.get(finding_id, "best-practice"),
        severity=severity,
        message=message,
        suggestion=suggestion if isinstance(suggestion, str) else None,
        evidence=evidence if isinstance(evidence, str) else None,
    )


def parse_semantic_response(raw: str) -> list[Finding]:
    """解析模型输出为 Finding 列表；缺少 id 或 message 的条目被丢弃"""
    items = extract_json_array(raw)
    if items is None:
        logger.debug(f"语义检查输出无法解析，原始输出（截断）: {(raw or '')[:_RAW_PREVIEW_CHARS]!r}")
        return [_parse_error()]
    return [finding for finding in map(_to_finding, items) if finding is not None]
