"""
行内忽略指令（Inline Ignore Directives）

从渲染后的文本中解析（大小写不敏感）：
    <!-- promptier-ignore rule-id[, rule-id...] -->
    <!-- promptier-ignore-all -->
    [promptier-ignore: rule-id[, rule-id...]]
    [promptier-ignore-all]

语法错误的指令只是不匹配，不会报错。
"""

from __future__ import annotations

import re

IGNORE_ALL = "*"

_IGNORE_ALL_RE = re.compile(r"<!--\s*promptier-ignore-all\s*-->|\[promptier-ignore-all\]", re.IGNORECASE)
_RULE_LIST = r"([\w-]+(?:\s*,\s*[\w-]+)*)"
_COMMENT_RE = re.compile(r"<!--\s*promptier-ignore\s+" + _RULE_LIST + r"\s*-->", re.IGNORECASE)
_BRACKET_RE = re.compile(r"\[promptier-ignore:\s*" + _RULE_LIST + r"\s*\]", re.IGNORECASE)
_SPLIT_RE = re.compile(r"\s*,\s*")


def parse_ignored_rules(text: str) -> set[str]:
    """返回被忽略的规则 id 集合；含 ignore-all 时只返回 {IGNORE_ALL}"""
    if _IGNORE_ALL_RE.search(text):
        return {IGNORE_ALL}

    ignored: set[str] = set()
    for pattern in (_COMMENT_RE, _BRACKET_RE):
        for match in pattern.finditer(text):
            ignored.update(rule.strip() for rule in _SPLIT_RE.split(match.group(1)) if rule.strip())
    return ignored


def is_ignored(rule_id: str, ignored: set[str]) -> bool:
    return IGNORE_ALL in ignored or rule_id in ignored
