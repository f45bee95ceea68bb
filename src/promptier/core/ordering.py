"""
缓存友好排序（Cache-Aware Ordering）

可缓存 section 在前、不可缓存在后，两组内部按 priority 升序稳定排序，
使上游 prompt caching 可用的稳定前缀尽可能长。对已排好序的列表再次执行不产生变化。
"""

from __future__ import annotations

from typing import Sequence

from .types import RenderedSection


def optimize_for_caching(sections: Sequence[RenderedSection]) -> list[RenderedSection]:
    cacheable = sorted((s for s in sections if s.cacheable), key=lambda s: s.priority)
    volatile = sorted((s for s in sections if not s.cacheable), key=lambda s: s.priority)
    return cacheable + volatile


def is_cache_ordered(sections: Sequence[RenderedSection]) -> bool:
    return list(sections) == optimize_for_caching(sections)
