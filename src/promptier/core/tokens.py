"""
Token 计算工具

tiktoken 精确计算 + 字符估算降级（tiktoken 不可用或编码下载失败时）。
"""

from __future__ import annotations

import logging
import math
import re
import threading
from typing import Any, Dict

import tiktoken

from .models import ModelRegistry, get_model_config

logger = logging.getLogger(__name__)

_WHITESPACE_RE = re.compile(r"\s+")
_CODE_CHARS_RE = re.compile(r"[<>/={}()\[\]]")


def estimate_tokens(text: str) -> int:
    """
    估算 token 数（确定性降级方法）。

    规则：约 4 字符 / token，每段空白 +0.3，代码字符占比超过 5% 时 ×1.2。
    """
    if not text:
        return 0
    tokens = math.ceil(len(text) / 4)
    tokens += math.floor(len(_WHITESPACE_RE.findall(text)) * 0.3)
    if len(_CODE_CHARS_RE.findall(text)) > len(text) * 0.05:
        tokens = math.ceil(tokens * 1.2)
    return tokens


class TokenCounter:
    """
    Token 计数器

    按模型的 tokenizer 选择编码（编码对象带缓存）；custom tokenizer 直接调用模型配置里的函数。
    """

    def __init__(self, registry: ModelRegistry | None = None) -> None:
        self._registry = registry
        self._encoding_cache: Dict[str, Any] = {}
        self._failed: set[str] = set()
        self._lock = threading.Lock()

    def get_encoding(self, encoding_name: str) -> Any | None:
        """获取编码器（带缓存）；加载失败返回 None 并记住失败，避免重复下载"""
        with self._lock:
            if encoding_name in self._encoding_cache:
                return self._encoding_cache[encoding_name]
            if encoding_name in self._failed:
                return None
        try:
            encoding = self._load_encoding(encoding_name)
        except Exception as e:
            logger.debug(f"tiktoken 编码 {encoding_name} 不可用，降级为估算: {e}")
            with self._lock:
                self._failed.add(encoding_name)
            return None
        with self._lock:
            self._encoding_cache[encoding_name] = encoding
        return encoding

    def _load_encoding(self, encoding_name: str) -> Any:
        return tiktoken.get_encoding(encoding_name)

    def count(self, text: str, model_id: str) -> int:
        """计算 text 在指定模型下的 token 数"""
        if not text:
            return 0
        config = get_model_config(model_id, self._registry)
        if config.tokenizer == "custom" and config.custom_tokenizer is not None:
            return int(config.custom_tokenizer(text))
        encoding_name = "cl100k_base" if config.tokenizer == "custom" else config.tokenizer
        encoding = self.get_encoding(encoding_name)
        if encoding is None:
            return estimate_tokens(text)
        return len(encoding.encode(text, disallowed_special=()))

    def exceeds_context_window(self, text: str, model_id: str, buffer_pct: float = 0) -> bool:
        config = get_model_config(model_id, self._registry)
        effective_window = config.context_window * (1 - buffer_pct / 100)
        return self.count(text, model_id) > effective_window

    def truncate_to_token_limit(self, text: str, max_tokens: int, model_id: str) -> str:
        """
        截断文本以适应 token 上限。

        二分查找最长前缀，再向前最多 100 字符寻找换行/空格作为干净断点。
        """
        if self.count(text, model_id) <= max_tokens:
            return text

        low, high = 0, len(text)
        while low < high:
            mid = (low + high + 1) // 2
            if self.count(text[:mid], model_id) <= max_tokens:
                low = mid
            else:
                high = mid - 1

        break_point = low
        for i in range(min(low, len(text) - 1), max(0, low - 100) - 1, -1):
            if text[i] == "\n":
                break_point = i
                break
            if text[i] == " " and break_point == low:
                break_point = i
        return text[:break_point].strip() + "\n[truncated]"


default_token_counter = TokenCounter()


def count_tokens(text: str, model_id: str) -> int:
    return default_token_counter.count(text, model_id)
