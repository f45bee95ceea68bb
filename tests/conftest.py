"""
公共测试夹具

- tiktoken 编码在测试中一律视为不可用，token 数走确定性的字符估算（不触发网络下载）
- 每个用例前后清理语义检查系统提示词缓存与自定义模型注册
"""

import pytest

from promptier.core.models import model_registry
from promptier.core.tokens import TokenCounter, default_token_counter
from promptier.lint.semantic import reset_linter_prompt_cache


def _no_encoding(self, encoding_name):
    raise RuntimeError(f"encoding {encoding_name} disabled in tests")


@pytest.fixture(autouse=True)
def estimated_tokens(monkeypatch):
    monkeypatch.setattr(TokenCounter, "_load_encoding", _no_encoding)
    default_token_counter._encoding_cache.clear()
    default_token_counter._failed.clear()
    yield


@pytest.fixture(autouse=True)
def clean_state():
    reset_linter_prompt_cache()
    model_registry.clear_custom()
    yield
    reset_linter_prompt_cache()
    model_registry.clear_custom()
