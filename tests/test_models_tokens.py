"""
模型能力表与 Token 计数回归用例
"""

from unittest import mock

import pytest

from promptier.core.models import (
    ModelConfig,
    ModelRegistry,
    context_window,
    detect_model_family,
    get_model_config,
    is_known_family,
    preferred_format,
    register_model,
    supports_caching,
)
from promptier.core.tokens import TokenCounter, count_tokens, estimate_tokens


class TestModelLookup:
    def test_builtin_exact_match(self):
        config = get_model_config("claude-sonnet-4-20250514")
        assert config.context_window == 200_000
        assert config.preferred_format == "xml"
        assert config.supports_caching is True

    @pytest.mark.parametrize(
        "model_id, family, fmt, window",
        [
            ("claude-3-7-custom", "claude", "xml", 200_000),
            ("my-anthropic-proxy", "claude", "xml", 200_000),
            ("gpt-5-preview", "gpt", "markdown", 128_000),
            ("o3-mini", "gpt", "markdown", 128_000),
            ("gemini-2.0-ultra", "gemini", "markdown", 1_000_000),
            ("mistral-large", "unknown", "plain", 8192),
        ],
    )
    def test_family_inference(self, model_id, family, fmt, window):
        assert detect_model_family(model_id) == family
        assert preferred_format(model_id) == fmt
        assert context_window(model_id) == window

    def test_gpt_family_uses_o200k(self):
        assert get_model_config("gpt-4o").tokenizer == "o200k_base"

    def test_known_family(self):
        assert is_known_family("gpt-4o")
        assert not is_known_family("llama3")

    def test_register_custom_model(self):
        register_model("house-llm", ModelConfig(id="", context_window=32_000, preferred_format="markdown", supports_caching=True))
        assert supports_caching("house-llm")
        assert get_model_config("house-llm").id == "house-llm"

    def test_separate_registry_is_isolated(self):
        registry = ModelRegistry()
        registry.register("house-llm", ModelConfig(id="", context_window=1, preferred_format="plain", supports_caching=False))
        assert get_model_config("house-llm", registry).context_window == 1
        assert get_model_config("house-llm").context_window == 8192

    def test_unregister(self):
        registry = ModelRegistry()
        registry.register("x-model", ModelConfig(id="", context_window=1, preferred_format="plain", supports_caching=False))
        registry.unregister("x-model")
        assert registry.get("x-model").context_window == 8192


class TestEstimateTokens:
    def test_empty(self):
        assert estimate_tokens("") == 0

    def test_plain_text(self):
        assert estimate_tokens("abcd") == 1
        assert estimate_tokens("hello world") == 3

    def test_code_heavy_text_scaled(self):
        assert estimate_tokens("<a></a>") == 3

    def test_whitespace_runs(self):
        # 40 字符 -> 10，10 段空白 -> +3
        assert estimate_tokens("abc " * 10) == 13


class TestTokenCounter:
    def test_fallback_to_estimate(self):
        assert count_tokens("hello world", "claude-sonnet-4-20250514") == 3

    def test_encoding_used_when_available(self):
        encoding = mock.Mock()
        encoding.encode.return_value = [1, 2, 3, 4, 5]
        counter = TokenCounter()
        with mock.patch.object(TokenCounter, "_load_encoding", return_value=encoding) as loader:
            assert counter.count("anything", "gpt-4o") == 5
            assert counter.count("again", "gpt-4o") == 5
        loader.assert_called_once_with("o200k_base")

    def test_failed_encoding_not_retried(self):
        counter = TokenCounter()
        with mock.patch.object(TokenCounter, "_load_encoding", side_effect=RuntimeError("offline")) as loader:
            counter.count("a b", "gpt-4o")
            counter.count("c d", "gpt-4o")
        assert loader.call_count == 1

    def test_custom_tokenizer(self):
        registry = ModelRegistry()
        registry.register(
            "words",
            ModelConfig(
                id="",
                context_window=100,
                preferred_format="plain",
                supports_caching=False,
                tokenizer="custom",
                custom_tokenizer=lambda text: len(text.split()),
            ),
        )
        assert TokenCounter(registry).count("one two three", "words") == 3

    def test_exceeds_context_window(self):
        registry = ModelRegistry()
        registry.register("tiny", ModelConfig(id="", context_window=10, preferred_format="plain", supports_caching=False))
        counter = TokenCounter(registry)
        assert counter.exceeds_context_window("x" * 80, "tiny")
        assert not counter.exceeds_context_window("x" * 20, "tiny")
        assert counter.exceeds_context_window("x" * 38, "tiny", buffer_pct=10)

    def test_truncate_to_token_limit(self):
        counter = TokenCounter()
        text = "\n".join(f"line number {i}" for i in range(50))
        truncated = counter.truncate_to_token_limit(text, 20, "claude-sonnet-4-20250514")
        assert truncated.endswith("\n[truncated]")
        body = truncated[: -len("\n[truncated]")]
        assert counter.count(body, "claude-sonnet-4-20250514") <= 20
        assert text.startswith(body)

    def test_truncate_noop_within_limit(self):
        counter = TokenCounter()
        assert counter.truncate_to_token_limit("short", 100, "claude-sonnet-4-20250514") == "short"
