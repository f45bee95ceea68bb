"""
配置加载回归用例

优先级：init > 环境变量 > dotenv > 配置文件 > 默认值
"""

import os

import pytest

from promptier.config.config import LLMSettings, PromptierConfig, load_config
from promptier.core.types import PromptOptions
from promptier.lint.linter import Linter


@pytest.fixture(autouse=True)
def isolated(tmp_path, monkeypatch):
    """在空目录中运行，并清除 PROMPTIER_ 前缀的环境变量"""
    monkeypatch.chdir(tmp_path)
    for key in list(os.environ):
        if key.startswith("PROMPTIER_"):
            monkeypatch.delenv(key)
    yield tmp_path


YAML = """
name: support-bot
default_model: gpt-4o
lint:
  rules:
    missing-identity: error
    token-limit-warning: [warning, {threshold: 0.5}]
  llm:
    enabled: false
    model: qwen2.5:7b
output:
  cache_optimize: false
"""


class TestDefaults:
    def test_no_file(self):
        config = load_config()
        assert config.name is None
        assert config.default_model == "claude-sonnet-4-20250514"
        assert config.lint.rules == {}
        assert config.lint.llm == LLMSettings()
        assert config.lint.llm.enabled is False
        assert config.fragment_pattern == "**/*.md"
        assert config.logging.log_to_console is False


class TestYamlFile:
    def test_explicit_path(self, tmp_path):
        path = tmp_path / "custom.yaml"
        path.write_text(YAML, encoding="utf-8")
        config = load_config(path)
        assert config.name == "support-bot"
        assert config.default_model == "gpt-4o"
        assert config.lint.rules["missing-identity"] == "error"
        assert config.lint.rules["token-limit-warning"] == ["warning", {"threshold": 0.5}]
        assert config.lint.llm.model == "qwen2.5:7b"
        assert config.output.cache_optimize is False

    def test_auto_discovery(self, tmp_path):
        (tmp_path / "promptier.yaml").write_text(YAML, encoding="utf-8")
        assert load_config().name == "support-bot"

    def test_dot_directory_discovery(self, tmp_path):
        (tmp_path / ".promptier").mkdir()
        (tmp_path / ".promptier" / "promptier.yml").write_text("name: nested\n", encoding="utf-8")
        assert load_config().name == "nested"

    def test_malformed_yaml_falls_back(self, tmp_path, caplog):
        (tmp_path / "promptier.yaml").write_text("lint: [unclosed\n", encoding="utf-8")
        config = load_config()
        assert config.lint.rules == {}
        assert "promptier.yaml" in caplog.text

    def test_non_mapping_falls_back(self, tmp_path):
        (tmp_path / "promptier.yaml").write_text("- just\n- a list\n", encoding="utf-8")
        assert load_config().name is None


class TestPrecedence:
    def test_env_overrides_file(self, tmp_path, monkeypatch):
        (tmp_path / "promptier.yaml").write_text(YAML, encoding="utf-8")
        monkeypatch.setenv("PROMPTIER_LINT__LLM__MODEL", "phi3:mini")
        monkeypatch.setenv("PROMPTIER_DEFAULT_MODEL", "claude-opus-4-20250514")
        config = load_config()
        assert config.lint.llm.model == "phi3:mini"
        assert config.default_model == "claude-opus-4-20250514"
        assert config.name == "support-bot"

    def test_init_overrides_env(self, monkeypatch):
        monkeypatch.setenv("PROMPTIER_NAME", "from-env")
        assert load_config(name="from-init").name == "from-init"

    def test_invalid_timeout_rejected(self):
        with pytest.raises(ValueError):
            LLMSettings(timeout_s=0)


class TestIntegration:
    def test_prompt_options(self, tmp_path):
        (tmp_path / "promptier.yaml").write_text(YAML, encoding="utf-8")
        options = load_config().prompt_options(max_tokens=500)
        assert isinstance(options, PromptOptions)
        assert options.cache_optimize is False
        assert options.format_for_model is True
        assert options.max_tokens == 500

    def test_linter_from_config(self, tmp_path):
        (tmp_path / "promptier.yaml").write_text(YAML, encoding="utf-8")
        linter = Linter.from_config(load_config())
        assert linter.rule_config("missing-identity") == "error"
        assert not linter.semantic_enabled

    def test_config_object_is_settings(self):
        assert isinstance(load_config(), PromptierConfig)
