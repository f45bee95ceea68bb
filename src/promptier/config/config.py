from __future__ import annotations

import logging
from contextvars import ContextVar
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..core.types import PromptOptions

logger = logging.getLogger(__name__)

# load_config(path=...) 显式指定的配置文件（仅在构造期间生效）
_explicit_config_path: ContextVar[Optional[Path]] = ContextVar("promptier_config_path", default=None)


class LLMSettings(BaseModel):
    """语义检查使用的本地推理服务配置。"""

    enabled: bool = Field(default=False, description="是否启用语义检查（默认关闭，不发起任何网络请求）")
    provider: str = Field(default="ollama", description="厂商名：目前内置 ollama")
    model: str = Field(default="llama3.2:3b")
    host: str = Field(default="http://localhost:11434")
    timeout_s: float = Field(default=60.0, gt=0, description="单次生成调用的超时（秒），超时按厂商失败处理")
    health_check_timeout_s: float = Field(default=5.0, gt=0)
    temperature: float = Field(default=0.1, ge=0.0, le=2.0)
    num_predict: int = Field(default=2048, ge=1)


class LintSettings(BaseModel):
    rules: Dict[str, Any] = Field(
        default_factory=dict,
        description="规则 id -> 严重级别（error|warning|info|off）或 [严重级别, {选项}]",
    )
    llm: LLMSettings = LLMSettings()


class OutputSettings(BaseModel):
    format_for_model: bool = True
    cache_optimize: bool = True


class LoggingSettings(BaseModel):
    """日志系统配置。"""

    log_to_console: bool = Field(default=False, description="是否输出到控制台（库默认静默）")
    level: str = Field(default="INFO", description="日志级别：DEBUG, INFO, WARNING, ERROR, CRITICAL。")
    file_path: Optional[str] = Field(default=None, description="日志文件路径；为空则不写文件。")
    max_bytes: int = Field(default=10_485_760, ge=1024, description="单个日志文件的最大字节数，超过后自动滚动。")
    backup_count: int = Field(default=5, ge=0, description="保留的历史日志文件数量。")
    log_format: str = Field(default="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    date_format: str = Field(default="%Y-%m-%d %H:%M:%S")


class PromptierConfig(BaseSettings):
    """
    Config priority (high -> low):
    - init kwargs
    - environment variables (prefix PROMPTIER_, nested delimiter __)
    - dotenv
    - config file (promptier.yaml / .promptier/promptier.yaml, or an explicit path)
    - file secrets
    - defaults
    """

    model_config = SettingsConfigDict(
        env_prefix="PROMPTIER_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(  # type: ignore[override]
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        def yaml_file_settings() -> Dict[str, Any]:
            return _load_config_from_file(_explicit_config_path.get())

        # 目标优先级：init > env > dotenv > file > secrets > defaults
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            yaml_file_settings,
            file_secret_settings,
        )

    name: Optional[str] = None
    default_model: str = "claude-sonnet-4-20250514"
    fragment_dirs: List[str] = Field(default_factory=list)
    fragment_pattern: str = "**/*.md"
    lint: LintSettings = LintSettings()
    output: OutputSettings = OutputSettings()
    logging: LoggingSettings = LoggingSettings()

    def prompt_options(self, **overrides: Any) -> PromptOptions:
        """输出配置 -> 渲染选项（overrides 优先）"""
        values: Dict[str, Any] = {
            "format_for_model": self.output.format_for_model,
            "cache_optimize": self.output.cache_optimize,
        }
        values.update(overrides)
        return PromptOptions(**values)


def load_config(path: str | Path | None = None, **overrides: Any) -> PromptierConfig:
    """
    加载配置。

    Args:
        path: 显式配置文件；为空时在工作目录中自动查找
        **overrides: 代码显式传参（优先级最高）
    """
    token = _explicit_config_path.set(Path(path) if path is not None else None)
    try:
        return PromptierConfig(**overrides)
    finally:
        _explicit_config_path.reset(token)


def _find_config_file() -> Optional[Path]:
    """查找配置文件（按优先级顺序）

    搜索顺序：
    1. ./promptier.yaml
    2. ./promptier.yml
    3. ./.promptier/promptier.yaml
    4. ./.promptier/promptier.yml
    """
    search_paths = [
        Path("promptier.yaml"),
        Path("promptier.yml"),
        Path(".promptier/promptier.yaml"),
        Path(".promptier/promptier.yml"),
    ]
    for path in search_paths:
        if path.exists() and path.is_file():
            return path
    return None


def _load_yaml_config(config_path: Path) -> Dict[str, Any]:
    with open(config_path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"top-level YAML value must be a mapping, got {type(data).__name__}")
    return data


def _load_config_from_file(explicit: Optional[Path] = None) -> Dict[str, Any]:
    """从文件加载配置；文件缺失或解析失败时返回空字典（默认值/环境变量仍然生效）"""
    config_file = explicit or _find_config_file()
    if config_file is None:
        return {}
    try:
        return _load_yaml_config(config_file)
    except (OSError, ValueError, yaml.YAMLError) as e:
        logger.warning(f"加载配置文件失败（{config_file}），将使用默认/环境变量配置: {e}")
        return {}
