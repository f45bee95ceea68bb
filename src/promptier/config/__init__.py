from .config import LintSettings, LLMSettings, LoggingSettings, OutputSettings, PromptierConfig, load_config

__all__ = ["LintSettings", "LLMSettings", "LoggingSettings", "OutputSettings", "PromptierConfig", "load_config"]
