"""
日志系统回归用例
"""

import logging

import pytest

from promptier.config.config import LoggingSettings
from promptier.observability.logger import FileLineFileHandler, FileLineRichHandler, get_logger, setup_logging


@pytest.fixture
def fresh_logger():
    created = []

    def factory(name):
        created.append(name)
        return name

    yield factory
    for name in created:
        logger = logging.getLogger(name)
        for handler in list(logger.handlers):
            handler.close()
            logger.removeHandler(handler)
        logger.propagate = True
        logger.setLevel(logging.NOTSET)


class TestGetLogger:
    def test_file_output(self, tmp_path, fresh_logger):
        log_file = tmp_path / "logs" / "promptier.log"
        logger = get_logger(fresh_logger("promptier.test.file"), level="DEBUG", log_file=str(log_file))
        logger.debug("加载片段 persona")
        for handler in logger.handlers:
            handler.flush()
        content = log_file.read_text(encoding="utf-8")
        assert "加载片段 persona" in content
        assert "test_logging.py:" in content
        assert logger.propagate is False

    def test_no_duplicate_handlers(self, tmp_path, fresh_logger):
        name = fresh_logger("promptier.test.dupes")
        log_file = str(tmp_path / "dupes.log")
        get_logger(name, log_file=log_file, log_to_console=True)
        logger = get_logger(name, log_file=log_file, log_to_console=True)
        assert sum(isinstance(h, FileLineFileHandler) for h in logger.handlers) == 1
        assert sum(isinstance(h, FileLineRichHandler) for h in logger.handlers) == 1
        assert logger.propagate is True

    def test_level_string(self, fresh_logger):
        logger = get_logger(fresh_logger("promptier.test.level"), level="warning")
        assert logger.level == logging.WARNING
        assert logger.handlers == []


class TestSetupLogging:
    def test_from_settings(self, tmp_path, fresh_logger):
        fresh_logger("promptier")
        settings = LoggingSettings(level="DEBUG", file_path=str(tmp_path / "app.log"), log_format="%(levelname)s|%(message)s")
        root = setup_logging(settings)
        logging.getLogger("promptier.lint.linter").debug("child message")
        for handler in root.handlers:
            handler.flush()
        assert "DEBUG|child message" in (tmp_path / "app.log").read_text(encoding="utf-8")
