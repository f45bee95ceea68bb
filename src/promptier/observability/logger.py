"""
统一日志系统模块。

库代码一律使用 `logging.getLogger(__name__)`，默认不输出任何内容；
应用通过 `setup_logging(LoggingSettings)` 或 `get_logger(...)` 挂载处理器。

格式：`级别 [文件名:行号] 级别 - 消息内容`，控制台输出支持 Rich markup。
"""
import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import TYPE_CHECKING, Optional, Union

from rich.console import Console
from rich.logging import RichHandler

if TYPE_CHECKING:
    from ..config.config import LoggingSettings

ROOT_LOGGER_NAME = "promptier"

_DEFAULT_FILE_FORMAT = "%(levelname)-8s [%(filename)s:%(lineno_caller)s] %(levelname)s - %(message)s"


def _annotate_caller(record: logging.LogRecord) -> None:
    record.filename = Path(record.pathname).name
    record.lineno_caller = record.lineno


class FileLineRichHandler(RichHandler):
    """Rich 控制台处理器：记录调用方文件名与行号，消息本身交给 Rich 渲染。"""

    def emit(self, record: logging.LogRecord) -> None:
        _annotate_caller(record)
        super().emit(record)


class FileLineFileHandler(RotatingFileHandler):
    """
    文件输出处理器，支持自动滚动，格式与控制台一致。
    """

    def __init__(
        self,
        filename: str,
        mode: str = "a",
        encoding: str = "utf-8",
        delay: bool = False,
        maxBytes: int = 10_485_760,  # 10MB
        backupCount: int = 5,
        log_format: Optional[str] = None,
        date_format: Optional[str] = None,
    ):
        super().__init__(filename, mode, maxBytes, backupCount, encoding, delay)
        self.setFormatter(logging.Formatter(fmt=log_format or _DEFAULT_FILE_FORMAT, datefmt=date_format or ""))

    def emit(self, record: logging.LogRecord) -> None:
        _annotate_caller(record)
        super().emit(record)


def get_logger(
    name: str,
    level: Union[int, str] = logging.INFO,
    log_file: Optional[str] = None,
    log_to_console: bool = False,
    max_bytes: int = 10_485_760,
    backup_count: int = 5,
    log_format: Optional[str] = None,
    date_format: Optional[str] = None,
) -> logging.Logger:
    """
    获取配置好的日志记录器（重复调用不会重复挂载处理器）。

    参数:
        name: 日志记录器名称
        level: 日志级别（int 或 'DEBUG' 这样的字符串）
        log_file: 可选的文件路径，提供则同时输出到滚动文件
        log_to_console: 是否输出到控制台（stderr，Rich 渲染）
        max_bytes: 日志文件最大字节数
        backup_count: 保留的日志备份数量
        log_format: 文件日志格式
        date_format: 文件日志日期格式
    """
    logger = logging.getLogger(name)

    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)
    logger.setLevel(level)

    has_console_handler = any(isinstance(h, FileLineRichHandler) for h in logger.handlers)
    has_file_handler = any(isinstance(h, FileLineFileHandler) for h in logger.handlers)

    if log_to_console and not has_console_handler:
        console_handler = FileLineRichHandler(
            console=Console(stderr=True),
            show_time=False,
            show_path=False,
            rich_tracebacks=True,
            markup=True,
        )
        console_handler.setFormatter(logging.Formatter(fmt="%(message)s", datefmt=""))
        logger.addHandler(console_handler)

    if log_file:
        directory = os.path.dirname(log_file)
        if directory:
            os.makedirs(directory, exist_ok=True)
        if not has_file_handler:
            file_handler = FileLineFileHandler(
                log_file,
                encoding="utf-8",
                maxBytes=max_bytes,
                backupCount=backup_count,
                log_format=log_format,
                date_format=date_format,
            )
            file_handler.setLevel(level)
            logger.addHandler(file_handler)
        # 只写文件时不再向上传递，避免宿主的根处理器重复打印
        if not log_to_console:
            logger.propagate = False

    return logger


def setup_logging(settings: "LoggingSettings") -> logging.Logger:
    """按配置初始化 `promptier` 根日志记录器"""
    return get_logger(
        ROOT_LOGGER_NAME,
        level=settings.level,
        log_file=settings.file_path,
        log_to_console=settings.log_to_console,
        max_bytes=settings.max_bytes,
        backup_count=settings.backup_count,
        log_format=settings.log_format,
        date_format=settings.date_format,
    )
