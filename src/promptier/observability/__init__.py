from .logger import FileLineFileHandler, FileLineRichHandler, get_logger, setup_logging

__all__ = ["FileLineFileHandler", "FileLineRichHandler", "get_logger", "setup_logging"]
