"""logging utilities with rich support"""

import functools
import os
from datetime import datetime
from typing import Optional

from rich.console import Console
from rich.theme import Theme

from editor_lsp.utils.config_utils import get_config_bool, get_config_value
from editor_lsp.utils.singleton_utils import SingletonInstance


# custom theme for log levels
custom_theme = Theme({
    "info": "cyan",
    "warning": "yellow",
    "error": "bold red",
    "debug": "dim white",
})


class Logger(SingletonInstance):
    """singleton logger class with rich support"""

    def __init__(
        self,
        prefix: Optional[str] = None,
        log_dir: Optional[str] = None,
        log_to_file: Optional[bool] = None,
        console: Optional[Console] = None,
    ):
        """initialize logger

        Args:
            prefix: log message prefix ([logging] prefix)
            log_dir: directory for log files ([logging] log_dir)
            log_to_file: mirror every record to <log_dir>/<prefix>.log
            console: console to print to (stderr console by default)
        """
        self.prefix = prefix or get_config_value("logging", "prefix", "editor-lsp")
        self.log_dir = log_dir or get_config_value("logging", "log_dir", "./logs")
        if log_to_file is None:
            log_to_file = get_config_bool("logging", "log_to_file", False)
        # stderr keeps stdout free for stdio transports
        if console is None:
            console = Console(theme=custom_theme, stderr=True)
        else:
            console.push_theme(custom_theme)
        self.console = console
        self.file_console: Optional[Console] = None
        if log_to_file:
            self._ensure_log_dir()
            log_path = os.path.join(self.log_dir, f"{self.prefix}.log")
            self.file_console = Console(
                file=open(log_path, "a", encoding="utf-8"),
                theme=custom_theme,
                no_color=True,
                width=200,
            )

    def close(self):
        """close the log file, if one is open"""
        if self.file_console is not None:
            self.file_console.file.close()
            self.file_console = None

    @classmethod
    def reset_instance(cls):
        """drop the singleton instance, closing its log file"""
        existing = SingletonInstance._instances.get(cls)
        if existing is not None:
            existing.close()
        super().reset_instance()

    def _ensure_log_dir(self):
        """create log directory if not exists"""
        if not os.path.exists(self.log_dir):
            os.makedirs(self.log_dir)

    def _format(self, level: str, message: str) -> str:
        """format log message"""
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        return f"[{timestamp}] [{self.prefix}] {level}: {message}"

    def _emit(self, level: str, message: str, style: str):
        line = self._format(level, message)
        # markup off: server messages may contain [brackets]
        self.console.print(line, style=style, markup=False, highlight=False)
        if self.file_console is not None:
            self.file_console.print(line, markup=False, highlight=False)

    def info(self, message: str):
        """log info level message"""
        self._emit("INFO", message, "info")

    def error(self, message: str):
        """log error level message"""
        self._emit("ERROR", message, "error")

    def warning(self, message: str):
        """log warning level message"""
        self._emit("WARNING", message, "warning")

    def debug(self, message: str):
        """log debug level message"""
        self._emit("DEBUG", message, "debug")


def logging_func(desc: str = ""):
    """decorator for function logging

    Args:
        desc: description of the function
    """
    def decorator(function):
        @functools.wraps(function)
        def wrapper(*args, **kwargs):
            Logger.instance().debug(f"[start] {function.__name__} - {desc}")
            result = function(*args, **kwargs)
            Logger.instance().debug(f"[end] {function.__name__} -> {result!r}")
            return result
        return wrapper
    return decorator
