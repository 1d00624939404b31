"""utility modules for editor-lsp"""

from editor_lsp.utils.singleton_utils import SingletonInstance
from editor_lsp.utils.logging_utils import Logger, logging_func
from editor_lsp.utils.config_utils import (
    load_config_ini,
    get_config_value,
    get_config_int,
    get_config_bool,
    set_config_value,
)

__all__ = [
    "SingletonInstance",
    "Logger",
    "logging_func",
    "load_config_ini",
    "get_config_value",
    "get_config_int",
    "get_config_bool",
    "set_config_value",
]
