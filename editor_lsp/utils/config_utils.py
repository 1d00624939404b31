"""configuration management utilities

values are read from an ini file (``./config.ini`` by default). every
lookup takes a default so the engine runs without any config file.

recognised sections:

    [lsp]
    request_timeout_ms = 10000
    initialize_timeout_factor = 3
    change_debounce_ms = 500
    sync_mode = full            ; full | incremental
    stale_guard = true
    auto_close = false

    [features]
    diagnostics = true
    hover = true
    completion = true
    definition = true
    rename = true
    code_actions = true
    signature_help = true

    [logging]
    prefix = editor-lsp
    log_dir = ./logs
    log_to_file = false
"""

import os
import configparser

global_config = configparser.ConfigParser()


def load_config_ini(config_path: str = "./config.ini") -> bool:
    """load configuration file

    Args:
        config_path: path to config.ini file

    Returns:
        True if the file existed and was read
    """
    if os.path.exists(config_path):
        global_config.read(config_path, encoding="utf-8")
        return True
    return False


def get_config_value(section: str, key: str, default=None):
    """get configuration value

    Args:
        section: config section name
        key: config key name
        default: default value if not found

    Returns:
        config value or default
    """
    try:
        return global_config.get(section, key)
    except (configparser.NoSectionError, configparser.NoOptionError):
        return default


def get_config_int(section: str, key: str, default: int = 0) -> int:
    """get configuration value as integer"""
    value = get_config_value(section, key)
    if value is None:
        return default
    return int(value)


def get_config_bool(section: str, key: str, default: bool = False) -> bool:
    """get configuration value as boolean"""
    value = get_config_value(section, key)
    if value is None:
        return default
    return value.strip().lower() in ("true", "1", "yes", "on")


def set_config_value(section: str, key: str, value) -> None:
    """override a configuration value in memory (used by tests and embedders)"""
    if not global_config.has_section(section):
        global_config.add_section(section)
    global_config.set(section, key, str(value))


# auto-load on import
load_config_ini()
