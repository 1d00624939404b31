"""config and logging utility tests"""

import io

import pytest
from rich.console import Console

from editor_lsp.session.features import FeatureToggles
from editor_lsp.utils.config_utils import (
    get_config_bool,
    get_config_int,
    get_config_value,
    global_config,
    load_config_ini,
    set_config_value,
)
from editor_lsp.utils.logging_utils import Logger, logging_func
from editor_lsp.utils.singleton_utils import SingletonInstance


@pytest.fixture
def scratch_section():
    """in-memory config section removed after the test"""
    yield "scratch"
    global_config.remove_section("scratch")


@pytest.fixture
def features_config():
    saved = dict(global_config.items("features")) if global_config.has_section("features") else None
    yield
    global_config.remove_section("features")
    if saved is not None:
        for key, value in saved.items():
            set_config_value("features", key, value)


@pytest.fixture
def captured_logger():
    """Logger singleton printing into a string buffer"""
    buffer = io.StringIO()
    Logger.reset_instance()
    Logger.instance(prefix="test", log_to_file=False, console=Console(file=buffer, width=200))
    yield buffer
    Logger.reset_instance()


# ═══════════════════════════════════════════════════════════════════════════
# TestConfig
# ═══════════════════════════════════════════════════════════════════════════


class TestConfig:
    """ini lookups with defaults"""

    def test_missing_values_use_defaults(self):
        assert get_config_value("no-such-section", "key", "fallback") == "fallback"
        assert get_config_int("no-such-section", "key", 7) == 7
        assert get_config_bool("no-such-section", "key", True) is True

    def test_set_and_read(self, scratch_section):
        set_config_value(scratch_section, "timeout", 250)
        set_config_value(scratch_section, "enabled", "yes")
        set_config_value(scratch_section, "disabled", "off")

        assert get_config_value(scratch_section, "timeout") == "250"
        assert get_config_int(scratch_section, "timeout") == 250
        assert get_config_bool(scratch_section, "enabled") is True
        assert get_config_bool(scratch_section, "disabled", True) is False

    def test_load_missing_file(self, tmp_path):
        assert load_config_ini(str(tmp_path / "missing.ini")) is False

    def test_load_file(self, tmp_path, scratch_section):
        path = tmp_path / "config.ini"
        path.write_text("[scratch]\nsync_mode = incremental\n", encoding="utf-8")

        assert load_config_ini(str(path)) is True
        assert get_config_value(scratch_section, "sync_mode") == "incremental"


class TestFeatureToggles:
    """[features] section"""

    def test_defaults(self, features_config):
        global_config.remove_section("features")
        assert FeatureToggles.from_config() == FeatureToggles()

    def test_config_and_overrides(self, features_config):
        set_config_value("features", "hover", "false")
        set_config_value("features", "rename", "false")

        toggles = FeatureToggles.from_config(rename=True)

        assert toggles.hover is False
        assert toggles.rename is True
        assert toggles.completion is True


# ═══════════════════════════════════════════════════════════════════════════
# TestLogger
# ═══════════════════════════════════════════════════════════════════════════


class TestLogger:
    """rich console logger"""

    def test_singleton(self, captured_logger):
        assert Logger.instance() is Logger.instance()

    def test_separate_slots_per_class(self, captured_logger):
        class Other(SingletonInstance):
            pass

        assert Other.instance() is not Logger.instance()
        Other.reset_instance()

    def test_levels(self, captured_logger):
        logger = Logger.instance()
        logger.info("server started")
        logger.warning("slow response")
        logger.error("request failed")
        logger.debug("frame received")

        output = captured_logger.getvalue()
        assert "[test] INFO: server started" in output
        assert "[test] WARNING: slow response" in output
        assert "[test] ERROR: request failed" in output
        assert "[test] DEBUG: frame received" in output

    def test_brackets_are_not_markup(self, captured_logger):
        Logger.instance().info("[bold]not markup[/bold]")
        assert "[bold]not markup[/bold]" in captured_logger.getvalue()

    def test_injected_console_gets_level_styles(self, captured_logger):
        console = Logger.instance().console
        for level in ("info", "warning", "error", "debug"):
            assert console.get_style(level) is not None

    def test_log_to_file(self, tmp_path):
        Logger.reset_instance()
        logger = Logger.instance(
            prefix="file-test",
            log_dir=str(tmp_path / "logs"),
            log_to_file=True,
            console=Console(file=io.StringIO()),
        )
        log_file = logger.file_console.file
        logger.info("written to disk")

        # reset closes the file, flushing it
        Logger.reset_instance()

        assert log_file.closed is True
        content = (tmp_path / "logs" / "file-test.log").read_text(encoding="utf-8")
        assert "INFO: written to disk" in content

    def test_close_without_file(self, captured_logger):
        logger = Logger.instance()
        logger.close()
        logger.info("still printing")
        assert "still printing" in captured_logger.getvalue()

    def test_logging_func(self, captured_logger):
        @logging_func("adds numbers")
        def add(a, b):
            return a + b

        assert add(2, 3) == 5
        assert add.__name__ == "add"
        output = captured_logger.getvalue()
        assert "[start] add - adds numbers" in output
        assert "[end] add -> 5" in output
