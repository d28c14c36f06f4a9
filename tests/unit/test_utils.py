"""Test utils module functionality."""

import inspect
import logging
from collections.abc import Iterator

import pytest

from healthtrends.utils.error_handler import handle_errors, safe_operation
from healthtrends.utils.logger import get_logger, setup_logging
from healthtrends.utils.mixins import LoggerMixin


@pytest.fixture(autouse=True)
def _reset_logging_state() -> Iterator[None]:
    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()
    try:
        yield
    finally:
        for handler in list(root_logger.handlers):
            root_logger.removeHandler(handler)
            handler.close()


class TestLogger:
    """Test logging functionality."""

    def test_setup_logging(self):
        """Test logging setup doesn't raise errors."""
        setup_logging()

        file_handlers = [
            handler
            for handler in logging.getLogger().handlers
            if isinstance(handler, logging.FileHandler)
        ]
        assert file_handlers == []

    def test_setup_logging_writes_plain_message_to_file(
        self, tmp_path, monkeypatch: pytest.MonkeyPatch
    ):
        """Test log file output uses raw message format."""
        monkeypatch.setenv("LOG_TO_FILE", "true")
        monkeypatch.setenv("LOG_DIR", str(tmp_path / "logs"))

        setup_logging()

        test_message = "logging format check"
        logger = logging.getLogger("format-check")
        logger.info(test_message)

        root_logger = logging.getLogger()
        file_handlers = [
            handler
            for handler in root_logger.handlers
            if isinstance(handler, logging.FileHandler)
        ]
        assert file_handlers, "FileHandler が設定されていません"

        for handler in file_handlers:
            handler.flush()
            handler.close()
            root_logger.removeHandler(handler)

        log_file = tmp_path / "logs" / "healthtrends.log"
        assert log_file.exists()
        lines = log_file.read_text(encoding="utf-8").splitlines()
        assert lines, "ログファイルが空です"
        assert lines[-1].endswith(test_message)

    def test_get_logger_returns_logger(self):
        """Test get_logger returns a logger instance."""
        logger = get_logger("test")
        assert logger is not None
        assert hasattr(logger, "info")
        assert hasattr(logger, "error")
        assert hasattr(logger, "warning")


class TestLoggerMixin:
    """Test LoggerMixin functionality."""

    def test_logger_mixin_provides_logger(self):
        """Test LoggerMixin provides logger property."""

        class TestClass(LoggerMixin):
            pass

        instance = TestClass()
        logger = instance.logger

        assert logger is not None
        assert hasattr(logger, "info")
        assert hasattr(logger, "debug")


class TestErrorHandling:
    """Test error handling decorators."""

    def test_sync_failure_returns_default(self):
        @handle_errors("divide", default_return=-1)
        def divide(a: int, b: int) -> float:
            return a / b

        assert divide(4, 2) == 2
        assert divide(1, 0) == -1

    @pytest.mark.asyncio
    async def test_async_failure_returns_none(self):
        @safe_operation("load facet")
        async def load() -> list[int]:
            raise RuntimeError("boom")

        assert await load() is None

    def test_reraise(self):
        @handle_errors("parse", reraise=True)
        def parse(text: str) -> int:
            return int(text)

        with pytest.raises(ValueError):
            parse("not a number")

    def test_wraps_metadata(self):
        @safe_operation("noop")
        def compute_something() -> None:
            """Docstring"""

        assert compute_something.__name__ == "compute_something"
        assert compute_something.__doc__ == "Docstring"

    def test_wrapped_coroutine_function_stays_async(self):
        @safe_operation("fetch")
        async def fetch() -> int:
            return 1

        @safe_operation("compute")
        def compute() -> int:
            return 1

        assert inspect.iscoroutinefunction(fetch)
        assert not inspect.iscoroutinefunction(compute)
