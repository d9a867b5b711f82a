"""Unit tests for conversion configuration and logging setup.

Why: Paths derived wrongly would either overwrite the source checkpoint or scatter
the log somewhere unexpected. These tests ensure:
1. The output directory defaults to a sibling ``<input>-tritpack``
2. The log defaults to ``<output>/conversion.log``
3. Input and output pointing at the same directory fail fast
4. Logging handlers are installed once and removed cleanly
"""

import logging
from pathlib import Path

import pytest

from tritpack.core.config import (
    DEFAULT_INPUT_DIR,
    LOG_FILENAME,
    ConverterConfig,
    default_output_dir,
)
from tritpack.utils.log_setup import PACKAGE_LOGGER, close_logging, configure_logging


class TestConverterConfig:
    """Test suite for ConverterConfig."""

    def test_defaults(self) -> None:
        config = ConverterConfig()

        assert config.input_dir == DEFAULT_INPUT_DIR
        assert config.output_dir == Path("model-tritpack")
        assert config.log_file == Path("model-tritpack") / LOG_FILENAME
        assert config.permute_tiles is False
        assert config.verbose is False

    def test_explicit_output_dir(self, temp_dir) -> None:
        config = ConverterConfig(input_dir=temp_dir / "in", output_dir=temp_dir / "out")

        assert config.output_dir == temp_dir / "out"
        assert config.log_file == temp_dir / "out" / LOG_FILENAME

    def test_explicit_log_file(self, temp_dir) -> None:
        config = ConverterConfig(input_dir=temp_dir / "in", log_file=temp_dir / "run.log")

        assert config.log_file == temp_dir / "run.log"

    def test_accepts_strings(self, temp_dir) -> None:
        config = ConverterConfig(input_dir=str(temp_dir / "in"))

        assert isinstance(config.input_dir, Path)
        assert config.output_dir == temp_dir / "in-tritpack"

    def test_rejects_same_input_and_output(self, temp_dir) -> None:
        """Test that writing into the source directory is refused.

        Why: Component files would sit beside, and could shadow, the source shards.
        """
        with pytest.raises(ValueError, match="must differ"):
            ConverterConfig(input_dir=temp_dir, output_dir=temp_dir / "sub" / "..")


class TestDefaultOutputDir:
    """Test suite for default_output_dir."""

    @pytest.mark.parametrize(
        "input_dir,expected",
        [
            ("model", "model-tritpack"),
            ("/data/llama", "/data/llama-tritpack"),
            ("weights/tiny", "weights/tiny-tritpack"),
        ],
    )
    def test_sibling_directory(self, input_dir: str, expected: str) -> None:
        assert default_output_dir(input_dir) == Path(expected)


class TestLogging:
    """Test suite for configure_logging and close_logging."""

    def test_file_handler_writes_debug(self, temp_dir) -> None:
        log_path = temp_dir / "logs" / "conversion.log"
        logger = configure_logging(log_path)
        try:
            logging.getLogger("tritpack.test").debug("trace detail")
        finally:
            close_logging()

        assert "trace detail" in log_path.read_text(encoding="utf-8")
        assert logger.name == PACKAGE_LOGGER

    def test_reconfigure_replaces_handlers(self, temp_dir) -> None:
        configure_logging(temp_dir / "a.log")
        logger = configure_logging(temp_dir / "b.log", verbose=True)
        try:
            assert len(logger.handlers) == 2
        finally:
            close_logging()

    def test_close_restores_default_state(self, temp_dir) -> None:
        logger = configure_logging(temp_dir / "a.log")

        close_logging()

        assert logger.handlers == []
        assert logger.propagate is True

    def test_stderr_level_follows_verbose(self, capsys) -> None:
        configure_logging(verbose=False)
        try:
            logging.getLogger("tritpack.test").info("quiet progress")
            logging.getLogger("tritpack.test").warning("loud warning")
        finally:
            close_logging()

        err = capsys.readouterr().err
        assert "quiet progress" not in err
        assert "loud warning" in err

    def test_errors_not_echoed_to_stderr(self, capsys) -> None:
        """Test that ERROR records stay off stderr.

        Why: The CLI prints the fatal message itself; echoing the traceback too
        would double the output.
        """
        configure_logging(verbose=True)
        try:
            logging.getLogger("tritpack.test").error("fatal detail")
        finally:
            close_logging()

        assert "fatal detail" not in capsys.readouterr().err
