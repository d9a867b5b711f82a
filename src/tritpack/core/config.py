"""Configuration for a tritpack conversion run.

Why: Centralized configuration as a dataclass gives one place where paths are
resolved and options validated. The __post_init__ validation catches bad input
when the config is created, before any multi-gigabyte checkpoint is read.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

DEFAULT_INPUT_DIR = Path("model")
OUTPUT_SUFFIX = "-tritpack"
LOG_FILENAME = "conversion.log"


def default_output_dir(input_dir: str | Path) -> Path:
    """Output directory next to the input: ``<input>-tritpack``."""
    input_dir = Path(input_dir)
    return input_dir.with_name(input_dir.name + OUTPUT_SUFFIX)


@dataclass
class ConverterConfig:
    """Options for converting one model directory.

    Attributes:
        input_dir: Directory with config.json and model.safetensors (or a sharded index)
        output_dir: Destination for per-component files; defaults to ``<input>-tritpack``
        permute_tiles: Reorder quantized codes into the 16x32 tile register layout
            before packing. Off by default; the engine's default kernels read
            row-major codes.
        log_file: Conversion log path; defaults to ``<output_dir>/conversion.log``
        verbose: Echo INFO-level progress to stderr
    """

    input_dir: Path = DEFAULT_INPUT_DIR
    output_dir: Path | None = None
    permute_tiles: bool = False
    log_file: Path | None = None
    verbose: bool = False

    def __post_init__(self) -> None:
        """Resolve derived paths.

        Raises:
            ValueError: If input and output directories are the same
        """
        self.input_dir = Path(self.input_dir).expanduser()
        if self.output_dir is None:
            self.output_dir = default_output_dir(self.input_dir)
        self.output_dir = Path(self.output_dir).expanduser()
        if self.log_file is None:
            self.log_file = self.output_dir / LOG_FILENAME
        self.log_file = Path(self.log_file).expanduser()

        if self.input_dir.resolve() == self.output_dir.resolve():
            raise ValueError(
                f"output_dir must differ from input_dir, both are {self.input_dir}"
            )
