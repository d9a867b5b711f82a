"""Convert a float32 Llama-style checkpoint into tritpack's packed ternary format.

Usage:
    tritpack-convert [--input-dir model] [--output-dir model-tritpack] [--permute-tiles]

Exit status is 0 on success and 1 on any fatal error. Fatal errors are printed to
stderr and recorded in the conversion log. Invalid options, such as an output
directory equal to the input, are reported on stderr only: the log file lives in
the output directory, which is not known to be usable until the options are valid,
so nothing is written for them.
"""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from tritpack.checkpoints.formats import (
    BLOCKS_DIR,
    EMBEDDING_FILE,
    LM_HEAD_FILE,
    MANIFEST_FILE,
    NORM_FILE,
    block_filename,
    save_block,
    save_embedding,
    save_norm,
    write_manifest,
)
from tritpack.checkpoints.source import (
    load_source_tensors,
    num_layers_from_config,
    read_model_config,
)
from tritpack.core.config import DEFAULT_INPUT_DIR, ConverterConfig
from tritpack.errors import ConversionError
from tritpack.models.assembler import ModelAssembler
from tritpack.utils.log_setup import close_logging, configure_logging

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConversionSummary:
    """What a successful run produced."""

    output_dir: Path
    num_layers: int
    files: tuple[Path, ...]


def _discard_partial_output(written: list[Path], blocks_dir: Path, blocks_dir_existed: bool) -> None:
    """Remove the files a failed run wrote so it leaves no half-written model.

    Only paths this run started writing are removed, so a failure before the
    first write leaves an earlier conversion in the same directory intact. The
    conversion log is kept so the failure stays diagnosable.
    """
    for path in written:
        path.unlink(missing_ok=True)
    if not blocks_dir_existed and blocks_dir.is_dir() and not any(blocks_dir.iterdir()):
        blocks_dir.rmdir()


def _convert(config: ConverterConfig, written: list[Path]) -> ConversionSummary:
    output_dir = config.output_dir
    assert output_dir is not None  # resolved by ConverterConfig

    logger.info("Reading model configuration from %s", config.input_dir)
    num_layers = num_layers_from_config(read_model_config(config.input_dir))
    logger.info("Model has %d layers", num_layers)

    tensors = load_source_tensors(config.input_dir)
    assembler = ModelAssembler(tensors, num_layers, permute_tiles=config.permute_tiles)
    assembler.check_complete()
    if config.permute_tiles:
        logger.info("Tile permutation enabled")

    def target(name: str) -> Path:
        # Recorded before writing so a half-written file is removed on failure
        path = output_dir / name
        written.append(path)
        return path

    save_embedding(assembler.assemble_embedding(), target(EMBEDDING_FILE))
    save_norm(assembler.assemble_norm(), target(NORM_FILE))
    save_embedding(assembler.assemble_lm_head(), target(LM_HEAD_FILE), component="lm_head")
    for block in assembler.iter_blocks():
        save_block(block, target(block_filename(block.index)))
        logger.info("Wrote block %d/%d", block.index + 1, num_layers)

    written.append(output_dir / MANIFEST_FILE)
    write_manifest(output_dir, num_layers, permute_tiles=config.permute_tiles)
    return ConversionSummary(output_dir=output_dir, num_layers=num_layers, files=tuple(written))


def convert(config: ConverterConfig) -> ConversionSummary:
    """Run one full conversion.

    Args:
        config: Resolved conversion options

    Returns:
        ConversionSummary listing the written files

    Why: Any failure inside the run, whether a missing tensor, a malformed config,
    an unreadable shard or an unwritable output path, is fatal. It is logged with
    its traceback and re-raised as a single ConversionError so callers see one
    readable message instead of an internal crash.

    Raises:
        ConversionError: Wrapping the original exception as ``__cause__``
    """
    output_dir = config.output_dir
    assert output_dir is not None
    logger.info("Converting %s -> %s", config.input_dir, output_dir)

    written: list[Path] = []
    blocks_dir = output_dir / BLOCKS_DIR
    blocks_dir_existed = blocks_dir.exists()
    try:
        summary = _convert(config, written)
    except Exception as exc:
        logger.exception("Conversion failed: %s", exc)
        _discard_partial_output(written, blocks_dir, blocks_dir_existed)
        raise ConversionError(f"Conversion of {config.input_dir} failed: {exc}") from exc

    logger.info("Wrote %d files to %s", len(summary.files), summary.output_dir)
    return summary


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="tritpack-convert",
        description="Convert a float32 checkpoint into packed ternary weights",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        "--input-dir",
        type=Path,
        default=DEFAULT_INPUT_DIR,
        help="Directory containing config.json and model.safetensors",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=None,
        help="Output directory (default: <input-dir>-tritpack)",
    )
    parser.add_argument(
        "--permute-tiles",
        action="store_true",
        help="Reorder codes into the 16x32 tensor-core tile layout before packing",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Print progress to stderr",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)

    try:
        config = ConverterConfig(
            input_dir=args.input_dir,
            output_dir=args.output_dir,
            permute_tiles=args.permute_tiles,
            verbose=args.verbose,
        )
    except ValueError as exc:
        print(f"tritpack-convert: {exc}", file=sys.stderr)
        return 1

    try:
        configure_logging(config.log_file, verbose=config.verbose)
    except OSError as exc:
        print(f"tritpack-convert: cannot open log file: {exc}", file=sys.stderr)
        return 1

    try:
        summary = convert(config)
    except ConversionError as exc:
        print(f"tritpack-convert: {exc}", file=sys.stderr)
        return 1
    finally:
        close_logging()

    print(f"Converted {summary.num_layers} layers into {summary.output_dir}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
