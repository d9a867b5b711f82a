"""Source checkpoint reading: safetensors weights and config.json.

Why: The converter needs the whole tensor collection in memory before assembly.
Only float32 matrices and vectors are meaningful input; anything else (bf16
shards, rank-0 counters, rank-3 buffers) is skipped with a warning rather than
failing the run, because checkpoints routinely carry extra tensors the engine
does not use.
"""

from __future__ import annotations

import json
import logging
import struct
from pathlib import Path
from typing import Any

import numpy as np
from safetensors import safe_open

from tritpack.errors import ConfigError

logger = logging.getLogger(__name__)

SINGLE_FILE = "model.safetensors"
INDEX_FILE = "model.safetensors.index.json"
CONFIG_FILE = "config.json"

SUPPORTED_DTYPE = "F32"
SUPPORTED_RANKS = (1, 2)
LAYER_COUNT_FIELDS = ("num_hidden_layers", "n_layers")


def find_weight_files(model_dir: str | Path) -> list[Path]:
    """List the safetensors files of a model directory.

    Returns:
        [model.safetensors] for a single-file model, or the shards named in
        model.safetensors.index.json in sorted order

    Raises:
        FileNotFoundError: If neither layout is present
    """
    model_dir = Path(model_dir)
    single_path = model_dir / SINGLE_FILE
    index_path = model_dir / INDEX_FILE

    if single_path.exists():
        return [single_path]

    if index_path.exists():
        with open(index_path, encoding="utf-8") as f:
            index = json.load(f)
        weight_map = index.get("weight_map", {})
        return [model_dir / name for name in sorted(set(weight_map.values()))]

    raise FileNotFoundError(f"No {SINGLE_FILE} or {INDEX_FILE} found in {model_dir}")


def read_header(path: str | Path) -> dict[str, dict[str, Any]]:
    """Parse a safetensors header into name -> {"dtype", "shape", ...}.

    Why: Dtype and shape are checked before any tensor is materialized, so
    formats numpy cannot represent (bf16) are skipped instead of failing.
    """
    with open(path, "rb") as f:
        header_size = struct.unpack("<Q", f.read(8))[0]
        header = json.loads(f.read(header_size))
    header.pop("__metadata__", None)
    return header


def load_source_tensors(model_dir: str | Path) -> dict[str, np.ndarray]:
    """Materialize every supported tensor of a model directory.

    Args:
        model_dir: Directory holding model.safetensors or a sharded index

    Returns:
        Tensor name -> float32 ndarray, for F32 tensors of rank 1 or 2

    Raises:
        FileNotFoundError: If a weight file is missing
    """
    tensors: dict[str, np.ndarray] = {}
    skipped = 0

    for path in find_weight_files(model_dir):
        if not path.exists():
            raise FileNotFoundError(f"Weight shard not found: {path}")
        logger.info("Reading tensors from %s", path)
        header = read_header(path)
        with safe_open(str(path), framework="np") as f:
            for name in f.keys():
                dtype = header[name]["dtype"]
                shape = header[name]["shape"]
                if dtype != SUPPORTED_DTYPE:
                    logger.warning("Skipping %s: unsupported dtype %s", name, dtype)
                    skipped += 1
                    continue
                if len(shape) not in SUPPORTED_RANKS:
                    logger.warning("Skipping %s: unsupported rank %d", name, len(shape))
                    skipped += 1
                    continue
                tensors[name] = f.get_tensor(name)

    logger.info("Loaded %d tensors (%d skipped)", len(tensors), skipped)
    return tensors


def read_model_config(model_dir: str | Path) -> dict[str, Any]:
    """Parse config.json from a model directory.

    Raises:
        FileNotFoundError: If config.json is missing
        ConfigError: If it is not a JSON object
    """
    config_path = Path(model_dir) / CONFIG_FILE
    if not config_path.exists():
        raise FileNotFoundError(f"Model config not found: {config_path}")

    try:
        config = json.loads(config_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in {config_path}: {e}") from e

    if not isinstance(config, dict):
        raise ConfigError(f"Expected a JSON object in {config_path}")
    return config


def num_layers_from_config(config: dict[str, Any]) -> int:
    """Extract the transformer layer count.

    Raises:
        ConfigError: If no layer-count field is present, or it is not a
            non-negative integer
    """
    for field_name in LAYER_COUNT_FIELDS:
        if field_name in config:
            value = config[field_name]
            # bool is an int subclass; reject it explicitly
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise ConfigError(
                    f"{field_name} must be a non-negative integer, got {value!r}"
                )
            return value
    raise ConfigError(
        f"Config has no layer count (expected one of: {', '.join(LAYER_COUNT_FIELDS)})"
    )
