"""Per-component safetensors output for converted models.

Why: The engine loads each structural component (embedding, final norm, output
head, every transformer block) from its own file, so components can be read
independently and in parallel without the whole model resident in memory.

Layout of an output directory:
    manifest.json
    embedding.safetensors      weight
    norm.safetensors           weight
    lm_head.safetensors        weight
    blocks/block_0000.safetensors
        attention.qkv.weight / .scale, attention.o.weight / .scale,
        feed_forward.gate_up.weight / .scale, feed_forward.down.weight / .scale,
        attention_norm.weight, ffn_norm.weight

Every ``*.weight`` of a BitLinear holds packed uint32 words pushed through the
integer-as-float channel; ``*.scale`` holds ordinary float32 row scales. The
unpacked width and tile-permutation flag of each BitLinear live in the string
metadata, since safetensors requires str values there.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import numpy as np
import safetensors.numpy as st
from safetensors import safe_open

from tritpack.checkpoints.float_channel import floats_to_words, words_to_floats
from tritpack.models.records import (
    BitLinearRecord,
    EmbeddingRecord,
    ModelRecord,
    RmsNormRecord,
    TransformerBlockRecord,
)

FORMAT_NAME = "tritpack-ternary"
FORMAT_VERSION = "1"

EMBEDDING_FILE = "embedding.safetensors"
NORM_FILE = "norm.safetensors"
LM_HEAD_FILE = "lm_head.safetensors"
BLOCKS_DIR = "blocks"
MANIFEST_FILE = "manifest.json"


def block_filename(index: int) -> str:
    return f"{BLOCKS_DIR}/block_{index:04d}.safetensors"


def _base_metadata(component: str) -> dict[str, str]:
    return {
        "format": FORMAT_NAME,
        "format_version": FORMAT_VERSION,
        "component": component,
    }


def _save(tensors: dict[str, np.ndarray], path: Path, metadata: dict[str, str]) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    st.save_file(
        {name: np.ascontiguousarray(value) for name, value in tensors.items()},
        str(path),
        metadata=metadata,
    )
    return path


def _load(path: Path) -> tuple[dict[str, np.ndarray], dict[str, str]]:
    """Load tensors and string metadata, checking the format marker.

    Raises:
        FileNotFoundError: If path does not exist
        ValueError: If the file was not written by this format
    """
    if not path.exists():
        raise FileNotFoundError(f"Component file not found: {path}")

    with safe_open(str(path), framework="np") as f:
        metadata = f.metadata() or {}
        tensors = {name: f.get_tensor(name) for name in f.keys()}

    if metadata.get("format") != FORMAT_NAME:
        raise ValueError(f"{path} is not a {FORMAT_NAME} component file")
    if metadata.get("format_version") != FORMAT_VERSION:
        raise ValueError(
            f"Unsupported format version: {metadata.get('format_version')}. "
            f"Expected: {FORMAT_VERSION}"
        )
    return tensors, metadata


# ============================================================================
# Writers
# ============================================================================


def save_embedding(record: EmbeddingRecord, path: str | Path, component: str = "embedding") -> Path:
    """Save an embedding or output-head matrix as plain float32."""
    return _save(
        {"weight": record.weight.astype(np.float32, copy=False)},
        Path(path),
        _base_metadata(component),
    )


def save_norm(record: RmsNormRecord, path: str | Path) -> Path:
    """Save the final norm vector as plain float32."""
    return _save(
        {"weight": record.weight.astype(np.float32, copy=False)},
        Path(path),
        _base_metadata("norm"),
    )


def save_block(record: TransformerBlockRecord, path: str | Path) -> Path:
    """Save one transformer block.

    Args:
        record: Assembled block
        path: Output .safetensors file path

    Returns:
        Path to saved file
    """
    tensors: dict[str, np.ndarray] = {}
    metadata = _base_metadata("block")
    metadata["index"] = str(record.index)

    for prefix, linear in record.linears().items():
        tensors[f"{prefix}.weight"] = words_to_floats(linear.packed)
        tensors[f"{prefix}.scale"] = linear.scales.astype(np.float32, copy=False)
        metadata[f"{prefix}.in_features"] = str(linear.in_features)
        metadata[f"{prefix}.tile_permuted"] = str(int(linear.tile_permuted))

    for prefix, norm in record.norms().items():
        tensors[f"{prefix}.weight"] = norm.weight.astype(np.float32, copy=False)

    return _save(tensors, Path(path), metadata)


def write_manifest(output_dir: str | Path, num_layers: int, **extra: Any) -> Path:
    """Write manifest.json listing every component file."""
    path = Path(output_dir) / MANIFEST_FILE
    manifest = {
        "format": FORMAT_NAME,
        "format_version": FORMAT_VERSION,
        "num_layers": num_layers,
        "embedding": EMBEDDING_FILE,
        "norm": NORM_FILE,
        "lm_head": LM_HEAD_FILE,
        "blocks": [block_filename(index) for index in range(num_layers)],
        **extra,
    }
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(manifest, indent=2) + "\n", encoding="utf-8")
    return path


def save_model(record: ModelRecord, output_dir: str | Path) -> Path:
    """Save every component of an assembled model plus its manifest.

    Returns:
        Path to the output directory
    """
    output_dir = Path(output_dir)
    save_embedding(record.embedding, output_dir / EMBEDDING_FILE)
    save_norm(record.norm, output_dir / NORM_FILE)
    save_embedding(record.lm_head, output_dir / LM_HEAD_FILE, component="lm_head")
    for block in record.blocks:
        save_block(block, output_dir / block_filename(block.index))
    write_manifest(output_dir, record.num_layers)
    return output_dir


# ============================================================================
# Loaders
# ============================================================================


def load_embedding(path: str | Path) -> EmbeddingRecord:
    tensors, _ = _load(Path(path))
    return EmbeddingRecord(weight=tensors["weight"])


def load_norm(path: str | Path) -> RmsNormRecord:
    tensors, _ = _load(Path(path))
    return RmsNormRecord(weight=tensors["weight"])


def load_block(path: str | Path) -> TransformerBlockRecord:
    """Load one transformer block, reversing the integer-as-float channel.

    Raises:
        FileNotFoundError: If path does not exist
        ValueError: If the file is not a block component
    """
    path = Path(path)
    tensors, metadata = _load(path)
    if metadata.get("component") != "block":
        raise ValueError(f"{path} holds component {metadata.get('component')!r}, not a block")

    def linear(prefix: str) -> BitLinearRecord:
        return BitLinearRecord(
            packed=floats_to_words(tensors[f"{prefix}.weight"]),
            scales=tensors[f"{prefix}.scale"],
            in_features=int(metadata[f"{prefix}.in_features"]),
            tile_permuted=metadata.get(f"{prefix}.tile_permuted", "0") == "1",
        )

    return TransformerBlockRecord(
        index=int(metadata["index"]),
        qkv=linear("attention.qkv"),
        o=linear("attention.o"),
        gate_up=linear("feed_forward.gate_up"),
        down=linear("feed_forward.down"),
        attention_norm=RmsNormRecord(weight=tensors["attention_norm.weight"]),
        ffn_norm=RmsNormRecord(weight=tensors["ffn_norm.weight"]),
    )


def load_model(output_dir: str | Path) -> ModelRecord:
    """Load a converted model directory back into records.

    Raises:
        FileNotFoundError: If the manifest or a component file is missing
        ValueError: If the manifest format is not recognized
    """
    output_dir = Path(output_dir)
    manifest_path = output_dir / MANIFEST_FILE
    if not manifest_path.exists():
        raise FileNotFoundError(f"No {MANIFEST_FILE} in {output_dir}")

    manifest = json.loads(manifest_path.read_text(encoding="utf-8"))
    if manifest.get("format") != FORMAT_NAME:
        raise ValueError(f"{manifest_path} is not a {FORMAT_NAME} manifest")

    return ModelRecord(
        embedding=load_embedding(output_dir / manifest["embedding"]),
        blocks=tuple(load_block(output_dir / name) for name in manifest["blocks"]),
        norm=load_norm(output_dir / manifest["norm"]),
        lm_head=load_embedding(output_dir / manifest["lm_head"]),
    )
