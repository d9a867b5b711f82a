"""Pytest configuration and shared fixtures.

Why: Provides shared test infrastructure for the tritpack test suite. Most tests
need either a named tensor collection shaped like a tiny Llama checkpoint or an
on-disk model directory built from one, so both live here.
"""

from __future__ import annotations

import json
import tempfile
from collections.abc import Callable
from pathlib import Path

import numpy as np
import pytest
from safetensors.numpy import save_file

HIDDEN = 24  # not a multiple of 16, so packing pads every row
KV_DIM = 8
INTERMEDIATE = 40
VOCAB = 20


def make_source_tensors(
    num_layers: int,
    seed: int = 0,
    lm_head_key: str = "lm_head.weight",
) -> dict[str, np.ndarray]:
    """Build a complete tensor set for a tiny Llama-style model."""
    rng = np.random.default_rng(seed)

    def weight(*shape: int) -> np.ndarray:
        return rng.uniform(-1.0, 1.0, size=shape).astype(np.float32)

    tensors = {
        "model.embed_tokens.weight": weight(VOCAB, HIDDEN),
        "model.norm.weight": weight(HIDDEN),
        lm_head_key: weight(VOCAB, HIDDEN),
    }
    for i in range(num_layers):
        prefix = f"model.layers.{i}."
        tensors[prefix + "self_attn.q_proj.weight"] = weight(HIDDEN, HIDDEN)
        tensors[prefix + "self_attn.k_proj.weight"] = weight(KV_DIM, HIDDEN)
        tensors[prefix + "self_attn.v_proj.weight"] = weight(KV_DIM, HIDDEN)
        tensors[prefix + "self_attn.o_proj.weight"] = weight(HIDDEN, HIDDEN)
        tensors[prefix + "mlp.gate_proj.weight"] = weight(INTERMEDIATE, HIDDEN)
        tensors[prefix + "mlp.up_proj.weight"] = weight(INTERMEDIATE, HIDDEN)
        tensors[prefix + "mlp.down_proj.weight"] = weight(HIDDEN, INTERMEDIATE)
        tensors[prefix + "input_layernorm.weight"] = weight(HIDDEN)
        tensors[prefix + "post_attention_layernorm.weight"] = weight(HIDDEN)
    return tensors


def write_model_dir(
    path: Path,
    tensors: dict[str, np.ndarray],
    config: dict | None = None,
) -> Path:
    """Write config.json and model.safetensors into ``path``."""
    path.mkdir(parents=True, exist_ok=True)
    save_file(tensors, str(path / "model.safetensors"))
    if config is not None:
        (path / "config.json").write_text(json.dumps(config), encoding="utf-8")
    return path


@pytest.fixture
def temp_dir():
    """Create a temporary directory for file-based tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def rng() -> np.random.Generator:
    """Seeded random generator for reproducible inputs."""
    return np.random.default_rng(42)


@pytest.fixture
def source_tensors() -> dict[str, np.ndarray]:
    """Complete two-layer tensor set."""
    return make_source_tensors(num_layers=2)


@pytest.fixture
def model_dir(temp_dir: Path) -> Callable[..., Path]:
    """Factory writing a tiny model directory under the temp dir."""

    def _make(
        num_layers: int = 2,
        tensors: dict[str, np.ndarray] | None = None,
        config: dict | None = None,
        name: str = "model",
    ) -> Path:
        if tensors is None:
            tensors = make_source_tensors(num_layers)
        if config is None:
            config = {"num_hidden_layers": num_layers, "hidden_size": HIDDEN}
        return write_model_dir(temp_dir / name, tensors, config)

    return _make


@pytest.fixture
def tensor_factory() -> Callable[..., dict[str, np.ndarray]]:
    """Factory for complete tensor sets with a chosen layer count."""
    return make_source_tensors
