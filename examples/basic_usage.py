"""Example usage of tritpack.

Builds a tiny random Llama-style checkpoint, converts it, and loads the packed
result back to show how much of each weight survives quantization.

Why: This example doubles as a smoke check that the codec, the assembler and the
per-component output work together without needing a real multi-gigabyte model.

Usage:
    python examples/basic_usage.py

Expected output:
    - Packed shapes of one block's fused projections
    - Reconstruction error of the dequantized QKV weight
    - The list of files written to the output directory
"""

import json
import tempfile
from pathlib import Path

import numpy as np
from safetensors.numpy import save_file

from tritpack import ConverterConfig, convert, dequantize_ternary, load_model, unpack_ternary

HIDDEN = 64
INTERMEDIATE = 176
VOCAB = 128
NUM_LAYERS = 2


def write_tiny_checkpoint(model_dir: Path) -> dict[str, np.ndarray]:
    """Write config.json and model.safetensors for a random two-layer model."""
    rng = np.random.default_rng(0)

    def weight(*shape: int) -> np.ndarray:
        return rng.normal(0.0, 0.02, size=shape).astype(np.float32)

    tensors = {
        "model.embed_tokens.weight": weight(VOCAB, HIDDEN),
        "model.norm.weight": np.ones(HIDDEN, dtype=np.float32),
        "lm_head.weight": weight(VOCAB, HIDDEN),
    }
    for i in range(NUM_LAYERS):
        prefix = f"model.layers.{i}."
        for name in ("q", "k", "v", "o"):
            tensors[f"{prefix}self_attn.{name}_proj.weight"] = weight(HIDDEN, HIDDEN)
        tensors[f"{prefix}mlp.gate_proj.weight"] = weight(INTERMEDIATE, HIDDEN)
        tensors[f"{prefix}mlp.up_proj.weight"] = weight(INTERMEDIATE, HIDDEN)
        tensors[f"{prefix}mlp.down_proj.weight"] = weight(HIDDEN, INTERMEDIATE)
        tensors[f"{prefix}input_layernorm.weight"] = np.ones(HIDDEN, dtype=np.float32)
        tensors[f"{prefix}post_attention_layernorm.weight"] = np.ones(HIDDEN, dtype=np.float32)

    model_dir.mkdir(parents=True)
    save_file(tensors, str(model_dir / "model.safetensors"))
    (model_dir / "config.json").write_text(json.dumps({"num_hidden_layers": NUM_LAYERS}))
    return tensors


def main() -> None:
    """Convert a tiny model and inspect the packed output."""
    print("=" * 60)
    print("tritpack - Example Usage")
    print("=" * 60)

    with tempfile.TemporaryDirectory() as tmpdir:
        model_dir = Path(tmpdir) / "model"
        tensors = write_tiny_checkpoint(model_dir)

        print("\n1. Converting...")
        summary = convert(ConverterConfig(input_dir=model_dir))
        print(f"   Wrote {len(summary.files)} files for {summary.num_layers} layers")

        print("\n2. Loading packed block 0...")
        block = load_model(summary.output_dir).blocks[0]
        for prefix, linear in block.linears().items():
            print(f"   {prefix}: packed {linear.packed.shape} from {linear.in_features} columns")

        print("\n3. Reconstruction of fused QKV:")
        qkv = np.concatenate(
            [tensors[f"model.layers.0.self_attn.{name}_proj.weight"] for name in "qkv"]
        )
        codes = unpack_ternary(block.qkv.packed, block.qkv.in_features)
        restored = dequantize_ternary(codes, block.qkv.scales)
        error = np.linalg.norm(restored - qkv) / np.linalg.norm(qkv)
        print(f"   Relative error: {error:.3f}")
        print(f"   Code histogram: {dict(zip(*np.unique(codes, return_counts=True)))}")

        print("\n4. Output directory:")
        for path in sorted(summary.output_dir.rglob("*")):
            if path.is_file():
                print(f"   {path.relative_to(summary.output_dir)}")

    print("\n" + "=" * 60)
    print("Example completed successfully!")
    print("=" * 60)


if __name__ == "__main__":
    main()
