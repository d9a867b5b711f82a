"""Structured records produced by the model assembler.

Why: The engine loads weights per structural component (embedding, each block,
final norm, output head). Mirroring that structure in frozen dataclasses keeps the
persistence layer a straight mapping from record fields to tensor names, and the
records cannot be mutated after assembly.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from tritpack.quantization.packed_ternary import packed_words_for


@dataclass(frozen=True)
class BitLinearRecord:
    """Packed ternary weights and row scales for one linear layer.

    Attributes:
        packed: uint32 tensor of shape (out_features, ceil(in_features/16))
        scales: float32 tensor of shape (out_features,)
        in_features: Unpacked row length, needed to strip padding on unpack
        tile_permuted: Whether codes were tile-permuted before packing
    """

    packed: np.ndarray
    scales: np.ndarray
    in_features: int
    tile_permuted: bool = False

    def __post_init__(self) -> None:
        if self.packed.ndim != 2:
            raise ValueError(f"packed must be 2-D, got shape {self.packed.shape}")
        if self.scales.shape != (self.packed.shape[0],):
            raise ValueError(
                f"Expected {self.packed.shape[0]} row scales, got shape {self.scales.shape}"
            )
        if self.packed.shape[1] != packed_words_for(self.in_features):
            raise ValueError(
                f"{self.packed.shape[1]} words per row cannot hold "
                f"in_features={self.in_features}"
            )

    @property
    def out_features(self) -> int:
        return int(self.packed.shape[0])


@dataclass(frozen=True)
class RmsNormRecord:
    """RMSNorm weight vector, stored unquantized."""

    weight: np.ndarray


@dataclass(frozen=True)
class EmbeddingRecord:
    """Embedding or output-head matrix, stored unquantized."""

    weight: np.ndarray


@dataclass(frozen=True)
class TransformerBlockRecord:
    """All weights of one transformer block.

    Attributes:
        index: Source layer index
        qkv: Fused query/key/value projection
        o: Attention output projection
        gate_up: Fused gate/up projection
        down: Feed-forward down projection
        attention_norm: Norm applied before attention
        ffn_norm: Norm applied before the feed-forward
    """

    index: int
    qkv: BitLinearRecord
    o: BitLinearRecord
    gate_up: BitLinearRecord
    down: BitLinearRecord
    attention_norm: RmsNormRecord
    ffn_norm: RmsNormRecord

    def linears(self) -> dict[str, BitLinearRecord]:
        """BitLinear records keyed by their tensor-name prefix."""
        return {
            "attention.qkv": self.qkv,
            "attention.o": self.o,
            "feed_forward.gate_up": self.gate_up,
            "feed_forward.down": self.down,
        }

    def norms(self) -> dict[str, RmsNormRecord]:
        """Norm records keyed by their tensor-name prefix."""
        return {
            "attention_norm": self.attention_norm,
            "ffn_norm": self.ffn_norm,
        }


@dataclass(frozen=True)
class ModelRecord:
    """Complete converted model, blocks in source layer order."""

    embedding: EmbeddingRecord
    blocks: tuple[TransformerBlockRecord, ...]
    norm: RmsNormRecord
    lm_head: EmbeddingRecord

    @property
    def num_layers(self) -> int:
        return len(self.blocks)
