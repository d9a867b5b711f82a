"""Assemble named source tensors into per-component records.

Why: A Llama-style checkpoint stores each projection separately, but the engine
runs fused QKV and gate/up GEMVs. The assembler groups tensors by layer,
concatenates the fused projections, and runs the ternary codec on every linear
weight. Embeddings, norms and the output head pass through unquantized.

Reference naming convention (HuggingFace Llama):
    model.embed_tokens.weight, model.norm.weight, lm_head.weight | output.weight
    model.layers.{i}.self_attn.{q,k,v,o}_proj.weight
    model.layers.{i}.mlp.{gate,up,down}_proj.weight
    model.layers.{i}.input_layernorm.weight
    model.layers.{i}.post_attention_layernorm.weight
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping

import numpy as np

from tritpack.errors import MissingTensorError, TensorShapeError
from tritpack.models.records import (
    BitLinearRecord,
    EmbeddingRecord,
    ModelRecord,
    RmsNormRecord,
    TransformerBlockRecord,
)
from tritpack.quantization.packed_ternary import pack_ternary
from tritpack.quantization.ternary import quantize_ternary
from tritpack.quantization.tile_permute import permute_tiles

logger = logging.getLogger(__name__)

EMBEDDING_KEY = "model.embed_tokens.weight"
FINAL_NORM_KEY = "model.norm.weight"
LM_HEAD_KEYS = ("lm_head.weight", "output.weight")

LAYER_PREFIX = "model.layers.{index}."
LAYER_KEYS = {
    "q": "self_attn.q_proj.weight",
    "k": "self_attn.k_proj.weight",
    "v": "self_attn.v_proj.weight",
    "o": "self_attn.o_proj.weight",
    "gate": "mlp.gate_proj.weight",
    "up": "mlp.up_proj.weight",
    "down": "mlp.down_proj.weight",
    "attention_norm": "input_layernorm.weight",
    "ffn_norm": "post_attention_layernorm.weight",
}


def layer_key(index: int, role: str) -> str:
    """Full source tensor name for ``role`` in layer ``index``."""
    return LAYER_PREFIX.format(index=index) + LAYER_KEYS[role]


def quantize_linear(weight: np.ndarray, permute: bool = False) -> BitLinearRecord:
    """Run quantize -> (tile permutation) -> pack on one linear weight.

    Args:
        weight: Float tensor of shape (out_features, in_features)
        permute: Apply the 16x32 tile permutation before packing

    Returns:
        BitLinearRecord with packed words and row scales
    """
    codes, scales = quantize_ternary(weight)
    out_features, in_features = codes.shape
    if permute:
        codes = permute_tiles(codes, out_features, in_features).reshape(
            out_features, in_features
        )
    return BitLinearRecord(
        packed=pack_ternary(codes),
        scales=scales,
        in_features=in_features,
        tile_permuted=permute,
    )


def canonical_norm(weight: np.ndarray, name: str) -> np.ndarray:
    """Reshape a norm tensor of shape [1, N] or [N, 1] to [N].

    Raises:
        TensorShapeError: If the tensor is 2-D without a singleton dimension
    """
    weight = np.asarray(weight)
    if weight.ndim == 1:
        return weight
    if weight.ndim == 2 and 1 in weight.shape:
        return weight.reshape(-1)
    raise TensorShapeError(f"Norm tensor {name} has non-vector shape {weight.shape}")


class ModelAssembler:
    """Maps a named tensor collection to structured model records.

    Why: Checking every required name before building anything means a missing
    tensor aborts the run before any block has been produced, so a layer is never
    partially assembled and the converter never writes an incomplete model.
    """

    def __init__(
        self,
        tensors: Mapping[str, np.ndarray],
        num_layers: int,
        permute_tiles: bool = False,
    ) -> None:
        """Initialize assembler.

        Args:
            tensors: Source tensors by name
            num_layers: Expected number of transformer layers
            permute_tiles: Tile-permute quantized codes before packing

        Raises:
            ValueError: If num_layers is negative
        """
        if num_layers < 0:
            raise ValueError(f"num_layers must be non-negative, got {num_layers}")
        self.tensors = tensors
        self.num_layers = num_layers
        self.permute_tiles = permute_tiles

    def required_keys(self) -> list[str]:
        """Every required tensor name, top-level first, then layers in order.

        The output head is listed by its first accepted name.
        """
        keys = [EMBEDDING_KEY, FINAL_NORM_KEY, LM_HEAD_KEYS[0]]
        for index in range(self.num_layers):
            keys.extend(layer_key(index, role) for role in LAYER_KEYS)
        return keys

    def check_complete(self) -> None:
        """Raise MissingTensorError for the first absent required tensor."""
        for key in self.required_keys():
            if key == LM_HEAD_KEYS[0]:
                self._lm_head_key()
            elif key not in self.tensors:
                raise MissingTensorError(key)

    def _lm_head_key(self) -> str:
        for key in LM_HEAD_KEYS:
            if key in self.tensors:
                return key
        raise MissingTensorError(LM_HEAD_KEYS[0])

    def _get(self, key: str) -> np.ndarray:
        try:
            return np.asarray(self.tensors[key])
        except KeyError:
            raise MissingTensorError(key) from None

    def _fused(self, index: int, roles: tuple[str, ...]) -> np.ndarray:
        parts = [self._get(layer_key(index, role)) for role in roles]
        widths = {part.shape[-1] for part in parts}
        if any(part.ndim != 2 for part in parts) or len(widths) != 1:
            shapes = ", ".join(f"{role}={part.shape}" for role, part in zip(roles, parts))
            raise TensorShapeError(f"Cannot fuse {'/'.join(roles)} in layer {index}: {shapes}")
        return np.concatenate(parts, axis=0)

    def assemble_embedding(self) -> EmbeddingRecord:
        return EmbeddingRecord(weight=self._get(EMBEDDING_KEY))

    def assemble_norm(self) -> RmsNormRecord:
        return RmsNormRecord(weight=canonical_norm(self._get(FINAL_NORM_KEY), FINAL_NORM_KEY))

    def assemble_lm_head(self) -> EmbeddingRecord:
        key = self._lm_head_key()
        logger.debug("Using %s as output head", key)
        return EmbeddingRecord(weight=self._get(key))

    def assemble_block(self, index: int) -> TransformerBlockRecord:
        """Build the record for one transformer layer.

        Raises:
            MissingTensorError: If any of the layer's nine tensors is absent
            TensorShapeError: If fused projections disagree on width
        """
        if not 0 <= index < self.num_layers:
            raise IndexError(f"Layer index {index} out of range for {self.num_layers} layers")

        # Resolve every tensor first so a missing one fails before any quantization
        for role in LAYER_KEYS:
            self._get(layer_key(index, role))

        qkv = self._fused(index, ("q", "k", "v"))
        gate_up = self._fused(index, ("gate", "up"))
        logger.debug(
            "Layer %d: qkv %s, gate_up %s", index, qkv.shape, gate_up.shape
        )

        attention_norm_key = layer_key(index, "attention_norm")
        ffn_norm_key = layer_key(index, "ffn_norm")
        return TransformerBlockRecord(
            index=index,
            qkv=quantize_linear(qkv, self.permute_tiles),
            o=quantize_linear(self._get(layer_key(index, "o")), self.permute_tiles),
            gate_up=quantize_linear(gate_up, self.permute_tiles),
            down=quantize_linear(self._get(layer_key(index, "down")), self.permute_tiles),
            attention_norm=RmsNormRecord(
                weight=canonical_norm(self._get(attention_norm_key), attention_norm_key)
            ),
            ffn_norm=RmsNormRecord(weight=canonical_norm(self._get(ffn_norm_key), ffn_norm_key)),
        )

    def iter_blocks(self) -> Iterator[TransformerBlockRecord]:
        """Yield block records in layer order, one at a time."""
        for index in range(self.num_layers):
            yield self.assemble_block(index)

    def assemble(self) -> ModelRecord:
        """Build the complete model record.

        Raises:
            MissingTensorError: Naming the first missing required tensor
        """
        self.check_complete()
        return ModelRecord(
            embedding=self.assemble_embedding(),
            blocks=tuple(self.iter_blocks()),
            norm=self.assemble_norm(),
            lm_head=self.assemble_lm_head(),
        )
