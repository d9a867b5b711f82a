"""BitNet 1.58-bit ternary quantization, tile permutation and 2-bit packing."""

from tritpack.quantization.packed_ternary import (
    pack_ternary,
    packed_words_for,
    unpack_ternary,
)
from tritpack.quantization.ternary import dequantize_ternary, quantize_ternary
from tritpack.quantization.tile_permute import permute_tiles, unpermute_tiles

__all__ = [
    "dequantize_ternary",
    "pack_ternary",
    "packed_words_for",
    "permute_tiles",
    "quantize_ternary",
    "unpack_ternary",
    "unpermute_tiles",
]
