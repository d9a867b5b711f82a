"""Packed ternary weight storage for the low-bit inference engine.

Why: Ternary values {-1, 0, +1} only need 1.58 bits, but the source checkpoint
stores 32 bits per weight. This module packs 16 ternary values per 32-bit word
(2-bit encoding), a 16x reduction that the engine unpacks with shifts and masks.

Encoding scheme:
    {-1, 0, +1} -> {1, 2, 3} (code + 2, 2 bits each)
    4 values per byte: (v0) | (v1 << 2) | (v2 << 4) | (v3 << 6)
    4 bytes per little-endian uint32 word, so value m of a word sits in bits 2m..2m+1

The raw field value 0 never encodes a weight. It only appears as padding when the
packed axis is not a multiple of 16, and unpacks to -2 before truncation.
"""

from __future__ import annotations

import numpy as np

VALUES_PER_BYTE = 4
BYTES_PER_WORD = 4
VALUES_PER_WORD = VALUES_PER_BYTE * BYTES_PER_WORD  # 16
CODE_OFFSET = 2

_FIELD_SHIFTS = np.arange(VALUES_PER_WORD, dtype=np.uint32) * 2


def packed_words_for(length: int) -> int:
    """Number of uint32 words needed for ``length`` ternary values."""
    if length < 0:
        raise ValueError(f"length must be non-negative, got {length}")
    return (length + VALUES_PER_WORD - 1) // VALUES_PER_WORD


def pack_ternary(codes: np.ndarray) -> np.ndarray:
    """Pack ternary codes {-1,0,+1} into uint32 words (16 values/word).

    Args:
        codes: Ternary tensor of shape (L,) or (out_features, in_features)

    Returns:
        packed: uint32 tensor of shape (ceil(L/16),) or
            (out_features, ceil(in_features/16)). Each row is padded independently.

    Why: Packing happens along the last axis so every row of a weight matrix
    starts on a word boundary, which is what the engine's row-wise GEMV expects.

    Raises:
        ValueError: If codes contain values other than {-1, 0, +1}
    """
    codes = np.asarray(codes)
    if codes.ndim not in (1, 2):
        raise ValueError(f"Expected a 1-D or 2-D code tensor, got shape {codes.shape}")

    # Validate input contains only ternary values
    valid_mask = (codes == -1) | (codes == 0) | (codes == 1)
    if not valid_mask.all():
        invalid_values = np.unique(codes[~valid_mask])
        raise ValueError(
            f"Codes must be ternary {{-1, 0, +1}}, but found values: {invalid_values.tolist()}"
        )

    length = codes.shape[-1]
    num_words = packed_words_for(length)

    # Encode: {-1, 0, +1} -> {1, 2, 3}
    encoded = (codes.astype(np.int16) + CODE_OFFSET).astype(np.uint32)

    # Pad the last axis to a multiple of 16 with raw field value 0
    padding_needed = num_words * VALUES_PER_WORD - length
    if padding_needed > 0:
        pad_width = [(0, 0)] * (encoded.ndim - 1) + [(0, padding_needed)]
        encoded = np.pad(encoded, pad_width, constant_values=0)

    # Reshape to groups of 16 and OR the shifted fields together
    encoded = encoded.reshape(*codes.shape[:-1], num_words, VALUES_PER_WORD)
    packed = np.bitwise_or.reduce(encoded << _FIELD_SHIFTS, axis=-1)

    return packed.astype(np.uint32, copy=False)


def unpack_ternary(packed: np.ndarray, length: int | None = None) -> np.ndarray:
    """Unpack uint32 words back to ternary codes.

    Args:
        packed: uint32 tensor of shape (W,) or (out_features, W) from pack_ternary
        length: Original size of the last axis (before padding). If None, all
            16*W fields are returned, padding included.

    Returns:
        codes: int8 tensor with the last axis of size ``length`` (or 16*W)

    Why: Used for verification after packing; quantize -> pack -> unpack must
    reproduce the quantized codes exactly.
    """
    packed = np.asarray(packed, dtype=np.uint32)
    num_fields = packed.shape[-1] * VALUES_PER_WORD
    if length is not None and not 0 <= length <= num_fields:
        raise ValueError(
            f"length must be in [0, {num_fields}] for {packed.shape[-1]} words, got {length}"
        )

    # Extract each of the 16 fields per word, least-significant first
    fields = (packed[..., None] >> _FIELD_SHIFTS) & np.uint32(0x03)  # (..., W, 16)
    fields = fields.reshape(*packed.shape[:-1], num_fields)

    # Decode: {1, 2, 3} -> {-1, 0, +1}
    codes = fields.astype(np.int8) - np.int8(CODE_OFFSET)

    if length is not None:
        codes = codes[..., :length]
    return codes
