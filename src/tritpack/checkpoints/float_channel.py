"""Integer-as-float channel for packed weights.

Why: The engine's weight loader only accepts floating-point tensors, but packed
ternary words are meaningful only as raw 32-bit integers. Each word's bits are
reinterpreted as an IEEE-754 float32 bit pattern (a view, not a numeric cast)
before persistence and reinterpreted back on load.

The round trip must be bit-exact for every 32-bit pattern, including NaN payloads
and subnormals. numpy views never touch the bits, and safetensors writes the raw
little-endian buffer, so neither NaN canonicalization nor flush-to-zero can occur.
Nothing in this channel may perform arithmetic on the float view.
"""

from __future__ import annotations

import numpy as np


def words_to_floats(words: np.ndarray) -> np.ndarray:
    """Reinterpret uint32 words as float32 without changing any bits.

    Raises:
        ValueError: If words is not an unsigned 32-bit integer tensor
    """
    words = np.asarray(words)
    if words.dtype != np.uint32:
        raise ValueError(f"Expected uint32 words, got dtype {words.dtype}")
    return np.ascontiguousarray(words).view(np.float32)


def floats_to_words(values: np.ndarray) -> np.ndarray:
    """Reinterpret float32 bit patterns back to uint32 words.

    Raises:
        ValueError: If values is not a float32 tensor
    """
    values = np.asarray(values)
    if values.dtype != np.float32:
        raise ValueError(f"Expected float32 values, got dtype {values.dtype}")
    return np.ascontiguousarray(values).view(np.uint32)
