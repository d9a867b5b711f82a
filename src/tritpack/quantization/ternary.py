"""
BitNet 1.58-bit ternary quantization with per-row absmean scaling.

Implements the weight quantizer from "The Era of 1-bit LLMs: All Large Language Models
are in 1.58 Bits": every row is divided by its mean absolute value and rounded to the
nearest value in {-1, 0, 1}.
"""

from __future__ import annotations

import numpy as np


def quantize_ternary(weights: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """Quantize a weight matrix to ternary codes with one scale per row.

    Args:
        weights: Float tensor of shape (out_features, in_features)

    Returns:
        codes: int8 tensor of shape (out_features, in_features) with values in {-1, 0, 1}
        scales: float32 tensor of shape (out_features,), mean |w| of each row

    Why: Per-row scaling follows the BitNet b1.58 recipe and keeps the inference
    engine's dequantization a single multiply per output channel. Rows are
    independent, so a row of all zeros cannot poison its neighbours.

    Rounding: ``np.rint`` rounds half to even, so a normalized value of exactly
    +-0.5 becomes 0 while +-1.0 (after clipping) stays +-1. The result does not
    depend on platform rounding modes.

    Zero rows: the scale is 0.0 and the row divides by 1.0 instead, producing
    all-zero codes rather than NaN. A matrix with no columns counts as all-zero
    rows.

    Raises:
        ValueError: If weights is not 2-D or contains inf or NaN
    """
    weights = np.asarray(weights, dtype=np.float32)
    if weights.ndim != 2:
        raise ValueError(f"Expected a 2-D weight matrix, got shape {weights.shape}")
    if not np.isfinite(weights).all():
        raise ValueError("Weights must be finite, found inf or NaN")

    out_features, in_features = weights.shape
    if in_features == 0:
        scales = np.zeros(out_features, dtype=np.float32)
    else:
        scales = np.abs(weights).mean(axis=1, dtype=np.float32)  # (out_features,)

    # Guard the divide-by-zero case for all-zero rows
    divisor = np.where(scales == 0, np.float32(1.0), scales)[:, None]

    normalized = np.clip(weights / divisor, -1.0, 1.0)
    codes = np.rint(normalized).astype(np.int8)

    return codes, scales.astype(np.float32, copy=False)


def dequantize_ternary(codes: np.ndarray, scales: np.ndarray) -> np.ndarray:
    """Reconstruct approximate float weights from codes and row scales.

    Args:
        codes: Ternary tensor of shape (out_features, in_features)
        scales: Row scales of shape (out_features,)

    Returns:
        float32 tensor of shape (out_features, in_features)
    """
    codes = np.asarray(codes)
    scales = np.asarray(scales, dtype=np.float32)
    if scales.shape != (codes.shape[0],):
        raise ValueError(
            f"Expected {codes.shape[0]} row scales, got shape {scales.shape}"
        )
    return codes.astype(np.float32) * scales[:, None]
