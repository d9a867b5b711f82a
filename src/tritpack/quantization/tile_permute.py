"""Hardware-tile permutation for ternary code buffers.

Why: The inference engine's tensor-core kernel loads 16x32 tiles straight into the
registers of a warp-level matrix-multiply-accumulate. Reordering codes offline into
that register layout lets the kernel skip a shuffle. The mapping is a fixed
contract with the kernel, so it is reproduced bit-for-bit here.

For local position (i, j) in a 16x32 tile:

    thread_id = i*2 + j//16
    src_row   = (thread_id//16)*8 + thread_id%8
    src_col   = (j%16) + 16*((thread_id%16)//8)

and ``dst[i, j] = src[src_row, src_col]``. Positions that fall outside the
(n, k) matrix in either the source or the destination are not copied and keep
the default code 0.

The stage is opt-in: ConverterConfig.permute_tiles turns it on.
"""

from __future__ import annotations

import numpy as np

TILE_ROWS = 16
TILE_COLS = 32


def _local_source_map() -> tuple[np.ndarray, np.ndarray]:
    """Source (row, col) inside a tile for every destination (i, j)."""
    i = np.arange(TILE_ROWS)[:, None]
    j = np.arange(TILE_COLS)[None, :]
    thread_id = i * 2 + j // 16
    src_row = (thread_id // 16) * 8 + thread_id % 8
    src_col = (j % 16) + 16 * ((thread_id % 16) // 8)
    return src_row, src_col


_SRC_ROW, _SRC_COL = _local_source_map()


def _tile_indices(n: int, k: int) -> tuple[np.ndarray, np.ndarray]:
    """Flat (src, dst) index pairs of every in-bounds copy for an (n, k) matrix."""
    blocks_n = (n + TILE_ROWS - 1) // TILE_ROWS
    blocks_k = (k + TILE_COLS - 1) // TILE_COLS

    base_row = (np.arange(blocks_n) * TILE_ROWS)[:, None, None, None]
    base_col = (np.arange(blocks_k) * TILE_COLS)[None, :, None, None]
    local_i = np.arange(TILE_ROWS)[:, None]
    local_j = np.arange(TILE_COLS)[None, :]

    dst_row = np.broadcast_to(base_row + local_i, (blocks_n, blocks_k, TILE_ROWS, TILE_COLS))
    dst_col = np.broadcast_to(base_col + local_j, dst_row.shape)
    src_row = np.broadcast_to(base_row + _SRC_ROW, dst_row.shape)
    src_col = np.broadcast_to(base_col + _SRC_COL, dst_row.shape)

    in_bounds = (dst_row < n) & (dst_col < k) & (src_row < n) & (src_col < k)

    src = src_row[in_bounds] * k + src_col[in_bounds]
    dst = dst_row[in_bounds] * k + dst_col[in_bounds]
    return src, dst


def _as_flat(buffer: np.ndarray, n: int, k: int) -> np.ndarray:
    if n < 0 or k < 0:
        raise ValueError(f"Matrix dimensions must be non-negative, got ({n}, {k})")
    flat = np.asarray(buffer).reshape(-1)
    if flat.size != n * k:
        raise ValueError(f"Buffer has {flat.size} elements, expected {n}x{k}={n * k}")
    return flat


def permute_tiles(buffer: np.ndarray, n: int, k: int) -> np.ndarray:
    """Reorder an n x k code buffer into the 16x32 tile register layout.

    Args:
        buffer: Flat buffer of n*k codes (a 2-D (n, k) array is also accepted)
        n: Number of rows
        k: Number of columns

    Returns:
        Flat buffer of n*k codes, same dtype as the input

    Raises:
        ValueError: If the buffer size does not match n*k
    """
    flat = _as_flat(buffer, n, k)
    src, dst = _tile_indices(n, k)
    out = np.zeros_like(flat)
    out[dst] = flat[src]
    return out


def unpermute_tiles(buffer: np.ndarray, n: int, k: int) -> np.ndarray:
    """Invert permute_tiles.

    Exact whenever n is a multiple of 16 and k a multiple of 32. On ragged
    edges, codes dropped by the forward pass come back as 0.
    """
    flat = _as_flat(buffer, n, k)
    src, dst = _tile_indices(n, k)
    out = np.zeros_like(flat)
    out[src] = flat[dst]
    return out
