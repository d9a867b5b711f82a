"""Unit tests for packed ternary weight storage.

Why: The packed layout is a fixed contract with the inference engine. These tests ensure:
1. Pack/unpack round-trip preserves exact ternary values (lossless) for every length
2. The bit layout is code+2 in 2-bit fields, first value in the least-significant bits
3. Packing L values yields exactly ceil(L/16) words, padding with raw field value 0
4. Rows of a matrix are packed independently
5. Non-ternary input is rejected

Testing strategy: Hand-computed words pin the bit layout; random sequences across a
range of lengths (including 0 and non-multiples of 16) check the round trip.
"""

import numpy as np
import pytest

from tritpack.quantization.packed_ternary import (
    pack_ternary,
    packed_words_for,
    unpack_ternary,
)
from tritpack.quantization.ternary import quantize_ternary


class TestPackUnpack:
    """Test suite for pack_ternary and unpack_ternary functions."""

    def test_pack_basic(self) -> None:
        """Test packing of 16 values into a single word.

        Why: Verifies the core encoding: {-1, 0, +1} -> {1, 2, 3}, 2 bits each,
        value m in bits 2m..2m+1.
        """
        codes = np.array([-1, 0, 1, 0] + [0] * 12, dtype=np.int8)

        packed = pack_ternary(codes)

        # fields 1, 2, 3, 2 then twelve 2s: 0b...10_10_11_10_01
        expected = 1 | (2 << 2) | (3 << 4) | (2 << 6)
        for m in range(4, 16):
            expected |= 2 << (2 * m)
        assert packed.dtype == np.uint32
        assert packed.shape == (1,)
        assert int(packed[0]) == expected

    def test_pack_little_endian_bytes(self) -> None:
        """Test that the word equals four little-endian bytes of 4 codes each.

        Why: The engine may read the buffer bytewise; byte b must hold codes 4b..4b+3.
        """
        codes = np.array([1, 1, 1, 1, -1, -1, -1, -1, 0, 0, 0, 0, 1, 0, -1, 0], dtype=np.int8)

        packed = pack_ternary(codes)

        byte_values = list(packed.astype("<u4").tobytes())
        assert byte_values == [0xFF, 0x55, 0xAA, 0b10_01_10_11]

    def test_pack_with_padding(self) -> None:
        """Test padding when the length is not a multiple of 16.

        Why: Padding fields must be raw 0, so they unpack to -2 and are truncated.
        """
        codes = np.array([1, -1, 0], dtype=np.int8)

        packed = pack_ternary(codes)

        assert packed.shape == (1,)
        assert int(packed[0]) == 3 | (1 << 2) | (2 << 4)
        full = unpack_ternary(packed)
        np.testing.assert_array_equal(full[:3], codes)
        np.testing.assert_array_equal(full[3:], np.full(13, -2, dtype=np.int8))

    @pytest.mark.parametrize("length", [0, 1, 15, 16, 17, 31, 32, 33, 100, 2048])
    def test_packing_width(self, length: int) -> None:
        """Test that packing L values yields exactly ceil(L/16) words."""
        codes = np.zeros(length, dtype=np.int8)

        packed = pack_ternary(codes)

        assert packed.shape == (-(-length // 16),)
        assert packed_words_for(length) == packed.shape[0]

    @pytest.mark.parametrize("length", [0, 1, 5, 15, 16, 17, 47, 64, 255, 1000])
    def test_roundtrip_all_lengths(self, length: int) -> None:
        """Test that unpack(pack(codes))[:L] == codes for every L.

        Why: Critical test - packing must be lossless. Any deviation indicates an
        encoding/decoding bug.
        """
        rng = np.random.default_rng(length)
        codes = rng.integers(-1, 2, size=length).astype(np.int8)

        unpacked = unpack_ternary(pack_ternary(codes), length)

        np.testing.assert_array_equal(unpacked, codes)

    def test_pack_rows_independently(self) -> None:
        """Test packing of a matrix pads each row on its own.

        Why: Every row must start on a word boundary for the engine's row GEMV.
        """
        codes = np.array(
            [
                [1] * 17,
                [-1] * 17,
            ],
            dtype=np.int8,
        )

        packed = pack_ternary(codes)

        assert packed.shape == (2, 2)
        assert int(packed[0, 1]) == 3  # 17th value of row 0, rest padding
        assert int(packed[1, 1]) == 1
        np.testing.assert_array_equal(unpack_ternary(packed, 17), codes)

    def test_matrix_roundtrip_various_sizes(self) -> None:
        """Test round-trip with various matrix sizes including non-divisible-by-16."""
        sizes = [(32, 64), (64, 65), (3, 127), (1, 1), (5, 3)]

        for rows, cols in sizes:
            rng = np.random.default_rng(rows * 1000 + cols)
            codes = rng.integers(-1, 2, size=(rows, cols)).astype(np.int8)

            packed = pack_ternary(codes)
            unpacked = unpack_ternary(packed, cols)

            assert packed.shape == (rows, packed_words_for(cols))
            np.testing.assert_array_equal(unpacked, codes, err_msg=f"{rows}x{cols}")

    def test_pack_rejects_non_ternary(self) -> None:
        """Test that pack_ternary rejects non-ternary values.

        Why: Ensures we catch invalid input early rather than producing corrupt packed data.
        """
        codes = np.array([0, 2, -1, -3])

        with pytest.raises(ValueError, match="Codes must be ternary"):
            pack_ternary(codes)

    def test_unpack_rejects_bad_length(self) -> None:
        packed = np.zeros(2, dtype=np.uint32)

        with pytest.raises(ValueError, match="length"):
            unpack_ternary(packed, 33)

    def test_packed_words_for_rejects_negative(self) -> None:
        with pytest.raises(ValueError):
            packed_words_for(-1)


class TestQuantizePackScenario:
    """End-to-end codec scenario: quantize -> pack -> unpack."""

    def test_uniform_32x64(self) -> None:
        """Test a 32x64 uniform [-1, 1] matrix survives pack/unpack exactly.

        Why: Quantization is the only lossy step; after it, the flattened codes must
        come back bit-for-bit. 32*64 = 2048 codes fill exactly 128 words.
        """
        rng = np.random.default_rng(7)
        weights = rng.uniform(-1.0, 1.0, size=(32, 64)).astype(np.float32)

        codes, scales = quantize_ternary(weights)
        packed = pack_ternary(codes.reshape(-1))
        unpacked = unpack_ternary(packed)[:2048]

        assert packed.shape == (128,)
        assert scales.shape == (32,)
        np.testing.assert_array_equal(unpacked, codes.reshape(-1))
