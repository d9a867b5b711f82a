"""
tritpack: ternary weight packing for low-bit LLM inference.

Converts float32 Llama-style checkpoints into BitNet 1.58-bit ternary weights,
packed 16 per 32-bit word with per-row scales, written as per-component
safetensors files.
"""

__version__ = "0.1.0"
__license__ = "MIT"

from tritpack.checkpoints.formats import load_model, save_model
from tritpack.core.config import ConverterConfig
from tritpack.convert import ConversionSummary, convert
from tritpack.errors import ConfigError, ConversionError, MissingTensorError, TensorShapeError
from tritpack.models.assembler import ModelAssembler
from tritpack.quantization import (
    dequantize_ternary,
    pack_ternary,
    permute_tiles,
    quantize_ternary,
    unpack_ternary,
    unpermute_tiles,
)

__all__ = [
    "ConverterConfig",
    "ConversionSummary",
    "convert",
    "ConfigError",
    "ConversionError",
    "MissingTensorError",
    "TensorShapeError",
    "ModelAssembler",
    "load_model",
    "save_model",
    "quantize_ternary",
    "dequantize_ternary",
    "pack_ternary",
    "unpack_ternary",
    "permute_tiles",
    "unpermute_tiles",
    "__version__",
]
