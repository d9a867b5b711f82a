"""Model records and the assembler that builds them."""

from tritpack.models.assembler import ModelAssembler
from tritpack.models.records import (
    BitLinearRecord,
    EmbeddingRecord,
    ModelRecord,
    RmsNormRecord,
    TransformerBlockRecord,
)

__all__ = [
    "BitLinearRecord",
    "EmbeddingRecord",
    "ModelAssembler",
    "ModelRecord",
    "RmsNormRecord",
    "TransformerBlockRecord",
]
