"""Checkpoint input and output for tritpack.

Why: The source checkpoint and the converted model use different layouts:
- source: HuggingFace safetensors (single file or sharded) plus config.json
- output: one safetensors file per structural component, packed ternary words
  carried through the integer-as-float channel

Components:
- load_source_tensors / read_model_config: Read the source model
- save_block / save_model: Write converted components
- load_block / load_model: Read converted components back
- words_to_floats / floats_to_words: Bit-exact uint32 <-> float32 reinterpretation
"""

from tritpack.checkpoints.float_channel import floats_to_words, words_to_floats
from tritpack.checkpoints.formats import (
    load_block,
    load_embedding,
    load_model,
    load_norm,
    save_block,
    save_embedding,
    save_model,
    save_norm,
    write_manifest,
)
from tritpack.checkpoints.source import (
    load_source_tensors,
    num_layers_from_config,
    read_model_config,
)

__all__ = [
    # Channel
    "words_to_floats",
    "floats_to_words",
    # Output
    "save_block",
    "save_embedding",
    "save_model",
    "save_norm",
    "write_manifest",
    "load_block",
    "load_embedding",
    "load_model",
    "load_norm",
    # Source
    "load_source_tensors",
    "read_model_config",
    "num_layers_from_config",
]
