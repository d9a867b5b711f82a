"""Exception types raised during conversion.

Why: Each failure class subclasses the builtin it specializes, so callers can
catch ``KeyError``/``ValueError``/``RuntimeError`` as usual while the CLI can
still tell a missing tensor apart from a malformed config.
"""

from __future__ import annotations


class MissingTensorError(KeyError):
    """A required source tensor is absent.

    Attributes:
        key: Name of the missing tensor
    """

    def __init__(self, key: str) -> None:
        super().__init__(key)
        self.key = key

    def __str__(self) -> str:
        return f"Missing required tensor: {self.key}"


class ConfigError(ValueError):
    """The model config is unreadable or lacks a usable layer count."""


class TensorShapeError(ValueError):
    """Source tensors cannot be fused or reshaped into their record layout."""


class ConversionError(RuntimeError):
    """Aggregated failure of one model conversion run."""
