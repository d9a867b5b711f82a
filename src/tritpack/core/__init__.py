"""Core configuration for tritpack conversion runs."""

from tritpack.core.config import ConverterConfig, default_output_dir

__all__ = ["ConverterConfig", "default_output_dir"]
