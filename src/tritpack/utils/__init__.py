"""Utility helpers: process-wide logging setup for the CLI."""

from tritpack.utils.log_setup import close_logging, configure_logging

__all__ = ["close_logging", "configure_logging"]
