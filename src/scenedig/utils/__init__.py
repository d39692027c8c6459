"""Utility functions for scenedig."""

from scenedig.utils.binary import align, has_letter, looks_like_noise

__all__ = ["align", "has_letter", "looks_like_noise"]
