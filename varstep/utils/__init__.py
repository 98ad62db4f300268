"""Utility functions."""

from varstep.utils.precision import equals_within_ulp

__all__ = ["equals_within_ulp"]
