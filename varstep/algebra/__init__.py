"""Linear algebra backend."""

from varstep.algebra.dense import DenseBackend

__all__ = ["DenseBackend"]
