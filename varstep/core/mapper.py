"""Placement of an equation set inside the composite state vector."""

from dataclasses import dataclass
import numpy as np
from numpy.typing import NDArray

from varstep.core.exceptions import DimensionMismatchError


@dataclass(frozen=True)
class EquationsMapper:
    """Contiguous slice [first_index, first_index + dimension) of a composite vector."""

    first_index: int
    dimension: int

    @property
    def end_index(self) -> int:
        return self.first_index + self.dimension

    @property
    def slice(self) -> slice:
        return slice(self.first_index, self.end_index)

    def extract(self, complete: NDArray) -> NDArray:
        """Copy this set's components out of a complete vector."""
        return np.array(complete[self.slice], dtype=float)

    def insert(self, values: NDArray, complete: NDArray) -> None:
        """Write this set's components into a complete vector, in place."""
        values = np.asarray(values, dtype=float)
        if values.shape != (self.dimension,):
            raise DimensionMismatchError(values.size, self.dimension)
        complete[self.slice] = values
