"""Method coefficient tables."""

from varstep.methods.runge_kutta import (
    explicit_euler,
    midpoint,
    heun,
    rk4,
    three_eighths,
    dormand_prince54,
)
from varstep.methods.multistep import AdamsNordsieckTransformer, adams_transformer

__all__ = [
    "explicit_euler",
    "midpoint",
    "heun",
    "rk4",
    "three_eighths",
    "dormand_prince54",
    "AdamsNordsieckTransformer",
    "adams_transformer",
]
