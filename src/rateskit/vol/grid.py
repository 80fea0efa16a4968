"""
Volatility grid helpers.

Volatility objects store their parameters on a rectangular grid (expiry by
tenor, or expiry by strike). Values between nodes are interpolated
bilinearly and held flat outside the grid, so every interpolated value is a
fixed linear combination of node values. bilinear_weights returns that
combination, which is what sensitivities are mapped back through.
"""

from enum import Enum
from typing import Sequence

import numpy as np


class VolatilityType(Enum):
    """Declared model family of a volatility object."""
    BLACK = "BlackVolatility"
    NORMAL = "NormalVolatility"
    SABR = "SabrParameters"


def _axis_weights(nodes: np.ndarray, x: float) -> np.ndarray:
    """Linear weights along one axis, flat outside."""
    w = np.zeros(len(nodes))
    if len(nodes) == 1 or x <= nodes[0]:
        w[0] = 1.0
        return w
    if x >= nodes[-1]:
        w[-1] = 1.0
        return w
    i = int(np.searchsorted(nodes, x, side="right")) - 1
    frac = (x - nodes[i]) / (nodes[i + 1] - nodes[i])
    w[i] = 1.0 - frac
    w[i + 1] = frac
    return w


def bilinear_weights(x_nodes: np.ndarray, y_nodes: np.ndarray, x: float, y: float) -> np.ndarray:
    """
    Weights of each grid node in the interpolated value at (x, y).

    Returns:
        Array of shape (len(x_nodes), len(y_nodes)) summing to one
    """
    return np.outer(_axis_weights(x_nodes, x), _axis_weights(y_nodes, y))


def bilinear(x_nodes: np.ndarray, y_nodes: np.ndarray, values: np.ndarray, x: float, y: float) -> float:
    return float(np.sum(bilinear_weights(x_nodes, y_nodes, x, y) * values))


def check_axis(name: str, nodes: Sequence[float]) -> np.ndarray:
    """Validate a grid axis and return it as a read-only array."""
    arr = np.array(nodes, dtype=float)
    if arr.ndim != 1 or len(arr) == 0:
        raise ValueError(f"{name} must be a non-empty 1-d sequence")
    if np.any(np.diff(arr) <= 0):
        raise ValueError(f"{name} must be strictly increasing")
    arr.setflags(write=False)
    return arr


def check_grid(name: str, values, shape) -> np.ndarray:
    arr = np.array(values, dtype=float)
    if arr.shape != shape:
        raise ValueError(f"{name} grid has shape {arr.shape}, expected {shape}")
    arr.setflags(write=False)
    return arr


__all__ = [
    "VolatilityType",
    "bilinear_weights",
    "bilinear",
    "check_axis",
    "check_grid",
]
