"""Shared conventions for eigenvalue-to-scalar measures.

Every measure reduces an ordered tuple of eigenvalues (the last array axis)
to one scalar per voxel using a `ParameterSet`. Measures are pure: they hold
only their configuration (enhanced polarity) and never reorder the
eigenvalues they are given. Each measure declares the eigenvalue order it
expects so the decomposition upstream can be asked for it.

Degenerate voxels (all eigenvalues zero, the dominant eigenvalue below
machine epsilon, or a zero parameter) evaluate to 0 rather than raising or
producing NaN.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Dict, Union

import numpy as np

from enhancepy.core.validation import DataError, InvalidArgumentError

ORDER_BY_VALUE = 'value'
ORDER_BY_MAGNITUDE = 'magnitude'
DO_NOT_ORDER = 'none'
EIGENVALUE_ORDERS = (ORDER_BY_VALUE, ORDER_BY_MAGNITUDE, DO_NOT_ORDER)

# Sign applied to the dominant eigenvalue when testing polarity.
# Bright structures on a dark background have negative curvature.
ENHANCE_TYPES = {'bright': -1.0, 'dark': 1.0}

EPSILON = np.finfo(np.float64).eps

ArrayOrScalar = Union[np.ndarray, float]


@dataclass(frozen=True)
class ParameterSet:
    alpha: float = 0.5
    beta: float = 0.5
    c: float = 0.5

    def as_dict(self) -> Dict[str, float]:
        return {k: float(v) for k, v in asdict(self).items()}


def frobenius_norm(eigenvalues) -> ArrayOrScalar:
    """sqrt(sum(lambda_i^2)) over the last axis.

    Squares are accumulated in fixed index order so a voxel's norm never
    depends on how the surrounding array was sliced.
    """
    e = np.asarray(eigenvalues, dtype=np.float64)
    total = np.zeros(e.shape[:-1], dtype=np.float64)
    for i in range(e.shape[-1]):
        total = total + e[..., i] * e[..., i]
    norm = np.sqrt(total)
    return float(norm) if norm.ndim == 0 else norm


def normalize_enhance_type(enhance: str) -> str:
    key = str(enhance).strip().lower()
    if key in {'bright', 'brightobjects', 'white'}:
        return 'bright'
    if key in {'dark', 'darkobjects', 'black'}:
        return 'dark'
    raise InvalidArgumentError(
        f"Invalid enhance type: '{enhance}'\n"
        f"Valid options: bright | dark"
    )


class EigenMeasure:
    """Base class for per-voxel eigenvalue measures."""

    name = 'base'
    eigenvalue_order = ORDER_BY_MAGNITUDE
    supported_dimensions = (3,)

    def __init__(self, enhance: str = 'bright') -> None:
        self.enhance = normalize_enhance_type(enhance)

    @property
    def enhance_sign(self) -> float:
        return ENHANCE_TYPES[self.enhance]

    def evaluate(self, eigenvalues, params: ParameterSet) -> ArrayOrScalar:
        e = np.asarray(eigenvalues, dtype=np.float64)
        if e.ndim == 0 or e.shape[-1] not in self.supported_dimensions:
            raise DataError(
                f"{type(self).__name__} supports eigenvalue tuples of length "
                f"{' or '.join(str(d) for d in self.supported_dimensions)}; got shape {e.shape}"
            )
        with np.errstate(divide='ignore', invalid='ignore', over='ignore', under='ignore'):
            out = np.asarray(self._evaluate(e, params), dtype=np.float64)
        out = np.where(np.isfinite(out), out, 0.0)
        return float(out) if out.ndim == 0 else out

    __call__ = evaluate

    def _evaluate(self, e: np.ndarray, params: ParameterSet) -> np.ndarray:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}(enhance={self.enhance!r})"


def safe_ratio(numerator: np.ndarray, denominator: np.ndarray) -> np.ndarray:
    """numerator / denominator, 0 wherever the denominator is not positive."""
    numerator, denominator = np.broadcast_arrays(
        np.asarray(numerator, dtype=np.float64), np.asarray(denominator, dtype=np.float64)
    )
    out = np.zeros(numerator.shape, dtype=np.float64)
    np.divide(numerator, denominator, out=out, where=denominator > 0)
    return out


def gaussian_decay(ratio: np.ndarray, width: float, factor: float = 2.0) -> np.ndarray:
    """exp(-ratio^2 / (factor * width^2)); a zero width gives 0 except at ratio 0."""
    width_sq = factor * float(width) ** 2
    ratio_sq = np.square(ratio)
    if width_sq <= 0:
        return np.where(ratio_sq == 0, 1.0, 0.0)
    return np.exp(-ratio_sq / width_sq)
