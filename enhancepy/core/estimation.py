"""Automatic measure-parameter estimation from eigenvalue statistics.

The Descoteaux defaults are

    alpha = 0.5
    beta  = 0.5
    c     = w * max(Frobenius norm)

with `w` the Frobenius norm weight (0.5 by default), where the Frobenius norm
of a real symmetric matrix is the square root of the sum of squares of its
eigenvalues.

The maximum is found with a two-phase region-parallel reduction. Each region
task scans its own sub-region and returns a local maximum, starting from the
lowest representable float so that a task which sees no included voxel
contributes nothing. After every task has finished, the local maxima are
reduced with `max`, which is exact, so the result does not depend on how the
domain was partitioned.
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Sequence

import numpy as np

from enhancepy.core.masks import as_mask
from enhancepy.core.regions import Region, for_each_region
from enhancepy.core.validation import InvalidArgumentError, validate_eigen_image
from enhancepy.measures.base import ParameterSet, frobenius_norm

DEFAULT_ALPHA = 0.5
DEFAULT_BETA = 0.5
DEFAULT_FROBENIUS_NORM_WEIGHT = 0.5

LOWEST = -np.finfo(np.float64).max


def max_frobenius_norm(
    eigen_image,
    mask=None,
    background_value: Any = None,
    *,
    index: Optional[Sequence[int]] = None,
    n_jobs: Optional[int] = None,
    n_regions: Optional[int] = None,
) -> float:
    """Largest Frobenius norm over included voxels, or `LOWEST` if none is included.

    A label mask must contain the eigenvalue image's region; this is checked
    before any task is dispatched. NaN norms are skipped.
    """
    eigen = validate_eigen_image(eigen_image)
    region = Region.from_shape(eigen.shape[:-1], index)
    mask = as_mask(mask, background_value)
    if mask is not None:
        mask.check_covers(region)

    def scan(piece: Region) -> float:
        norms = frobenius_norm(eigen[piece.slices(region)])
        keep = ~np.isnan(norms)
        if mask is not None:
            keep &= mask.included(piece, background_value)
        norms = norms[keep]
        if norms.size == 0:
            return LOWEST
        return float(norms.max())

    local_maxima = for_each_region(region, scan, n_jobs=n_jobs, n_regions=n_regions)
    return max(local_maxima, default=LOWEST)


def estimate_parameters(
    eigen_image,
    mask=None,
    background_value: Any = None,
    frobenius_weight: float = DEFAULT_FROBENIUS_NORM_WEIGHT,
    *,
    index: Optional[Sequence[int]] = None,
    n_jobs: Optional[int] = None,
    n_regions: Optional[int] = None,
) -> ParameterSet:
    """Estimate Descoteaux-style `ParameterSet(alpha, beta, c)` from an eigenvalue image.

    Voxels whose mask label equals `background_value` are ignored. When a raw
    label array is passed, `background_value` defaults to 0; a `LabelMask`
    uses its own background value unless one is given here.
    """
    try:
        frobenius_weight = float(frobenius_weight)
    except (TypeError, ValueError):
        raise InvalidArgumentError(f"Frobenius norm weight must be a number; got {frobenius_weight!r}")

    global_max = max_frobenius_norm(
        eigen_image, mask, background_value, index=index, n_jobs=n_jobs, n_regions=n_regions
    )
    if global_max == LOWEST:
        logging.warning("Parameter estimation found no voxels inside the mask; using a Frobenius norm of 0")
        global_max = 0.0

    params = ParameterSet(
        alpha=DEFAULT_ALPHA,
        beta=DEFAULT_BETA,
        c=frobenius_weight * global_max,
    )
    logging.debug(
        f"Estimated parameters: max Frobenius norm={global_max:.6g}, "
        f"alpha={params.alpha}, beta={params.beta}, c={params.c:.6g}"
    )
    return params


class DescoteauxParameterEstimator:
    """Bound estimator settings, callable on an eigenvalue image."""

    def __init__(
        self,
        frobenius_weight: float = DEFAULT_FROBENIUS_NORM_WEIGHT,
        background_value: Any = None,
        *,
        n_jobs: Optional[int] = None,
        n_regions: Optional[int] = None,
    ) -> None:
        self.frobenius_weight = frobenius_weight
        self.background_value = background_value
        self.n_jobs = n_jobs
        self.n_regions = n_regions

    def estimate(self, eigen_image, mask=None, *, index: Optional[Sequence[int]] = None) -> ParameterSet:
        return estimate_parameters(
            eigen_image,
            mask,
            self.background_value,
            self.frobenius_weight,
            index=index,
            n_jobs=self.n_jobs,
            n_regions=self.n_regions,
        )

    __call__ = estimate

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(frobenius_weight={self.frobenius_weight!r}, "
            f"background_value={self.background_value!r})"
        )
