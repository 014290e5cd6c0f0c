"""Validation helpers and shared exceptions."""

from __future__ import annotations

import numpy as np


class EnhancementError(Exception):
    """Base class for all EnhancePy errors."""


class InvalidArgumentError(EnhancementError, ValueError):
    """Raised for bad scale-schedule parameters or unknown enumerated options."""


class ConfigurationError(EnhancementError):
    """Raised when a required collaborator or configuration value is missing or invalid."""


class DomainMismatchError(EnhancementError):
    """Raised when a mask or requested region does not cover the processed domain."""


class NumericDegenerateError(EnhancementError):
    """Reserved for measures that would otherwise divide by zero.

    Shipped measures resolve degenerate voxels to zero and never raise this.
    """


class DataError(EnhancementError):
    """Raised when input arrays (image, eigenvalues, mask) are malformed."""


def validate_array(array, name, *, min_ndim: int = 1, allow_nan: bool = False, allow_inf: bool = False) -> np.ndarray:
    """Array validation with informative error messages."""

    array = np.asarray(array)

    if array.ndim < min_ndim:
        raise DataError(
            f"{name} must have at least {min_ndim} dimension(s); got shape {array.shape}.\n"
            f"Action: Check that the correct image was supplied."
        )

    if array.size == 0:
        raise DataError(f"{name} is empty (shape {array.shape}).")

    if not np.issubdtype(array.dtype, np.number) and array.dtype != np.bool_:
        raise DataError(f"{name} must be numeric; got dtype {array.dtype}.")

    if np.issubdtype(array.dtype, np.floating):
        if not allow_nan and np.isnan(array).any():
            nan_count = int(np.isnan(array).sum())
            nan_pct = 100.0 * nan_count / array.size
            raise DataError(
                f"{name} contains {nan_count:,} NaN values ({nan_pct:.2f}% of total).\n"
                f"This usually indicates:\n"
                f"  - Corrupted input data (check your NIfTI files)\n"
                f"  - Division by zero during an upstream filter\n"
                f"Action: Inspect your input data for quality issues."
            )

        if not allow_inf and np.isinf(array).any():
            inf_count = int(np.isinf(array).sum())
            inf_pct = 100.0 * inf_count / array.size
            raise DataError(
                f"{name} contains {inf_count:,} Inf values ({inf_pct:.2f}% of total).\n"
                f"Action: Check for unreasonable values in input data."
            )

    return array


def validate_eigen_image(eigen_image, name: str = "eigenvalue image") -> np.ndarray:
    """Validate a ``(*spatial, D)`` eigenvalue image.

    NaNs are allowed through; the estimator and measures guard against them.
    """

    eigen_image = validate_array(eigen_image, name, min_ndim=2, allow_nan=True, allow_inf=True)
    spatial_ndim = eigen_image.ndim - 1
    if eigen_image.shape[-1] != spatial_ndim:
        raise DataError(
            f"{name} must have shape (*spatial, D) with D equal to the number of spatial dimensions.\n"
            f"Got shape {eigen_image.shape}: {spatial_ndim} spatial dimension(s) but D={eigen_image.shape[-1]}."
        )
    return eigen_image
