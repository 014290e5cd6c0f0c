"""Default Hessian and eigen-analysis collaborators.

The multi-scale pipeline only needs two callables:

- `hessian(image, sigma, spacing=None)` returning a `(*spatial, D, D)`
  symmetric matrix image;
- `eigen_analysis(hessian_image, order)` returning a `(*spatial, D)`
  eigenvalue image in the requested order.

`GaussianHessian` and `SymmetricEigenAnalysis` are the shipped
implementations; any object with the same call signature can replace them.
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence

import numpy as np
import torch
from scipy import ndimage

from enhancepy.core.validation import DataError, InvalidArgumentError, validate_array
from enhancepy.measures.base import DO_NOT_ORDER, ORDER_BY_MAGNITUDE, ORDER_BY_VALUE

DEFAULT_BATCH_VOXELS = 1 << 20

_ORDER_ALIASES = {
    'value': ORDER_BY_VALUE,
    'by-value': ORDER_BY_VALUE,
    'orderbyvalue': ORDER_BY_VALUE,
    'magnitude': ORDER_BY_MAGNITUDE,
    'by-magnitude': ORDER_BY_MAGNITUDE,
    'orderbymagnitude': ORDER_BY_MAGNITUDE,
    'none': DO_NOT_ORDER,
    'unordered': DO_NOT_ORDER,
    'donotorder': DO_NOT_ORDER,
}


def normalize_eigenvalue_order(order: str) -> str:
    key = str(order).strip().lower()
    if key not in _ORDER_ALIASES:
        raise InvalidArgumentError(
            f"Invalid eigenvalue order: '{order}'\n"
            f"Valid options: value | magnitude | none"
        )
    return _ORDER_ALIASES[key]


def order_eigenvalues(eigenvalues: np.ndarray, order: str) -> np.ndarray:
    """Reorder eigenvalues (last axis) ascending by signed value or by magnitude.

    `none` returns the input unchanged.
    """
    order = normalize_eigenvalue_order(order)
    if order == DO_NOT_ORDER:
        return eigenvalues
    if order == ORDER_BY_VALUE:
        return np.sort(eigenvalues, axis=-1)
    idx = np.argsort(np.abs(eigenvalues), axis=-1, kind='stable')
    return np.take_along_axis(eigenvalues, idx, axis=-1)


def _resolve_device(device: str) -> str:
    device = str(device).strip().lower()
    if device in {'', 'auto'}:
        return 'cuda' if torch.cuda.is_available() else 'cpu'
    if device == 'cuda' and not torch.cuda.is_available():
        logging.warning("Eigen-analysis device cuda requested but CUDA is not available; falling back to cpu")
        return 'cpu'
    if device not in {'cpu', 'cuda'}:
        raise InvalidArgumentError(f"Invalid device: '{device}'\nValid values: auto | cpu | cuda")
    return device


class GaussianHessian:
    """Hessian from Gaussian second-derivative filters.

    `sigma` is in physical units and converted to voxels with `spacing`.
    With `normalize_across_scale` the derivatives are multiplied by sigma^2
    so responses at different scales are comparable.
    """

    def __init__(self, normalize_across_scale: bool = True, *, mode: str = 'nearest', truncate: float = 4.0) -> None:
        self.normalize_across_scale = bool(normalize_across_scale)
        self.mode = mode
        self.truncate = float(truncate)

    def __call__(self, image, sigma: float, spacing: Optional[Sequence[float]] = None) -> np.ndarray:
        img = validate_array(image, "input image").astype(np.float64, copy=False)
        ndim = img.ndim
        spacing = np.ones(ndim) if spacing is None else np.asarray(spacing, dtype=np.float64)
        if spacing.shape != (ndim,) or np.any(spacing <= 0):
            raise InvalidArgumentError(f"Spacing must hold {ndim} positive values; got {spacing.tolist()}")
        sigma = float(sigma)
        if sigma <= 0:
            raise InvalidArgumentError(f"Sigma must be positive; got {sigma}")

        sigma_voxels = sigma / spacing
        hessian = np.empty(img.shape + (ndim, ndim), dtype=np.float64)
        for i in range(ndim):
            for j in range(i, ndim):
                derivative_order = [0] * ndim
                derivative_order[i] += 1
                derivative_order[j] += 1
                d = ndimage.gaussian_filter(
                    img, sigma=sigma_voxels, order=derivative_order, mode=self.mode, truncate=self.truncate
                )
                d = d / (spacing[i] * spacing[j])
                if self.normalize_across_scale:
                    d = d * sigma ** 2
                hessian[..., i, j] = d
                hessian[..., j, i] = d
        return hessian

    compute = __call__


class SymmetricEigenAnalysis:
    """Batched eigenvalues of symmetric matrices via `torch.linalg.eigvalsh`."""

    def __init__(self, device: str = 'cpu', batch_voxels: int = DEFAULT_BATCH_VOXELS) -> None:
        self.device = _resolve_device(device)
        self.batch_voxels = max(1, int(batch_voxels))

    def __call__(self, hessian_image, order: str = ORDER_BY_MAGNITUDE) -> np.ndarray:
        h = np.asarray(hessian_image, dtype=np.float64)
        if h.ndim < 3 or h.shape[-1] != h.shape[-2]:
            raise DataError(f"Hessian image must have shape (*spatial, D, D); got {h.shape}")
        dim = h.shape[-1]

        flat = torch.from_numpy(np.ascontiguousarray(h.reshape(-1, dim, dim)))
        eigenvalues = np.empty((flat.shape[0], dim), dtype=np.float64)
        for start in range(0, flat.shape[0], self.batch_voxels):
            stop = start + self.batch_voxels
            batch = flat[start:stop].to(self.device)
            eigenvalues[start:stop] = torch.linalg.eigvalsh(batch).cpu().numpy()

        eigenvalues = order_eigenvalues(eigenvalues, order)
        return eigenvalues.reshape(h.shape[:-2] + (dim,))

    decompose = __call__
