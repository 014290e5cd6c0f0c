from __future__ import annotations

from typing import Any, Optional, Sequence

import numpy as np

from enhancepy.core.masks import as_mask
from enhancepy.core.regions import Region, for_each_region
from enhancepy.core.validation import DomainMismatchError, validate_eigen_image
from enhancepy.measures.base import EigenMeasure, ParameterSet


def apply_measure(
    eigen_image,
    measure: EigenMeasure,
    params: ParameterSet,
    mask=None,
    *,
    background_value: Any = None,
    index: Optional[Sequence[int]] = None,
    region: Optional[Region] = None,
    n_jobs: Optional[int] = None,
    n_regions: Optional[int] = None,
) -> np.ndarray:
    """Evaluate `measure` with bound `params` at every voxel of `region`.

    Voxels excluded by the mask are 0. The output covers exactly `region`
    (the whole image by default). Region tasks write disjoint slices of the
    output, so no locking is needed.
    """
    eigen = validate_eigen_image(eigen_image)
    image_region = Region.from_shape(eigen.shape[:-1], index)
    if region is None:
        region = image_region
    if not image_region.contains(region):
        raise DomainMismatchError(
            f"Requested region (index={region.index}, size={region.size}) lies outside the eigenvalue "
            f"image (index={image_region.index}, size={image_region.size})."
        )

    mask = as_mask(mask, background_value)
    if mask is not None:
        mask.check_covers(region)

    output = np.zeros(region.size, dtype=np.float64)

    def process(piece: Region) -> None:
        values = eigen[piece.slices(image_region)]
        if mask is None:
            output[piece.slices(region)] = measure.evaluate(values, params)
            return
        inside = mask.included(piece, background_value)
        result = np.zeros(piece.size, dtype=np.float64)
        result[inside] = measure.evaluate(values[inside], params)
        output[piece.slices(region)] = result

    for_each_region(region, process, n_jobs=n_jobs, n_regions=n_regions)
    return output


class MeasureEvaluationStage:
    """A measure bound to its worker settings."""

    def __init__(self, measure: EigenMeasure, *, n_jobs: Optional[int] = None, n_regions: Optional[int] = None) -> None:
        self.measure = measure
        self.n_jobs = n_jobs
        self.n_regions = n_regions

    @property
    def eigenvalue_order(self) -> str:
        return self.measure.eigenvalue_order

    def apply(
        self,
        eigen_image,
        params: ParameterSet,
        mask=None,
        *,
        background_value: Any = None,
        index: Optional[Sequence[int]] = None,
        region: Optional[Region] = None,
    ) -> np.ndarray:
        return apply_measure(
            eigen_image,
            self.measure,
            params,
            mask,
            background_value=background_value,
            index=index,
            region=region,
            n_jobs=self.n_jobs,
            n_regions=self.n_regions,
        )

    __call__ = apply

    def __repr__(self) -> str:
        return f"{type(self).__name__}(measure={self.measure!r})"
