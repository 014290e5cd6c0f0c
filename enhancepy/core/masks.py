"""Voxel inclusion masks.

Two kinds of mask restrict where measures are evaluated and statistics are
gathered:

- `LabelMask`: a label image over a region. Voxels whose label equals the
  background value are excluded; every other label is foreground. The mask
  region must contain any region it is asked about.
- `SpatialObjectMask`: a geometric object exposing `contains(point)`, tested
  at the physical point `origin + index * spacing` of each voxel. It has no
  domain of its own.
"""

from __future__ import annotations

from typing import Any, Callable, Optional, Sequence, Union

import numpy as np

from enhancepy.core.regions import Region
from enhancepy.core.validation import DomainMismatchError, validate_array


class LabelMask:
    def __init__(self, labels, background_value: Any = 0, index: Optional[Sequence[int]] = None) -> None:
        self.labels = validate_array(labels, "mask")
        self.background_value = background_value
        self.region = Region.from_shape(self.labels.shape, index)

    def check_covers(self, region: Region) -> None:
        if not self.region.contains(region):
            raise DomainMismatchError(
                f"Mask region (index={self.region.index}, size={self.region.size}) does not contain "
                f"the processed region (index={region.index}, size={region.size}).\n"
                f"Action: Supply a mask defined over the full image domain."
            )

    def included(self, region: Region, background_value: Any = None) -> np.ndarray:
        """Boolean array over `region`; True where the voxel is foreground."""
        self.check_covers(region)
        bg = self.background_value if background_value is None else background_value
        return self.labels[region.slices(self.region)] != bg


class SpatialObjectMask:
    def __init__(
        self,
        contains: Union[Callable[[np.ndarray], bool], Any],
        origin: Optional[Sequence[float]] = None,
        spacing: Optional[Sequence[float]] = None,
    ) -> None:
        if not callable(contains):
            contains = contains.contains
        self.contains = contains
        self.origin = None if origin is None else np.asarray(origin, dtype=np.float64)
        self.spacing = None if spacing is None else np.asarray(spacing, dtype=np.float64)

    def check_covers(self, region: Region) -> None:
        return None

    def physical_points(self, region: Region) -> np.ndarray:
        """Physical coordinates of every voxel in `region`, shape (*region.size, ndim)."""
        grids = np.indices(region.size, dtype=np.float64)
        points = np.moveaxis(grids, 0, -1) + np.asarray(region.index, dtype=np.float64)
        if self.spacing is not None:
            points = points * self.spacing
        if self.origin is not None:
            points = points + self.origin
        return points

    def included(self, region: Region, background_value: Any = None) -> np.ndarray:
        points = self.physical_points(region).reshape(-1, region.ndim)
        inside = np.fromiter((bool(self.contains(p)) for p in points), dtype=bool, count=points.shape[0])
        return inside.reshape(region.size)


Mask = Union[LabelMask, SpatialObjectMask]


def as_mask(mask, background_value: Any = None, index: Optional[Sequence[int]] = None) -> Optional[Mask]:
    """Wrap a raw label array as a `LabelMask`; pass mask objects through."""
    if mask is None or isinstance(mask, (LabelMask, SpatialObjectMask)):
        return mask
    return LabelMask(mask, background_value=0 if background_value is None else background_value, index=index)
