"""Axis-aligned voxel regions and the region-parallel task runner.

A `Region` is an integer box given by a start `index` and a `size` per axis,
using numpy (C-order) axis numbering. Regions are closed under intersection;
disjoint boxes intersect to an empty region.

`for_each_region` partitions a region into disjoint contiguous sub-regions,
runs a callback on each one through `joblib` and returns only after every
callback has finished. Results come back in partition order.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple, TypeVar

import numpy as np
from joblib import Parallel, delayed

from enhancepy.core.validation import InvalidArgumentError
from enhancepy.core.workers import resolve_n_jobs

T = TypeVar("T")


@dataclass(frozen=True)
class Region:
    index: Tuple[int, ...]
    size: Tuple[int, ...]

    def __post_init__(self) -> None:
        index = tuple(int(i) for i in self.index)
        size = tuple(int(s) for s in self.size)
        if len(index) != len(size):
            raise InvalidArgumentError(
                f"Region index and size must have the same length; got index={index}, size={size}"
            )
        if any(s < 0 for s in size):
            raise InvalidArgumentError(f"Region size must be non-negative; got {size}")
        object.__setattr__(self, "index", index)
        object.__setattr__(self, "size", size)

    @classmethod
    def from_shape(cls, shape: Sequence[int], index: Optional[Sequence[int]] = None) -> "Region":
        shape = tuple(int(s) for s in shape)
        if index is None:
            index = (0,) * len(shape)
        return cls(tuple(index), shape)

    @property
    def ndim(self) -> int:
        return len(self.size)

    @property
    def upper(self) -> Tuple[int, ...]:
        """Exclusive upper corner."""
        return tuple(i + s for i, s in zip(self.index, self.size))

    @property
    def number_of_voxels(self) -> int:
        return int(np.prod(self.size, dtype=np.int64)) if self.size else 0

    @property
    def is_empty(self) -> bool:
        return self.number_of_voxels == 0

    def _check_ndim(self, other: "Region") -> None:
        if other.ndim != self.ndim:
            raise InvalidArgumentError(
                f"Region dimension mismatch: {self.ndim}-D vs {other.ndim}-D"
            )

    def intersect(self, other: "Region") -> "Region":
        self._check_ndim(other)
        lower = tuple(max(a, b) for a, b in zip(self.index, other.index))
        upper = tuple(min(a, b) for a, b in zip(self.upper, other.upper))
        return Region(lower, tuple(max(0, hi - lo) for lo, hi in zip(lower, upper)))

    def contains(self, other: "Region") -> bool:
        """True when every voxel of `other` lies inside this region."""
        self._check_ndim(other)
        if other.is_empty:
            return True
        return all(lo <= olo for lo, olo in zip(self.index, other.index)) and all(
            hi >= ohi for hi, ohi in zip(self.upper, other.upper)
        )

    def slices(self, relative_to: Optional["Region"] = None) -> Tuple[slice, ...]:
        """Slices selecting this region from an array whose origin is `relative_to.index`."""
        origin = relative_to.index if relative_to is not None else (0,) * self.ndim
        return tuple(slice(i - o, i - o + s) for i, o, s in zip(self.index, origin, self.size))

    def split(self, n: int) -> List["Region"]:
        """Split into at most `n` disjoint contiguous regions along axis 0.

        The pieces cover this region exactly once. Empty regions split into
        an empty list.
        """
        if self.is_empty:
            return []
        n = max(1, min(int(n), self.size[0]))
        bounds = np.linspace(0, self.size[0], n + 1).round().astype(int)
        pieces = []
        for lo, hi in zip(bounds[:-1], bounds[1:]):
            if hi <= lo:
                continue
            index = (self.index[0] + int(lo),) + self.index[1:]
            size = (int(hi - lo),) + self.size[1:]
            pieces.append(Region(index, size))
        return pieces


def for_each_region(
    region: Region,
    callback: Callable[[Region], T],
    *,
    n_jobs: Optional[int] = None,
    n_regions: Optional[int] = None,
) -> List[T]:
    """Run `callback` once per disjoint sub-region of `region`.

    Uses joblib's thread backend to avoid copying image buffers into worker
    processes; numpy releases the GIL inside its vectorised kernels. Any
    callback exception propagates and fails the whole call.
    """

    workers = resolve_n_jobs(n_jobs)
    pieces = region.split(n_regions if n_regions is not None else workers)
    if not pieces:
        return []

    logging.debug(f"Dispatching {len(pieces)} region task(s) on {min(workers, len(pieces))} worker(s)")

    if workers == 1 or len(pieces) == 1:
        return [callback(piece) for piece in pieces]

    return list(
        Parallel(n_jobs=min(workers, len(pieces)), prefer="threads")(
            delayed(callback)(piece) for piece in pieces
        )
    )
