from __future__ import annotations

from pathlib import Path
from typing import Any

import nibabel as nb
import numpy as np

from enhancepy.core.validation import DataError


def output_stem(image_path: str) -> str:
    """File stem with `.nii`/`.nii.gz` stripped."""

    name = Path(image_path).name
    if name.lower().endswith(".nii.gz"):
        return name[:-7]
    if name.lower().endswith(".nii"):
        return name[:-4]
    return Path(image_path).stem


def load_image(image_path: str) -> tuple[np.ndarray, Any, Any, tuple[float, ...]]:
    """Load a scalar NIfTI image and return (data, header, affine, spacing).

    `spacing` is the voxel size from the header zooms, one value per spatial
    axis. Singleton trailing axes beyond the third are squeezed.
    """

    nifti = nb.load(image_path)
    data = np.asarray(nifti.get_fdata(), dtype=np.float64)
    while data.ndim > 3 and data.shape[-1] == 1:
        data = data[..., 0]
    if data.ndim > 3:
        raise DataError(
            f"Input image must be a scalar 2-D or 3-D image; got shape {data.shape}.\n"
            f"Action: Extract a single volume before enhancement."
        )

    spacing = tuple(float(z) for z in nifti.header.get_zooms()[: data.ndim])
    return data, nifti.header, nifti.affine, spacing


def load_mask(mask_path: str, *, expected_shape: tuple[int, ...]) -> np.ndarray:
    """Load an integer label mask and check it covers the image grid."""

    mask_nifti = nb.load(mask_path)
    labels = np.asanyarray(mask_nifti.dataobj)
    while labels.ndim > len(expected_shape) and labels.shape[-1] == 1:
        labels = labels[..., 0]
    if tuple(labels.shape) != tuple(expected_shape):
        raise DataError(
            f"Mask shape {tuple(labels.shape)} does not match image shape {tuple(expected_shape)}.\n"
            f"Action: Resample the mask onto the image grid."
        )
    return np.rint(labels).astype(np.int64) if np.issubdtype(labels.dtype, np.floating) else labels


def save_image(data: np.ndarray, out_path: str, *, affine: Any, header: Any = None) -> str:
    """Save a float32 NIfTI next to the other run outputs. Returns the written path."""

    hdr = header.copy() if header is not None else None
    if hdr is not None:
        hdr.set_data_dtype(np.float32)
    img = nb.Nifti1Image(np.asarray(data, dtype=np.float32), affine, header=hdr)
    nb.save(img, out_path)
    return str(out_path)
