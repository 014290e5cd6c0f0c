"""Sheet-like structure measures (Descoteaux, Krcah).

Both expect eigenvalues ordered by magnitude, |l1| <= |l2| <= |l3|.
"""

from __future__ import annotations

import numpy as np

from enhancepy.measures.base import (
    EPSILON,
    ORDER_BY_MAGNITUDE,
    EigenMeasure,
    ParameterSet,
    frobenius_norm,
    gaussian_decay,
    safe_ratio,
)


class DescoteauxSheetness(EigenMeasure):
    """Descoteaux et al. (2006) sheetness.

        Rsheet = |l2| / |l3|
        Rblob  = |2|l3| - |l2| - |l1|| / |l3|
        Rnoise = frobenius norm

        S = exp(-Rsheet^2 / 2a^2) (1 - exp(-Rblob^2 / 2b^2)) (1 - exp(-Rnoise^2 / 2c^2))

    Voxels whose dominant eigenvalue has the wrong sign for the enhanced
    polarity are 0. Output lies in [0, 1].
    """

    name = 'descoteaux'
    eigenvalue_order = ORDER_BY_MAGNITUDE

    def _evaluate(self, e: np.ndarray, params: ParameterSet) -> np.ndarray:
        l1, l2, l3 = np.abs(e[..., 0]), np.abs(e[..., 1]), np.abs(e[..., 2])

        r_sheet = safe_ratio(l2, l3)
        r_blob = safe_ratio(np.abs(2.0 * l3 - l2 - l1), l3)
        r_noise = frobenius_norm(e)

        sheetness = gaussian_decay(r_sheet, params.alpha)
        sheetness = sheetness * (1.0 - gaussian_decay(r_blob, params.beta))
        sheetness = sheetness * (1.0 - gaussian_decay(r_noise, params.c))

        valid = (l3 > EPSILON) & (self.enhance_sign * e[..., 2] >= 0)
        return np.where(valid, sheetness, 0.0)


class KrcahSheetness(EigenMeasure):
    """Krcah et al. (2011) bone sheetness.

        Rsheet = |l2| / |l3|
        Rtube  = |l1| / (|l2| |l3|)
        Rnoise = |l1| + |l2| + |l3|

        S = s * exp(-Rsheet^2 / a^2) exp(-Rtube^2 / b^2) (1 - exp(-Rnoise^2 / c^2))

    where `s` is +1 when l3 has the polarity being enhanced and -1 otherwise,
    so the response is signed. The multi-scale combination keeps the
    magnitude.
    """

    name = 'krcah'
    eigenvalue_order = ORDER_BY_MAGNITUDE

    def _evaluate(self, e: np.ndarray, params: ParameterSet) -> np.ndarray:
        l1, l2, l3 = np.abs(e[..., 0]), np.abs(e[..., 1]), np.abs(e[..., 2])

        r_sheet = safe_ratio(l2, l3)
        # |l1| <= |l2| so a zero denominator implies a zero numerator.
        r_tube = safe_ratio(l1, l2 * l3)
        r_noise = l1 + l2 + l3

        sheetness = self.enhance_sign * np.sign(e[..., 2])
        sheetness = sheetness * gaussian_decay(r_sheet, params.alpha, factor=1.0)
        sheetness = sheetness * gaussian_decay(r_tube, params.beta, factor=1.0)
        sheetness = sheetness * (1.0 - gaussian_decay(r_noise, params.c, factor=1.0))

        return np.where(l3 > EPSILON, sheetness, 0.0)
