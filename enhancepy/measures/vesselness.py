"""Ratio-based tubular structure measure (Frangi)."""

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


class FrangiVesselness(EigenMeasure):
    """Frangi et al. (1998) vesselness for 2-D and 3-D eigenvalue tuples.

    3-D, with |l1| <= |l2| <= |l3|:

        Ra = |l2| / |l3|
        Rb = |l1| / sqrt(|l2 l3|)
        S  = frobenius norm
        V  = (1 - exp(-Ra^2 / 2a^2)) exp(-Rb^2 / 2b^2) (1 - exp(-S^2 / 2c^2))

    2-D drops the Ra term and uses Rb = |l1| / |l2|. The response is 0 where
    the two largest eigenvalues do not both have the enhanced polarity.
    """

    name = 'frangi'
    eigenvalue_order = ORDER_BY_MAGNITUDE
    supported_dimensions = (2, 3)

    def _evaluate(self, e: np.ndarray, params: ParameterSet) -> np.ndarray:
        sign = self.enhance_sign
        structure = 1.0 - gaussian_decay(frobenius_norm(e), params.c)

        if e.shape[-1] == 2:
            l1, l2 = np.abs(e[..., 0]), np.abs(e[..., 1])
            r_b = safe_ratio(l1, l2)
            vesselness = gaussian_decay(r_b, params.beta) * structure
            valid = (l2 > EPSILON) & (sign * e[..., 1] >= 0)
            return np.where(valid, vesselness, 0.0)

        l1, l2, l3 = np.abs(e[..., 0]), np.abs(e[..., 1]), np.abs(e[..., 2])
        r_a = safe_ratio(l2, l3)
        r_b = safe_ratio(l1, np.sqrt(l2 * l3))

        vesselness = (1.0 - gaussian_decay(r_a, params.alpha)) * gaussian_decay(r_b, params.beta) * structure
        valid = (l3 > EPSILON) & (sign * e[..., 1] >= 0) & (sign * e[..., 2] >= 0)
        return np.where(valid, vesselness, 0.0)
