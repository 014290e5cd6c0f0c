"""Eigenvalue-to-scalar measures."""

from __future__ import annotations

from enhancepy.core.validation import InvalidArgumentError
from enhancepy.measures.base import (
    DO_NOT_ORDER,
    EIGENVALUE_ORDERS,
    ORDER_BY_MAGNITUDE,
    ORDER_BY_VALUE,
    EigenMeasure,
    ParameterSet,
    frobenius_norm,
)
from enhancepy.measures.sheetness import DescoteauxSheetness, KrcahSheetness
from enhancepy.measures.vesselness import FrangiVesselness

MEASURES = {
    'descoteaux': DescoteauxSheetness,
    'krcah': KrcahSheetness,
    'frangi': FrangiVesselness,
}


def get_measure(name: str, **kwargs) -> EigenMeasure:
    key = str(name).strip().lower()
    if key not in MEASURES:
        raise InvalidArgumentError(
            f"Unknown measure: '{name}'\n"
            f"Valid options: {' | '.join(MEASURES)}"
        )
    return MEASURES[key](**kwargs)


__all__ = [
    "DO_NOT_ORDER",
    "EIGENVALUE_ORDERS",
    "ORDER_BY_MAGNITUDE",
    "ORDER_BY_VALUE",
    "EigenMeasure",
    "ParameterSet",
    "frobenius_norm",
    "DescoteauxSheetness",
    "KrcahSheetness",
    "FrangiVesselness",
    "MEASURES",
    "get_measure",
]
