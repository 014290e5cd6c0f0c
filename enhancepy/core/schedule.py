"""Scale (sigma) schedules for multi-scale enhancement."""

from __future__ import annotations

import math
import numbers

import numpy as np

from enhancepy.core.validation import InvalidArgumentError

LINEAR = 'linear'
LOGARITHMIC = 'logarithmic'

_METHOD_ALIASES = {
    'linear': LINEAR,
    'equispaced': LINEAR,
    'logarithmic': LOGARITHMIC,
    'log': LOGARITHMIC,
}

# Floor on the step size so nearly-equal bounds never give a zero step.
MIN_STEP = 1e-10


def normalize_step_method(method: str) -> str:
    key = str(method).strip().lower()
    if key not in _METHOD_ALIASES:
        raise InvalidArgumentError(
            f"Requested sigma step method does not exist: '{method}'\n"
            f"Valid options: linear | logarithmic"
        )
    return _METHOD_ALIASES[key]


def generate_scales(minimum: float, maximum: float, steps: int, method: str = LINEAR) -> np.ndarray:
    """Generate an ascending array of `steps` scale values between `minimum` and `maximum`.

    Bounds given in the wrong order are swapped. Equal bounds always yield a
    single scale. Element 0 is exactly the (post-swap) minimum.
    """
    if isinstance(steps, bool) or not isinstance(steps, numbers.Integral):
        raise InvalidArgumentError(f"Number of sigma steps must be an integer; got {steps!r}")
    steps = int(steps)
    if steps < 1:
        raise InvalidArgumentError(f"Number of sigma values requested is less than 1: {steps}")

    method = normalize_step_method(method)

    minimum = float(minimum)
    maximum = float(maximum)
    if minimum > maximum:
        minimum, maximum = maximum, minimum

    if minimum == maximum:
        steps = 1

    if method == LOGARITHMIC and minimum <= 0:
        raise InvalidArgumentError(
            f"Logarithmic sigma steps require a positive minimum sigma; got {minimum}"
        )

    scales = np.empty(steps, dtype=np.float64)
    scales[0] = minimum
    if steps == 1:
        return scales

    if method == LINEAR:
        step = max(MIN_STEP, (maximum - minimum) / (steps - 1))
        for i in range(1, steps):
            scales[i] = minimum + i * step
    else:
        log_min = math.log(minimum)
        step = max(MIN_STEP, (math.log(maximum) - log_min) / (steps - 1))
        for i in range(1, steps):
            scales[i] = math.exp(log_min + i * step)

    return scales


def equispaced_scales(minimum: float, maximum: float, steps: int) -> np.ndarray:
    return generate_scales(minimum, maximum, steps, LINEAR)


def logarithmic_scales(minimum: float, maximum: float, steps: int) -> np.ndarray:
    return generate_scales(minimum, maximum, steps, LOGARITHMIC)
