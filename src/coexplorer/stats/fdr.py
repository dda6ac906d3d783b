"""
Benjamini-Hochberg q-values for co-expression p-values.

The default procedure reports the per-rank estimate

    q_i = min(1, p_i * n / i)        (i = 1..n in ascending p-value order)

without the step-up pass that takes the cumulative minimum from the largest
rank down. Adjacent q-values are therefore independent estimates and are not
guaranteed to be non-decreasing. ``monotone=True`` applies the standard
step-up adjustment instead.

References:
    Benjamini, Y., & Hochberg, Y. (1995). Controlling the false discovery
    rate: a practical and powerful approach to multiple testing.
    Journal of the Royal Statistical Society: Series B, 57(1), 289-300.
"""

from __future__ import annotations

from typing import Sequence

import numpy as np
from numpy.typing import NDArray

__all__ = ['calculate_q_values']


def calculate_q_values(
    sorted_p_values: Sequence[float] | NDArray[np.float64],
    monotone: bool = False,
) -> NDArray[np.float64]:
    """
    Compute Benjamini-Hochberg q-values for p-values already in ascending order.

    Ranks are positional: tied p-values keep the rank of their position in
    the input, so ties can receive different q-values. Inputs are not
    validated; p-values outside [0, 1] give undefined output.

    Args:
        sorted_p_values: P-values sorted ascending by the caller.
        monotone: If True, enforce non-decreasing q-values with the step-up
            (cumulative minimum) pass. Default False.

    Returns:
        Array of q-values, same length and order as the input.

    Example:
        >>> calculate_q_values([0.01, 0.02, 0.03, 0.5])
        array([0.04, 0.04, 0.04, 0.5 ])
    """
    p_values = np.asarray(sorted_p_values, dtype=np.float64)
    n = len(p_values)
    if n == 0:
        return np.array([], dtype=np.float64)

    if monotone:
        from scipy.stats import false_discovery_control
        return false_discovery_control(p_values, method='bh')

    ranks = np.arange(1, n + 1, dtype=np.float64)
    return np.minimum(p_values * n / ranks, 1.0)
