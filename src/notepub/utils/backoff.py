"""Exponential backoff for editor action retries.

notepub never retries API calls; only browser actions are retried, with
the delay computed here.
"""

from __future__ import annotations

import random


def compute_backoff(
    attempt: int,
    base: float = 0.5,
    maximum: float = 5.0,
    jitter: bool = True,
) -> float:
    """Compute the delay before the next attempt.

    The delay is ``base * 2^attempt`` capped at *maximum*.  When *jitter*
    is enabled it is randomly scaled to between 50 % and 100 % of that
    value.

    Parameters
    ----------
    attempt:
        The attempt that just failed (0-indexed).
    base:
        Base delay in seconds.
    maximum:
        Maximum delay cap in seconds.
    jitter:
        Whether to apply random jitter.

    Returns
    -------
    float
        Delay in seconds.
    """
    delay = min(base * (2 ** attempt), maximum)
    if jitter:
        delay *= 0.5 + random.random() * 0.5
    return delay
