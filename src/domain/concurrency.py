"""
Concurrent candidate evaluation.

Runs independent lookups (DNS hosts, profile pages) in parallel while keeping
a fixed precedence order: a later candidate only wins once every earlier one
has answered without a match.
"""

import logging
import time
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def first_in_order(
    calls: Sequence[Callable[[], T]],
    accept: Callable[[T], bool],
    deadline_seconds: float,
) -> tuple[int, T] | None:
    """
    Run every call concurrently and return the first accepted result by position.

    Args:
        calls: Zero-argument callables, highest precedence first
        accept: Predicate applied to each result
        deadline_seconds: Overall wait budget; calls still running after it
            are treated as "no match" and left to finish in the background

    Returns:
        (index, result) of the first accepted call in precedence order,
        or None if nothing was accepted
    """
    if not calls:
        return None

    executor = ThreadPoolExecutor(max_workers=len(calls), thread_name_prefix="verify-candidate")
    try:
        futures = [executor.submit(call) for call in calls]
        deadline = time.monotonic() + deadline_seconds

        for index, future in enumerate(futures):
            remaining = max(0.0, deadline - time.monotonic())
            try:
                result = future.result(timeout=remaining)
            except FutureTimeout:
                logger.warning("Candidate %d did not answer before the deadline", index)
                continue
            if accept(result):
                return index, result
        return None
    finally:
        # Outstanding calls are bounded by their own timeouts.
        executor.shutdown(wait=False, cancel_futures=True)
