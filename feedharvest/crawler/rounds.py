"""
Round sources.

A round is an externally advancing epoch number used to group archived items
into submittable batches. The crawl loop asks for the current round on every
scroll iteration.
"""

import time
from typing import Callable, Optional, Protocol, Union, Awaitable

from feedharvest.core.config import Config


class RoundSource(Protocol):
    async def get_current_round(self) -> int:
        ...


class FixedRoundSource:
    """Always reports the same round; useful for one-off runs and tests."""

    def __init__(self, round: int):
        self.round = round

    async def get_current_round(self) -> int:
        return self.round


class IntervalRoundSource:
    """
    Rounds of fixed length counted from an origin timestamp.

    Example:
        >>> src = IntervalRoundSource(origin_ts=0, round_length_s=3600, clock=lambda: 7300)
        >>> # await src.get_current_round() == 2
    """

    def __init__(self, origin_ts: float, round_length_s: float, clock: Callable[[], float] = time.time):
        if round_length_s <= 0:
            raise ValueError("round_length_s must be positive")
        self.origin_ts = origin_ts
        self.round_length_s = round_length_s
        self._clock = clock

    async def get_current_round(self) -> int:
        elapsed = max(0.0, self._clock() - self.origin_ts)
        return int(elapsed // self.round_length_s)


class CallableRoundSource:
    """Adapts a plain (sync or async) callable, e.g. a node's round getter."""

    def __init__(self, getter: Callable[[], Union[int, Awaitable[int]]]):
        self._getter = getter

    async def get_current_round(self) -> int:
        value = self._getter()
        if hasattr(value, "__await__"):
            value = await value
        return int(value)


def make_round_source(config: Config, fixed: Optional[int] = None) -> RoundSource:
    """Fixed round when one is given (argument or ROUND_FIXED), interval rounds otherwise."""
    if fixed is None:
        fixed = config.round_fixed
    if fixed is not None:
        return FixedRoundSource(fixed)
    return IntervalRoundSource(config.round_origin_ts, config.round_length_s)
