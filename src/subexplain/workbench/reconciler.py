# src/subexplain/workbench/reconciler.py

from __future__ import annotations
import asyncio
import logging
import math
from typing import Awaitable, Callable, Iterable, List, Optional, Set, Tuple

from .request import ExplainRequest
from .scoring import CausalEffect

"""
Single-flight reconciliation of asynchronous scorer results.

Each submission takes the next generation id. When a computation finishes,
its ranked result is written only if its id is still the latest one, so a
slow early request can never overwrite the answer to a later one. Nothing is
cancelled on the scorer side; superseded results are dropped on arrival.

Failures and timeouts leave the displayed result as it was. The pending slot
is released on every exit path.
"""

__all__ = [
    "rank_effects",
    "ScoreReconciler",
]

logger = logging.getLogger(__name__)

ScoreCall = Callable[[ExplainRequest], Awaitable[List[CausalEffect]]]


def _finite(v) -> bool:
    try:
        return math.isfinite(v)
    except TypeError:
        return False


def rank_effects(effects: Iterable[CausalEffect]) -> Tuple[CausalEffect, ...]:
    """
    Drop non-finite responsibilities; sort the rest descending.

    The sort is stable, so equal scores keep the scorer's order.

    >>> rank_effects([CausalEffect("a", 1.0), CausalEffect("b", float("nan")), CausalEffect("c", 3.0)])
    (CausalEffect(fid='c', responsibility=3.0), CausalEffect(fid='a', responsibility=1.0))
    """
    effects = list(effects)
    kept = [e for e in effects if _finite(e.responsibility)]
    if len(kept) != len(effects):
        logger.debug("dropped %d non-finite causal effects", len(effects) - len(kept))
    return tuple(sorted(kept, key=lambda e: e.responsibility, reverse=True))


class ScoreReconciler:
    """
    Owns the displayed explanation result and the pending-computation slot.

    Parameters
    ----------
    scorer : callable
        ``async scorer(request) -> list[CausalEffect]``.
    timeout : float, optional
        Seconds before a computation is abandoned (treated as a failure).

    Attributes
    ----------
    result : tuple[CausalEffect, ...]
        Last successfully applied, ranked result (read-only).
    pending : int or None
        Generation id of the computation currently tracked, if any.
    generation : int
        Id handed to the most recent submission.
    """

    def __init__(self, scorer: ScoreCall, *, timeout: Optional[float] = None):
        self._scorer = scorer
        self._timeout = timeout
        self._generation = 0
        self._pending: Optional[int] = None
        self._result: Tuple[CausalEffect, ...] = ()
        self._tasks: Set["asyncio.Task[bool]"] = set()

    # ---- read-only state ----

    @property
    def result(self) -> Tuple[CausalEffect, ...]:
        return self._result

    @property
    def pending(self) -> Optional[int]:
        return self._pending

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def in_flight(self) -> Tuple["asyncio.Task[bool]", ...]:
        """Scheduled computations that have not finished yet."""
        return tuple(self._tasks)

    # ---- transitions ----

    def reset(self) -> None:
        """Clear the result and supersede anything in flight."""
        self._generation += 1
        self._pending = None
        self._result = ()

    def _begin(self, request: Optional[ExplainRequest]) -> int:
        self._generation += 1
        gen = self._generation
        if request is None:
            # nothing to explain: settle immediately, no scorer call
            self._pending = None
            self._result = ()
        else:
            self._pending = gen
        return gen

    async def _run(self, gen: int, request: Optional[ExplainRequest]) -> bool:
        if request is None:
            return True
        try:
            call = self._scorer(request)
            if self._timeout is not None:
                raw = await asyncio.wait_for(call, self._timeout)
            else:
                raw = await call
            ranked = rank_effects(raw)
        except asyncio.TimeoutError:
            logger.warning("scorer timed out after %ss (generation %d); keeping previous result", self._timeout, gen)
            return False
        except Exception:
            logger.warning("scorer failed (generation %d); keeping previous result", gen, exc_info=True)
            return False
        finally:
            if self._pending == gen:
                self._pending = None

        if gen != self._generation:
            logger.debug("discarding stale result of generation %d (latest is %d)", gen, self._generation)
            return False
        self._result = ranked
        return True

    async def submit(self, request: Optional[ExplainRequest]) -> bool:
        """
        Compute and, if still current on arrival, apply a ranked result.

        Returns
        -------
        bool
            True if this submission wrote the result.
        """
        gen = self._begin(request)
        return await self._run(gen, request)

    def schedule(self, request: Optional[ExplainRequest]) -> "asyncio.Task[bool]":
        """
        Run :meth:`submit` as a task on the running loop.

        The generation id is taken synchronously, so submission order is the
        call order even if tasks start later. The reconciler holds a reference
        to each task until it finishes.

        Raises
        ------
        RuntimeError
            If no event loop is running; nothing is submitted.
        """
        loop = asyncio.get_running_loop()
        gen = self._begin(request)
        task = loop.create_task(self._run(gen, request))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task
