# src/subexplain/workbench/scoring.py

from __future__ import annotations
import asyncio
from dataclasses import dataclass
import logging
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Protocol

import httpx

from subexplain.errors import ScorerError
from .config import EXECUTION_MODES, ExplainerConfig
from .request import ExplainRequest

"""
Backends for the external causal-effect scorer.

Every backend is an awaitable ``backend(request) -> list[CausalEffect]``;
the scoring algorithm itself lives elsewhere. Two execution modes exist:

- ``worker``: a synchronous scoring function run on a background thread
- ``server``: the request payload POSTed as JSON to a remote service

The raw list is returned as received (no filtering or sorting); that is the
reconciler's job.
"""

__all__ = [
    "CausalEffect",
    "Scorer",
    "parse_effects",
    "WorkerScorer",
    "ServerScorer",
    "ScorerRegistry",
    "explain",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CausalEffect:
    """One contributing field and its responsibility score."""
    fid: str
    responsibility: float

    def to_dict(self) -> Dict[str, Any]:
        return {"fid": self.fid, "responsibility": self.responsibility}


class Scorer(Protocol):
    def __call__(self, request: ExplainRequest) -> Awaitable[List[CausalEffect]]: ...


def _as_float(v: Any) -> float:
    if isinstance(v, bool):
        return float("nan")
    try:
        return float(v)
    except (TypeError, ValueError):
        return float("nan")


def parse_effects(response: Any) -> List[CausalEffect]:
    """
    Read ``{"causalEffects": [{"fid", "responsibility"}, ...]}``.

    Unparseable responsibilities become NaN so the reconciler drops them.

    Raises
    ------
    ScorerError
        If the response is not a mapping with a ``causalEffects`` list.
    """
    if not isinstance(response, Mapping) or not isinstance(response.get("causalEffects"), list):
        raise ScorerError(f"malformed scorer response: {response!r:.200}")
    out: List[CausalEffect] = []
    for item in response["causalEffects"]:
        if isinstance(item, CausalEffect):
            out.append(item)
            continue
        try:
            out.append(CausalEffect(str(item["fid"]), _as_float(item.get("responsibility"))))
        except (KeyError, TypeError, AttributeError) as exc:
            raise ScorerError(f"malformed causal effect entry: {item!r}") from exc
    return out


class WorkerScorer:
    """
    In-process backend: run ``fn(payload) -> response`` off the event loop.

    Parameters
    ----------
    fn : callable
        Synchronous scorer taking the JSON payload and returning a mapping
        with a ``causalEffects`` list.
    """

    def __init__(self, fn: Callable[[Dict[str, Any]], Mapping[str, Any]]):
        self.fn = fn

    async def __call__(self, request: ExplainRequest) -> List[CausalEffect]:
        response = await asyncio.to_thread(self.fn, request.to_payload())
        return parse_effects(response)


class ServerScorer:
    """
    Remote backend: POST the payload to ``url`` with :mod:`httpx`.

    A client may be injected (tests, connection pooling); otherwise a
    short-lived ``httpx.AsyncClient`` is opened per call.
    """

    def __init__(self, url: str, *, timeout: float = 60.0, client: Optional[httpx.AsyncClient] = None):
        if not url:
            raise ValueError("ServerScorer needs a url")
        self.url = url
        self.timeout = timeout
        self.client = client

    async def _post(self, client: httpx.AsyncClient, payload: Dict[str, Any]) -> Any:
        r = await client.post(self.url, json=payload, timeout=self.timeout)
        r.raise_for_status()
        return r.json()

    async def __call__(self, request: ExplainRequest) -> List[CausalEffect]:
        payload = request.to_payload()
        try:
            if self.client is not None:
                js = await self._post(self.client, payload)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    js = await self._post(client, payload)
        except httpx.HTTPError as exc:
            raise ScorerError(f"scoring service at {self.url} failed: {exc}") from exc
        return parse_effects(js)


class ScorerRegistry:
    """Execution mode -> backend."""

    def __init__(self, backends: Optional[Mapping[str, Scorer]] = None):
        self._backends: Dict[str, Scorer] = {}
        for mode, backend in (backends or {}).items():
            self.register(mode, backend)

    def register(self, mode: str, backend: Scorer) -> None:
        if mode not in EXECUTION_MODES:
            raise ValueError(f"execution mode must be one of {EXECUTION_MODES}, got {mode!r}")
        self._backends[mode] = backend

    def get(self, mode: str) -> Scorer:
        if mode not in EXECUTION_MODES:
            raise ValueError(f"execution mode must be one of {EXECUTION_MODES}, got {mode!r}")
        try:
            return self._backends[mode]
        except KeyError:
            raise ScorerError(f"no scorer registered for execution mode {mode!r}") from None

    def __contains__(self, mode: str) -> bool:
        return mode in self._backends

    @classmethod
    def from_config(
        cls,
        config: ExplainerConfig,
        worker_fn: Optional[Callable[[Dict[str, Any]], Mapping[str, Any]]] = None,
    ) -> "ScorerRegistry":
        reg = cls()
        if worker_fn is not None:
            reg.register("worker", WorkerScorer(worker_fn))
        if config.server_url:
            reg.register("server", ServerScorer(config.server_url, timeout=config.timeout))
        return reg


async def explain(request: ExplainRequest, execution_mode: str, registry: ScorerRegistry) -> List[CausalEffect]:
    """Dispatch `request` to the backend registered for `execution_mode`."""
    backend = registry.get(execution_mode)
    logger.debug("explain via %s backend", execution_mode)
    return await backend(request)
