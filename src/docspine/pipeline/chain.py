"""
Chained lookups over a primary collection.

``ChainRunner.lookups(chain)`` streams the primary collection in batches,
enriches every batch through the chain's join stages, drops documents with
the per-stage predicates, and re-emits the survivors as output batches of
``chain.chunk_size`` documents.

Manifesto:
    - **One query per stage per batch:** joins never go document by document
    - **Order preserving:** documents leave in cursor order
    - **Accounted:** every stage's surviving count is recorded in ``counts``
    - **Per-run state:** counters, cursor and working set belong to one
      ``ChainRun``; a runner can start any number of independent runs

Architecture:
    ::

        ChainRun states: INIT → STREAMING → DONE
                                     └──→ FAILED (error re-raised)

        for batch in BatchCursor(primary):
            counts["in"] += len(batch)
            cutoff filter        (an emptied batch ends the whole run)
            primary filter       counts[primary] += survivors
            for stage in stages:
                Joiner.apply     (one $in query)
                stage filter     counts[stage] += survivors
            counts["out"] += survivors
            output buffer        yield every chunk_size documents
        yield remainder

    The cutoff early exit assumes the primary query is ordered so that once a
    whole batch falls before the cutoff, no later batch falls after it
    (typically the cutoff field descending).

Examples:
    >>> runner = ChainRunner(store)
    >>> run = runner.lookups(chain)
    >>> async for batch in run:
    ...     handle(batch)
    >>> run.counts.snapshot()
    {'in': 2, 'orders': 2, 'customers': 2, 'out': 2}

Tags:
    docspine, pipeline, chain, join, streaming, counters
"""

from __future__ import annotations

import uuid
from collections.abc import AsyncIterator, Callable
from datetime import datetime, timedelta
from enum import Enum
from typing import Any

from docspine.core.adapters.base import DocumentStore
from docspine.core.logging import get_logger
from docspine.core.paths import get_path
from docspine.core.timestamps import ensure_utc, utc_now

from .counters import Counters
from .cursor import BatchCursor
from .joiner import Joiner
from .specs import ChainSpec, JoinSpec

logger = get_logger(__name__)

Document = dict[str, Any]


class RunState(str, Enum):
    """Lifecycle of one chain run."""

    INIT = "init"
    STREAMING = "streaming"
    DONE = "done"
    FAILED = "failed"


class Cutoff:
    """Recency rule: keep documents whose ``field`` is newer than ``now - minutes``."""

    def __init__(self, field: str, minutes: float, now: datetime):
        self.field = field
        self.moment = ensure_utc(now) - timedelta(minutes=minutes)
        self.epoch = round(self.moment.timestamp())

    def admits(self, document: Document) -> bool:
        value = get_path(document, self.field)
        if isinstance(value, datetime):
            return ensure_utc(value) > self.moment
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return value > self.epoch
        return False


class ChainRun:
    """
    One execution of a ``ChainSpec``; an async iterator of output batches.

    Collection handles are resolved when the run is created, before any
    query is sent. The run can be iterated once. Abandoning iteration
    (``aclose()`` or dropping the run) closes the primary cursor.

    Attributes:
        run_id: Identifier carried by every event this run logs
        state: Current ``RunState``
        counts: Stage counters, readable during and after the run
        error: Exception that failed the run, if any
    """

    def __init__(
        self,
        store: DocumentStore,
        chain: ChainSpec,
        *,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.chain = chain
        self.run_id = uuid.uuid4().hex[:12]
        self._log = logger.bind(run_id=self.run_id)
        self.state = RunState.INIT
        self.error: BaseException | None = None
        self.counts = Counters(chain.labels)

        self._primary = store.collection(chain.collection)
        self._stages: list[tuple[JoinSpec, Joiner]] = [
            (stage, Joiner(store.collection(stage.collection))) for stage in chain.stages
        ]
        self._cutoff: Cutoff | None = None
        if chain.cutoff_enabled:
            self._cutoff = Cutoff(chain.cutoff_field, chain.cutoff_minutes, clock())
        self._iterator: AsyncIterator[list[Document]] | None = None

    def __aiter__(self) -> AsyncIterator[list[Document]]:
        if self._iterator is None:
            self._iterator = self._stream()
        return self._iterator

    async def aclose(self) -> None:
        """Stop the run early and release its cursor."""
        if self._iterator is not None:
            await self._iterator.aclose()

    async def collect(self) -> list[list[Document]]:
        """Drain the run and return every output batch."""
        return [batch async for batch in self]

    async def _stream(self) -> AsyncIterator[list[Document]]:
        chain = self.chain
        self.counts.reset()
        self.state = RunState.STREAMING

        self._log.info(
            "chain_run_started",
            primary=chain.collection,
            stages=[s.collection for s in chain.stages],
            cutoff=self._cutoff.epoch if self._cutoff else None,
        )
        source = BatchCursor(self._primary).iter_spec(chain.query)
        output: list[Document] = []
        try:
            async for batch in source:
                survivors = await self._process(batch)
                if survivors is None:
                    self._log.info("chain_cutoff_reached", field=chain.cutoff_field)
                    break
                for document in survivors:
                    output.append(document)
                    if len(output) >= chain.chunk_size:
                        yield output
                        output = []
            if output:
                yield output
        except GeneratorExit:
            self.state = RunState.DONE
            self._log.info("chain_run_abandoned", counts=self.counts.snapshot())
            raise
        except Exception as e:
            self.state = RunState.FAILED
            self.error = e
            self._log.error(
                "chain_run_failed",
                error=str(e),
                error_type=type(e).__name__,
                counts=self.counts.snapshot(),
            )
            raise
        finally:
            await source.aclose()

        self.state = RunState.DONE
        self._log.info("chain_run_completed", counts=self.counts.snapshot())

    async def _process(self, batch: list[Document]) -> list[Document] | None:
        """Filter and enrich one source batch; ``None`` means the cutoff ended the run."""
        chain = self.chain
        self.counts.increment("in", len(batch))

        if self._cutoff is not None:
            batch = [d for d in batch if self._cutoff.admits(d)]
            if not batch:
                return None

        if chain.filter is not None:
            batch = [d for d in batch if chain.filter(d)]
        self.counts.increment(chain.collection, len(batch))

        for stage, joiner in self._stages:
            await joiner.apply(batch, stage)
            if stage.filter is not None:
                batch = [d for d in batch if stage.filter(d)]
            self.counts.increment(stage.collection, len(batch))

        self.counts.increment("out", len(batch))
        return batch


class ChainRunner:
    """
    Starts chain runs against one caller-owned store.

    Each ``lookups()`` call returns an independent ``ChainRun`` with its own
    counters, so overlapping runs never share state.
    """

    def __init__(self, store: DocumentStore, *, clock: Callable[[], datetime] = utc_now):
        self.store = store
        self._clock = clock

    def lookups(self, chain: ChainSpec) -> ChainRun:
        """Create a run for ``chain``; iterate it to stream enriched batches."""
        return ChainRun(self.store, chain, clock=self._clock)


__all__ = ["RunState", "Cutoff", "ChainRun", "ChainRunner"]
