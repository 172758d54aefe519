"""
docspine.pipeline - batched reads, joins, buffered writes and chain runs.

Usage:
    from docspine.pipeline import ChainRunner, ChainSpec, JoinSpec

    chain = ChainSpec(
        collection="orders",
        stages=(JoinSpec(collection="customers", key="customer_id", self_key="_id"),),
    )
    run = ChainRunner(store).lookups(chain)
    async for batch in run:
        ...
    print(run.counts.snapshot())
"""

from .bulk import DEFAULT_BULK_THRESHOLD, BulkBuffer, BulkKind, BulkWriter
from .chain import ChainRun, ChainRunner, Cutoff, RunState
from .counters import Counters
from .cursor import BatchCursor
from .joiner import Joiner
from .queries import delete_all, find_first, find_last, get_list
from .specs import ChainSpec, JoinMode, JoinSpec, QuerySpec

__all__ = [
    # specs
    "QuerySpec",
    "JoinSpec",
    "JoinMode",
    "ChainSpec",
    # reading
    "BatchCursor",
    "Joiner",
    # writing
    "BulkKind",
    "BulkBuffer",
    "BulkWriter",
    "DEFAULT_BULK_THRESHOLD",
    # chains
    "ChainRunner",
    "ChainRun",
    "RunState",
    "Cutoff",
    "Counters",
    # queries
    "find_first",
    "find_last",
    "get_list",
    "delete_all",
]
