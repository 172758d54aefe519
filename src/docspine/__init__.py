"""
docspine - streaming document enrichment over a document store.

- docspine.core: errors, logging, settings, store adapters
- docspine.pipeline: BatchCursor, Joiner, BulkBuffer, ChainRunner
"""

__version__ = "0.1.0"

from docspine.core import *  # noqa
from docspine.pipeline import *  # noqa
