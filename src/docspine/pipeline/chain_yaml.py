"""Pydantic models for chain YAML definitions.

Lets operators declare a chain in YAML and run it from the CLI, producing
the same ``ChainSpec`` that code-first callers build.

Usage::

    from docspine.pipeline.chain_yaml import ChainFile

    chain = ChainFile.from_yaml_file("chains/orders.yaml").to_chain_spec()

Example YAML::

    apiVersion: docspine.io/v1
    kind: Chain
    metadata:
      name: recent-orders
    spec:
      collection: orders
      query:
        filter: {status: paid}
        sort: {created: -1}
        fields: [customer_id, created, total]
        size: 500
      filter_ref: myapp.filters:has_total
      cutoff:
        field: created
        minutes: 60
      chunk_size: 1000
      stages:
        - collection: customers
          key: customer_id
          self_key: _id
          mode: single
          fields: [name, email]
        - collection: payments
          key: _id
          self_key: order_id
          mode: multi

Predicates are referenced as ``module:qualname`` and imported at load
time; a bad reference is a ``ConfigError``.

Tags:
    docspine, pipeline, yaml, declarative, config-driven
"""

from __future__ import annotations

import importlib
from collections.abc import Callable
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from docspine.core.errors import ConfigError

from .specs import DEFAULT_BATCH_SIZE, DEFAULT_CUTOFF_FIELD, ChainSpec, JoinMode, JoinSpec, QuerySpec


def resolve_callable_ref(ref: str) -> Callable[..., Any]:
    """Import and return the callable identified by ``'module:qualname'``."""
    module_path, _, attr_path = ref.partition(":")
    if not module_path or not attr_path:
        raise ConfigError(f"Invalid callable ref (expected 'module:qualname'): {ref!r}")
    try:
        obj: Any = importlib.import_module(module_path)
        for part in attr_path.split("."):
            obj = getattr(obj, part)
    except (ImportError, AttributeError) as e:
        raise ConfigError(f"Cannot resolve callable ref {ref!r}: {e}", cause=e) from e
    if not callable(obj):
        raise ConfigError(f"{ref!r} resolved to non-callable: {type(obj).__name__}")
    return obj


def _resolve(ref: str | None) -> Callable[..., Any] | None:
    return resolve_callable_ref(ref) if ref else None


class QuerySection(BaseModel):
    """Primary query section."""

    model_config = ConfigDict(extra="forbid")

    filter: dict[str, Any] = Field(default_factory=dict)
    sort: dict[str, Literal[1, -1]] | None = None
    fields: list[str] = Field(default_factory=list)
    size: int | None = Field(default=None, ge=1)

    def to_query_spec(self, default_size: int = DEFAULT_BATCH_SIZE) -> QuerySpec:
        return QuerySpec(
            filter=self.filter,
            sort=self.sort,
            fields=tuple(self.fields),
            size=self.size or default_size,
        )


class CutoffSection(BaseModel):
    """Recency cutoff section."""

    model_config = ConfigDict(extra="forbid")

    field: str = Field(default=DEFAULT_CUTOFF_FIELD, min_length=1)
    minutes: float = Field(..., gt=0)


class StageSection(BaseModel):
    """One join stage."""

    model_config = ConfigDict(extra="forbid")

    collection: str = Field(..., min_length=1)
    key: str = Field(..., min_length=1)
    self_key: str | None = None
    mode: JoinMode = JoinMode.SINGLE
    fields: list[str] = Field(default_factory=list)
    query: dict[str, Any] = Field(default_factory=dict)
    sort: dict[str, Literal[1, -1]] | None = None
    filter_ref: str | None = None

    def to_join_spec(self) -> JoinSpec:
        return JoinSpec(
            collection=self.collection,
            key=self.key,
            self_key=self.self_key,
            mode=self.mode,
            fields=tuple(self.fields),
            query=self.query,
            sort=self.sort,
            filter=_resolve(self.filter_ref),
        )


class ChainSection(BaseModel):
    """The 'spec' section of a chain file."""

    model_config = ConfigDict(extra="forbid")

    collection: str = Field(..., min_length=1)
    query: QuerySection = Field(default_factory=QuerySection)
    filter_ref: str | None = None
    cutoff: CutoffSection | None = None
    chunk_size: int | None = Field(default=None, ge=1)
    stages: list[StageSection] = Field(default_factory=list)


class ChainMetadata(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1)
    description: str = ""


class ChainFile(BaseModel):
    """Root model of a chain YAML document."""

    model_config = ConfigDict(extra="forbid")

    apiVersion: Literal["docspine.io/v1"] = "docspine.io/v1"
    kind: Literal["Chain"] = "Chain"
    metadata: ChainMetadata
    spec: ChainSection

    def to_chain_spec(
        self,
        *,
        batch_size: int = DEFAULT_BATCH_SIZE,
        chunk_size: int = DEFAULT_BATCH_SIZE,
    ) -> ChainSpec:
        """
        Build the runtime ``ChainSpec``, importing any referenced predicates.

        ``batch_size`` and ``chunk_size`` apply only where the file leaves
        ``query.size`` or ``chunk_size`` unset.
        """
        section = self.spec
        return ChainSpec(
            collection=section.collection,
            query=section.query.to_query_spec(batch_size),
            filter=_resolve(section.filter_ref),
            stages=tuple(stage.to_join_spec() for stage in section.stages),
            cutoff_field=section.cutoff.field if section.cutoff else DEFAULT_CUTOFF_FIELD,
            cutoff_minutes=section.cutoff.minutes if section.cutoff else None,
            chunk_size=section.chunk_size or chunk_size,
        )

    @classmethod
    def from_yaml(cls, yaml_content: str) -> ChainFile:
        """Parse and validate YAML content.

        Raises:
            ConfigError: If the YAML is invalid or doesn't match the schema.
        """
        try:
            data = yaml.safe_load(yaml_content)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML: {e}", cause=e) from e
        try:
            return cls.model_validate(data)
        except PydanticValidationError as e:
            raise ConfigError(f"Invalid chain definition: {e}", cause=e) from e

    @classmethod
    def from_yaml_file(cls, path: str | Path) -> ChainFile:
        """Load and validate a chain YAML file."""
        try:
            content = Path(path).read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigError(f"Cannot read chain file {path}: {e}", cause=e) from e
        return cls.from_yaml(content)


def load_chain(
    path: str | Path,
    *,
    batch_size: int = DEFAULT_BATCH_SIZE,
    chunk_size: int = DEFAULT_BATCH_SIZE,
) -> ChainSpec:
    """Read a chain YAML file straight into a ``ChainSpec``."""
    return ChainFile.from_yaml_file(path).to_chain_spec(batch_size=batch_size, chunk_size=chunk_size)


__all__ = [
    "ChainFile",
    "ChainSection",
    "StageSection",
    "QuerySection",
    "CutoffSection",
    "load_chain",
    "resolve_callable_ref",
]
