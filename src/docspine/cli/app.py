"""
Root Typer application for the docspine CLI.

Commands:
    docspine version
    docspine chunks COLLECTION [--query JSON] [--sort JSON] [--field F] [--size N]
    docspine run CHAIN.yaml [--json]

Output batches go to stdout as JSON lines; logs and counters go to stderr.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import typer
from typer import Typer

from docspine.cli.utils import emit_batch, fail, make_store, parse_json_option, print_counts
from docspine.core.errors import DocSpineError
from docspine.core.logging import configure_logging
from docspine.core.settings import DocSpineSettings, get_settings
from docspine.pipeline.chain import ChainRunner
from docspine.pipeline.chain_yaml import load_chain
from docspine.pipeline.cursor import BatchCursor
from docspine.pipeline.specs import ChainSpec

app = Typer(
    name="docspine",
    help="docspine — batched lookups and enrichment over a document store.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


def _setup() -> DocSpineSettings:
    settings = get_settings()
    configure_logging(level=settings.log_level, json_format=settings.log_format == "json")
    return settings


@app.command("version")
def version() -> None:
    """Show version and exit."""
    from docspine import __version__

    typer.echo(f"docspine {__version__}")


@app.command("chunks")
def chunks(
    collection: str = typer.Argument(..., help="Collection to read."),
    query: str | None = typer.Option(None, "--query", "-q", help="Filter as a JSON object."),
    sort: str | None = typer.Option(None, "--sort", "-s", help="Sort as a JSON object."),
    field: list[str] = typer.Option([], "--field", "-f", help="Field to include (repeatable)."),
    size: int | None = typer.Option(
        None, "--size", "-n", min=1, help="Documents per batch [default: DOCSPINE_BATCH_SIZE]."
    ),
) -> None:
    """Print a collection's documents as JSON-line batches."""
    settings = _setup()
    filter_doc = parse_json_option(query, "--query")
    sort_doc = parse_json_option(sort, "--sort")

    async def _main() -> None:
        async with make_store(settings) as store:
            reader = BatchCursor(store.collection(collection))
            async for batch in reader.chunks(
                filter_doc, sort_doc, fields=field, size=size or settings.batch_size
            ):
                emit_batch(batch)

    try:
        asyncio.run(_main())
    except DocSpineError as e:
        fail(e)


@app.command("run")
def run(
    chain_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Chain YAML file."),
    json_out: bool = typer.Option(False, "--json", help="Print counters as JSON."),
) -> None:
    """Run a chain definition and print enriched batches plus stage counts."""
    settings = _setup()

    try:
        chain = load_chain(
            chain_file,
            batch_size=settings.batch_size,
            chunk_size=settings.output_chunk_size,
        )
        counts = asyncio.run(_run_chain(settings, chain))
    except DocSpineError as e:
        fail(e)
        return

    print_counts(counts, as_json=json_out, title=f"{chain.collection} chain")


async def _run_chain(settings: DocSpineSettings, chain: ChainSpec) -> dict[str, int]:
    async with make_store(settings) as store:
        chain_run = ChainRunner(store).lookups(chain)
        async for batch in chain_run:
            emit_batch(batch)
        return chain_run.counts.snapshot()


if __name__ == "__main__":  # pragma: no cover
    app()
