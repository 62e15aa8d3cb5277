"""
Command-line interface for komichi.

Commands:
    explore      walk the similarity graph around an actor's posts
    graph        rebuild a graph from persisted index records
    fingerprint  print SimHash fingerprints of texts
    config       create or display the configuration file
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import List, Optional

import click
from rich.console import Console
from rich.table import Table

from .client import (
    CandidateFetcher,
    Credentials,
    IdentityResolver,
    IndexRecordWriter,
    XrpcClient,
)
from .config import Config, ExplorationSettings, load_config
from .core.errors import ExplorationError, FetchError, InvalidIdentifierError
from .core.graph import GraphStore
from .engine import ExplorationEngine, ExplorationSession, IndexGraphLoader
from .semantic.fingerprint import fingerprint, fingerprint_corpus, hamming_distance, to_bitstring
from .semantic.strategy import create_strategy
from .utils.logging_setup import log_operation, setup_logging

console = Console()
logger = logging.getLogger(__name__)

PREVIEW_LENGTH = 60


def _preview(text: str) -> str:
    text = " ".join(text.split())
    if len(text) <= PREVIEW_LENGTH:
        return text
    return text[:PREVIEW_LENGTH - 1] + "…"


def _build_fetcher(config: Config, credentials: Optional[Credentials]) -> CandidateFetcher:
    timeout = float(config.get("service.timeout", 30.0))
    appview = XrpcClient(config.get("service.appview"), timeout=timeout)
    resolver = IdentityResolver(
        plc_directory=config.get("service.plc_directory"),
        doh_url=config.get("service.doh_url"),
        timeout=timeout,
    )
    authenticated = None
    if credentials is not None:
        authenticated = XrpcClient(credentials.pds, access_token=credentials.access_token,
                                   timeout=timeout)
    return CandidateFetcher(appview, resolver, authenticated=authenticated, timeout=timeout)


def _print_graph(graph: GraphStore, title: str) -> None:
    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("Source", style="cyan")
    table.add_column("Rank", justify="right", style="green")
    table.add_column("Target", style="yellow")
    table.add_column("Text", style="white")

    for edge in graph.edges():
        node = graph.get_metadata(edge.target)
        label = ""
        if node is not None:
            label = node.keywords or _preview(node.text)
        table.add_row(edge.source, str(edge.rank), edge.target, label)

    console.print(table)


def _write_output(graph: GraphStore, output: Optional[str]) -> None:
    if not output:
        return
    path = Path(output)
    path.write_text(json.dumps(graph.to_dict(), ensure_ascii=False, indent=2), encoding="utf-8")
    console.print(f"[green]✓ Wrote graph to {path}[/green]")


@click.group()
@click.option("--config", "config_path", type=click.Path(), help="Path to config file")
@click.option("--log-level", type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"],
                                               case_sensitive=False),
              help="Override the configured log level")
@click.pass_context
def cli(ctx, config_path, log_level):
    """Explore Bluesky posts by similarity."""
    try:
        config = load_config(config_path)
    except (FileNotFoundError, ValueError) as e:
        raise click.BadParameter(str(e), param_hint="--config")

    log_dir = config.get("logging.dir")
    setup_logging(
        level=log_level or config.get("logging.level", "INFO"),
        log_dir=Path(log_dir) if log_dir else None,
        file=bool(config.get("logging.file", False)),
        json_format=bool(config.get("logging.json", False)),
    )
    ctx.obj = config


@cli.command()
@click.argument("actor")
@click.option("--steps", default=1, show_default=True, type=click.IntRange(min=1),
              help="Number of exploration steps")
@click.option("--strategy", type=click.Choice(["fingerprint", "embedding"]),
              help="Representation strategy")
@click.option("--k", "k", type=click.IntRange(min=1), help="Neighbours per step")
@click.option("--expand/--no-expand", default=None, help="Search for more candidates per step")
@click.option("--persist/--no-persist", default=None,
              help="Write index records for own posts")
@click.option("--output", type=click.Path(), help="Write the graph as JSON")
@click.pass_context
def explore(ctx, actor, steps, strategy, k, expand, persist, output):
    """Explore posts similar to ACTOR's posts."""
    config: Config = ctx.obj
    if strategy is not None:
        config.set("exploration.strategy", strategy)
    if k is not None:
        config.set("exploration.k", k)
    if expand is not None:
        config.set("exploration.expansion.enabled", expand)
    if persist is not None:
        config.set("exploration.persist", persist)

    try:
        settings = ExplorationSettings.from_config(config)
    except ValueError as e:
        console.print(f"[red]Invalid configuration: {e}[/red]")
        ctx.exit(1)

    credentials = Credentials.from_env()
    log_operation(logger, "explore", actor=actor, steps=steps, strategy=settings.strategy,
                  authenticated=credentials is not None)
    ok = asyncio.run(_explore(config, settings, credentials, actor, steps, output))
    if not ok:
        ctx.exit(1)


async def _explore(config: Config, settings: ExplorationSettings,
                   credentials: Optional[Credentials], actor: str,
                   steps: int, output: Optional[str]) -> bool:
    fetcher = _build_fetcher(config, credentials)
    writer = IndexRecordWriter(timeout=float(config.get("service.timeout", 30.0))) \
        if credentials is not None else None
    engine = ExplorationEngine(fetcher, create_strategy(settings), settings,
                               writer=writer, credentials=credentials)
    ok = True
    try:
        with console.status(f"Loading posts of {actor}..."):
            await engine.initialize(actor)
            for _ in range(steps - 1):
                if await engine.advance() is None:
                    break
    except (FetchError, ExplorationError, InvalidIdentifierError) as e:
        console.print(f"[red]✗ {e.message}[/red]")
        ok = False
    finally:
        await engine.flush()
        await fetcher.close()
        if writer is not None:
            await writer.close()

    if len(engine.graph):
        _print_graph(engine.graph, f"Similar posts around {actor}")
        console.print(f"Visited {len(engine.state.visited)} posts in "
                      f"{len(engine.graph)} steps")
        _write_output(engine.graph, output)
    engine.session.close()
    return ok


@cli.command()
@click.argument("actor")
@click.option("--hydrate/--no-hydrate", default=False, help="Fetch text and authors of nodes")
@click.option("--output", type=click.Path(), help="Write the graph as JSON")
@click.pass_context
def graph(ctx, actor, hydrate, output):
    """Show the graph stored in ACTOR's index records."""
    config: Config = ctx.obj
    try:
        settings = ExplorationSettings.from_config(config)
    except ValueError as e:
        console.print(f"[red]Invalid configuration: {e}[/red]")
        ctx.exit(1)

    log_operation(logger, "graph", actor=actor, hydrate=hydrate)
    ok = asyncio.run(_graph(config, settings, actor, hydrate, output))
    if not ok:
        ctx.exit(1)


async def _graph(config: Config, settings: ExplorationSettings, actor: str,
                 hydrate: bool, output: Optional[str]) -> bool:
    fetcher = _build_fetcher(config, None)
    session = ExplorationSession(create_strategy(settings))
    loader = IndexGraphLoader(fetcher, session)
    try:
        with console.status(f"Loading index records of {actor}..."):
            await loader.load(actor)
            if hydrate:
                await loader.hydrate()
    except (FetchError, InvalidIdentifierError) as e:
        console.print(f"[red]✗ {e.message}[/red]")
        return False
    finally:
        await fetcher.close()

    _print_graph(session.graph, f"Index of {actor}")
    _write_output(session.graph, output)
    session.close()
    return True


@cli.command(name="fingerprint")
@click.argument("texts", nargs=-1, required=True)
@click.option("--ngram", default=3, show_default=True, type=click.IntRange(min=1),
              help="Characters per n-gram")
@click.option("--corpus", is_flag=True, help="Fingerprint all texts together")
@click.pass_context
def fingerprint_command(ctx, texts, ngram, corpus):
    """Print SimHash fingerprints of TEXTS."""
    if corpus:
        try:
            fp = fingerprint_corpus(texts, ngram)
        except ValueError:
            console.print(f"[red]✗ No text has {ngram} characters[/red]")
            ctx.exit(1)
        console.print(to_bitstring(fp), soft_wrap=True)
        return

    fingerprints: List = []
    for text in texts:
        try:
            fp = fingerprint(text, ngram)
        except ValueError:
            console.print(f"[yellow]⚠ {text!r} is shorter than {ngram} characters[/yellow]")
            fingerprints.append(None)
            continue
        fingerprints.append(fp)
        console.print(f"{to_bitstring(fp)}  {_preview(text)}", soft_wrap=True)

    if len(fingerprints) == 2 and all(fp is not None for fp in fingerprints):
        distance = hamming_distance(fingerprints[0], fingerprints[1])
        console.print(f"Hamming distance: {distance}")


@cli.group(name="config")
def config_group():
    """Manage the configuration file."""
    pass


@config_group.command(name="init")
@click.option("--path", type=click.Path(), default=".komichi.yml", show_default=True,
              help="Path for config file")
def config_init(path):
    """Write a configuration file with default values."""
    config_path = Path(path)
    if config_path.exists():
        if not click.confirm(f"Config file {path} already exists. Overwrite?"):
            console.print("[yellow]Aborted[/yellow]")
            return
    Config().save(config_path)
    console.print(f"[green]✓ Created config file at {path}[/green]")


@config_group.command(name="show")
@click.pass_context
def config_show(ctx):
    """Display the active configuration."""
    config: Config = ctx.obj
    console.print_json(json.dumps(config.to_dict()))


def main():
    cli(obj=None)


if __name__ == "__main__":
    main()
