import logging
import tomllib
from pathlib import Path
from typing import Annotated, Any

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from nodecraft._config import ConfigError, get_settings
from nodecraft._document import Literal
from nodecraft._engine import Engine
from nodecraft._errors import EvaluationError, StructuralError
from nodecraft._io import (
    DocumentFileError,
    LoadedDocument,
    decode_literal,
    export_result_to_toml,
    load_document_from_toml,
    to_plain,
)
from nodecraft._proto import LiteralArgument, NodeArgument
from nodecraft._registry import default_registry

app = typer.Typer()

logger = logging.getLogger(__name__)
# Console for stderr (info/errors)
err_console = Console(stderr=True)
# Console for stdout (results)
out_console = Console()


@app.callback()
def callback(
    *,
    verbose: bool = typer.Option(default=False, help="Enable verbose output"),
) -> None:
    """Nodecraft CLI."""
    log_level = logging.DEBUG if verbose else logging.INFO

    # Configure rich logging handler to output to stderr
    logging.basicConfig(
        level=log_level,
        format="%(message)s",
        handlers=[
            RichHandler(
                console=err_console,
                show_time=False,
                show_path=verbose,
                rich_tracebacks=True,
            ),
        ],
    )


def _parse_assignment(assignment: str) -> tuple[str, str, Any]:
    """Parse ``NODE.SLOT=VALUE``. VALUE is read as a TOML value, falling back to a plain string."""
    target, sep, raw = assignment.partition("=")
    node, dot, slot = target.strip().partition(".")
    if not sep or not dot or not node or not slot:
        msg = f"Invalid assignment '{assignment}'. Expected format: NODE.SLOT=VALUE"
        raise typer.BadParameter(msg)
    try:
        value = tomllib.loads(f"v = {raw.strip()}")["v"]
    except tomllib.TOMLDecodeError:
        value = raw.strip()
    return node, slot, value


def _load_engine(path: Path) -> tuple[Engine, LoadedDocument]:
    try:
        settings = get_settings()
    except ConfigError as e:
        err_console.print(f"[red]✗ {escape(str(e))}[/red]")
        raise typer.Exit(code=1) from e

    engine = Engine(settings=settings)
    err_console.print(f"[cyan]Loading document from:[/cyan] {path}")
    try:
        loaded = load_document_from_toml(path, engine.registry)
    except (OSError, DocumentFileError, StructuralError, ValueError) as e:
        err_console.print(f"[red]✗ Could not load document: {escape(str(e))}[/red]")
        raise typer.Exit(code=1) from e

    # The engine owns the loaded graph from here on
    engine.graph = loaded.graph
    return engine, loaded


def _resolve_output(loaded: LoadedDocument, name: str) -> Any:
    try:
        return loaded.node(name)
    except DocumentFileError as e:
        err_console.print(f"[red]✗ {escape(str(e))}[/red]")
        raise typer.Exit(code=1) from e


@app.command()
def kinds() -> None:
    """List the registered node kinds."""
    registry = default_registry()
    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Kind", style="bold", no_wrap=True)
    table.add_column("Inputs")
    table.add_column("Output", style="yellow")
    table.add_column("Foldable", justify="center")

    for descriptor in registry:
        inputs = ", ".join(f"{sig.name}: {sig.type}" for sig in descriptor.inputs)
        table.add_row(
            descriptor.kind,
            escape(inputs),
            escape(str(descriptor.output_type)),
            "✓" if descriptor.foldable else "",
        )

    out_console.print(Panel(table, title="[bold]Node kinds[/bold]", border_style="cyan"))


@app.command(name="compile")
def compile_(
    path: Annotated[Path, typer.Argument(help="Path to the document TOML file")],
    *,
    output: Annotated[str, typer.Option("-o", "--output", help="Name of the requested output node")],
) -> None:
    """Compile a document and show the resulting proto graph."""
    engine, loaded = _load_engine(path)
    output_id = _resolve_output(loaded, output)

    try:
        proto_graph = engine.compile(output_id)
    except StructuralError as e:
        err_console.print(f"[red]✗ {escape(str(e))}[/red]")
        raise typer.Exit(code=1) from e

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Node", style="bold")
    table.add_column("Kind")
    table.add_column("Arguments")
    table.add_column("Type", style="yellow")

    for node in proto_graph:
        arguments: list[str] = []
        for argument in node.arguments:
            match argument:
                case LiteralArgument(value):
                    arguments.append(repr(to_plain(value)))
                case NodeArgument(ordinal, _, coercion_name):
                    arguments.append(f"#{ordinal}" + (f" ({coercion_name})" if coercion_name else ""))
        kind = f"{node.kind} [dim](folded)[/dim]" if node.folded else node.kind
        table.add_row(
            str(node.ordinal),
            escape(loaded.name_of(node.node_id)),
            kind,
            escape(", ".join(arguments)),
            escape(str(node.output_type)),
        )

    out_console.print(
        Panel(
            table,
            title=f"[bold]Proto graph: {escape(output)}[/bold]",
            subtitle=f"[dim]{len(proto_graph)} of {len(engine.graph)} nodes[/dim]",
            border_style="cyan",
        ),
    )


@app.command(name="eval")
def eval_(
    path: Annotated[Path, typer.Argument(help="Path to the document TOML file")],
    *,
    output: Annotated[str, typer.Option("-o", "--output", help="Name of the requested output node")],
    assignments: Annotated[
        list[str] | None,
        typer.Option("--set", help="Override a literal input before evaluating, as NODE.SLOT=VALUE"),
    ] = None,
    export: Annotated[
        Path | None,
        typer.Option("--export", help="Write the result to a TOML file"),
    ] = None,
) -> None:
    """Evaluate a document for one requested output."""
    engine, loaded = _load_engine(path)
    output_id = _resolve_output(loaded, output)

    for assignment in assignments or []:
        node_name, slot, raw = _parse_assignment(assignment)
        node_id = _resolve_output(loaded, node_name)
        descriptor = engine.registry.lookup(engine.graph.get(node_id).kind)
        signature = descriptor.input(slot)
        value = decode_literal(raw, signature.type) if signature is not None else raw
        try:
            engine.graph.set_input(node_id, slot, Literal(value))
        except StructuralError as e:
            err_console.print(f"[red]✗ {escape(str(e))}[/red]")
            raise typer.Exit(code=1) from e
        logger.debug("Set %s.%s = %r", node_name, slot, value)

    try:
        result = engine.evaluate(output_id)
    except (StructuralError, EvaluationError) as e:
        err_console.print(f"[red]✗ {escape(str(e))}[/red]")
        raise typer.Exit(code=1) from e

    err_console.print(
        f"[green]✓ Evaluated[/green] [bold]{escape(output)}[/bold]"
        f" [dim]({len(result.computed)} computed, {len(result.reused)} cached)[/dim]",
    )
    out_console.print(escape(repr(to_plain(result.value))))

    if export is not None:
        export_result_to_toml(output, result, export)
        err_console.print(f"[cyan]Exported result to:[/cyan] {export}")


def main() -> None:
    app()


__all__ = ["app", "main"]
