from __future__ import annotations

"""Needlepoint Command Line Interface."""

import json
from pathlib import Path
from typing import List, Optional

import typer
from rich.table import Table

from needlepoint.core.errors import NeedlepointError
from needlepoint.core.model import CodeNode, Language, LLMConfig, LLMProvider
from needlepoint.llm.context import build_prompt
from needlepoint.session import ProjectSession
from needlepoint.settings import Settings
from needlepoint.utils.logging import ProgressReporter, console, get, show_plan_tree
from needlepoint.web.server import DEFAULT_PORT, run_server

app = typer.Typer(
    name="needlepoint",
    help="CLI for Needlepoint: plan and generate a dependency graph of source files.",
    add_completion=False,
)

_PROJECT_ARG = typer.Argument(Path("."), help="Project directory (or its needlepoint.yaml).")


def _open(project: Path) -> ProjectSession:
    try:
        settings = Settings.from_env()
    except ValueError as e:
        console.print(f"[bold red]Invalid configuration: {e}[/]")
        raise typer.Exit(code=1)
    get(settings.log_level)
    try:
        return ProjectSession.load(project, settings=settings)
    except NeedlepointError as e:
        console.print(f"[bold red]Error: {e}[/]")
        raise typer.Exit(code=1)


def _resolve(session: ProjectSession, ref: str) -> CodeNode:
    """Find a node by id or by file path."""
    node = session.graph.node(ref) or session.graph.find_by_path(ref)
    if node is None:
        console.print(f"[bold red]Error: no node with id or path '{ref}'[/]")
        raise typer.Exit(code=1)
    return node


@app.command()
def new(
    directory: Path = typer.Argument(..., help="Directory to create the project in.", file_okay=False),
    name: str = typer.Option("New Project", "--name", "-n", help="Project name."),
):
    """Create an empty project."""
    session = ProjectSession.create(directory, name)
    console.print(f"[green]Created project '{name}' in {session.project.project_path}[/]")


@app.command()
def nodes(project: Path = _PROJECT_ARG):
    """List the nodes of a project."""
    session = _open(project)
    if not len(session.graph):
        console.print("[yellow]No nodes yet.[/]")
        return

    table = Table(title=session.project.manifest.name)
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Name", style="cyan")
    table.add_column("Path", style="magenta")
    table.add_column("Language", style="blue")
    table.add_column("Status", style="green")
    table.add_column("Depends on", style="yellow")

    for node in session.graph.nodes():
        deps = [session.graph.node(e.source) for e in session.graph.dependencies(node.id)]
        table.add_row(
            node.id,
            node.name,
            node.file_path,
            node.language.display_name,
            node.status.value,
            ", ".join(d.name for d in deps if d is not None) or "-",
        )
    console.print(table)


@app.command()
def node(
    ref: str = typer.Argument(..., help="Node id or file path."),
    project: Path = typer.Option(Path("."), "--project", "-P"),
):
    """Show one node, including its generated code."""
    session = _open(project)
    found = _resolve(session, ref)
    console.print(f"[bold]ID:[/] {found.id}")
    console.print(f"[bold]Name:[/] {found.name}")
    console.print(f"[bold]Path:[/] {found.file_path}")
    console.print(f"[bold]Status:[/] {found.status.value}")
    console.print(f"[bold]Description:[/] {found.description}")
    if found.error_message:
        console.print(f"[bold red]Error:[/] {found.error_message}")
    if found.generated_code:
        console.rule("Generated code")
        typer.echo(found.generated_code)


@app.command("add-node")
def add_node(
    project: Path = _PROJECT_ARG,
    name: str = typer.Option(..., "--name", "-n"),
    path: str = typer.Option(..., "--path", "-p", help="File path relative to the project root."),
    language: Language = typer.Option(Language.TYPESCRIPT, "--language", "-l"),
    description: str = typer.Option("", "--description", "-d"),
    purpose: str = typer.Option("", "--purpose"),
    provider: LLMProvider = typer.Option(LLMProvider.ANTHROPIC, "--provider"),
    model: Optional[str] = typer.Option(None, "--model"),
):
    """Add a node and create its (empty) file."""
    session = _open(project)
    llm = LLMConfig(provider=provider, model=model) if model else LLMConfig(provider=provider)
    node = session.add_node(
        name=name,
        file_path=path,
        language=language,
        description=description,
        purpose=purpose,
        llm_config=llm,
    )
    session.save()
    console.print(f"[green]Added[/] [cyan]{node.name}[/] ({node.file_path}) id={node.id}")


@app.command("update-node")
def update_node(
    ref: str = typer.Argument(..., help="Node id or file path."),
    project: Path = typer.Option(Path("."), "--project", "-P"),
    name: Optional[str] = typer.Option(None, "--name", "-n"),
    path: Optional[str] = typer.Option(None, "--path", "-p", help="Move the node (and its file) to this path."),
    description: Optional[str] = typer.Option(None, "--description", "-d"),
    purpose: Optional[str] = typer.Option(None, "--purpose"),
):
    """Edit a node's properties."""
    session = _open(project)
    found = _resolve(session, ref)
    fields = {
        k: v
        for k, v in {"name": name, "file_path": path, "description": description, "purpose": purpose}.items()
        if v is not None
    }
    if not fields:
        console.print("[yellow]Nothing to update.[/]")
        return
    res = session.update_node(found.id, **fields)
    if not res.ok:
        console.print(f"[bold red]Error: {res.message}[/]")
        raise typer.Exit(code=1)
    session.save()
    console.print(f"[green]Updated[/] [cyan]{res.value.name}[/] ({res.value.file_path})")


@app.command()
def edges(project: Path = _PROJECT_ARG):
    """List the edges of a project."""
    session = _open(project)
    if not session.graph.edges():
        console.print("[yellow]No edges yet.[/]")
        return

    table = Table(title=session.project.manifest.name)
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Source", style="cyan")
    table.add_column("Target", style="magenta")
    table.add_column("Label", style="yellow")
    for edge in session.graph.edges():
        src, dst = session.graph.node(edge.source), session.graph.node(edge.target)
        table.add_row(
            edge.id,
            src.file_path if src else edge.source,
            dst.file_path if dst else edge.target,
            edge.label or "-",
        )
    console.print(table)


@app.command("add-edge")
def add_edge(
    source: str = typer.Argument(..., help="Dependency node (id or file path)."),
    target: str = typer.Argument(..., help="Dependent node (id or file path)."),
    project: Path = typer.Option(Path("."), "--project", "-P"),
    label: str = typer.Option("", "--label"),
):
    """Declare that TARGET depends on SOURCE."""
    session = _open(project)
    src, dst = _resolve(session, source), _resolve(session, target)
    res = session.add_edge(src.id, dst.id, label)
    if not res.ok:
        console.print(f"[bold red]Error: {res.message}[/]")
        raise typer.Exit(code=1)
    session.save()
    console.print(f"[green]Edge[/] {src.file_path} → {dst.file_path}")


@app.command("delete-edge")
def delete_edge(
    edge_id: str = typer.Argument(..., help="Edge id (see `needlepoint edges`)."),
    project: Path = typer.Option(Path("."), "--project", "-P"),
):
    """Remove one dependency edge."""
    session = _open(project)
    if session.delete_edge(edge_id) is None:
        console.print(f"[bold red]Error: no edge with id '{edge_id}'[/]")
        raise typer.Exit(code=1)
    session.save()
    console.print("[green]Deleted edge.[/]")


@app.command("delete-node")
def delete_node(
    node: List[str] = typer.Argument(..., help="Node ids or file paths."),
    project: Path = typer.Option(Path("."), "--project", "-P"),
):
    """Delete nodes with their edges; files are moved to the project trash."""
    session = _open(project)
    ids = [_resolve(session, ref).id for ref in node]
    action = session.delete_nodes(ids)
    session.save()
    console.print(f"[green]Deleted {len(action.deleted_nodes) if action else 0} node(s).[/]")


@app.command()
def validate(project: Path = _PROJECT_ARG):
    """Check the graph for cycles, broken edges and incomplete nodes."""
    session = _open(project)
    report = session.validate()
    for issue in report.errors:
        console.print(f"[bold red]error[/] {issue.code}: {issue.message}")
    for issue in report.warnings:
        console.print(f"[yellow]warning[/] {issue.code}: {issue.message}")
    if not report.is_valid:
        console.print(f"[bold red]Validation failed with {len(report.errors)} error(s).[/]")
        raise typer.Exit(code=1)
    console.print("[bold green]Project is valid.[/]")


@app.command()
def plan(
    project: Path = _PROJECT_ARG,
    as_json: bool = typer.Option(False, "--json", help="Print the plan as JSON."),
):
    """Show the wave-by-wave execution plan."""
    session = _open(project)
    if as_json:
        typer.echo(json.dumps(session.get_execution_plan(), indent=2))
        return
    show_plan_tree(session.plan(), session.graph)


@app.command()
def prompt(
    ref: str = typer.Argument(..., help="Node id or file path."),
    project: Path = typer.Option(Path("."), "--project", "-P"),
):
    """Print the prompt that generation would send for a node."""
    session = _open(project)
    found = _resolve(session, ref)
    typer.echo(build_prompt(session.graph, found.id))


@app.command()
def serve(
    project: Optional[Path] = typer.Argument(None, help="Project to open on startup."),
    host: str = typer.Option("127.0.0.1", "--host"),
    port: int = typer.Option(DEFAULT_PORT, "--port"),
):
    """Serve the HTTP API."""
    try:
        settings = Settings.from_env()
    except ValueError as e:
        console.print(f"[bold red]Invalid configuration: {e}[/]")
        raise typer.Exit(code=1)
    get(settings.log_level)
    try:
        run_server(project, host=host, port=port, settings=settings)
    except NeedlepointError as e:
        console.print(f"[bold red]Error: {e}[/]")
        raise typer.Exit(code=1)


@app.command()
def generate(
    project: Path = _PROJECT_ARG,
    node: Optional[List[str]] = typer.Option(None, "--node", help="Only generate these nodes (id or path)."),
    quiet: bool = typer.Option(False, "--quiet", help="Disable live progress."),
):
    """Generate code for every node (or only --node ones), wave by wave."""
    session = _open(project)
    ids = [_resolve(session, ref).id for ref in node] if node else None
    reporter = None if quiet else ProgressReporter(session.bus)
    try:
        summary = session.generate_sync(ids)
    except KeyboardInterrupt:
        session.cancel()
        raise typer.Exit(code=130)
    finally:
        if reporter is not None:
            reporter.detach()
        session.save()

    if summary.status == "failed":
        console.print(f"[bold red]Generation failed: {summary.error}[/]")
        raise typer.Exit(code=1)
    console.print(
        f"[bold]{summary.status}[/] • [green]{summary.total_successful} ok[/] • "
        f"[red]{summary.total_failed} failed[/] • [dim]{summary.total_skipped} skipped[/]"
    )
    if summary.total_failed:
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
