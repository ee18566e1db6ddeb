"""Commands that manage mesh configuration resources."""
import json
import logging
from typing import Callable, List, Optional

import typer
import yaml

from ..config import Config
from ..errors import BuilderError, ConflictError, DecodeError, MeshClientError, VisitorError
from ..meshclient import MeshClient
from ..rcfile import resolve_server
from ..resource import CommandOptions, FilenameOptions, Resolution, ResourceDocument, VisitorBuilder, visit

logger = logging.getLogger(__name__)

app = typer.Typer(help="Apply, create, get and delete mesh resources")

FILENAME_HELP = "File, directory or URL holding resources, or '-' for stdin (repeatable)"


def build_sources(filenames: Optional[List[str]], recursive: bool,
                  kind: Optional[str] = None, name: Optional[str] = None) -> Resolution:
    builder = VisitorBuilder().http_attempt_count(Config.MAX_RETRIES)
    if filenames:
        builder.filename_param(FilenameOptions(tuple(filenames), recursive))
    if kind:
        builder.command_param(CommandOptions(kind, name or ""))
    resolution = builder.resolve()
    try:
        resolution.sources_or_raise()
    except BuilderError as e:
        for error in e.errors:
            typer.echo(f"❌ {error}", err=True)
        raise typer.Exit(code=1)
    return resolution


def for_each_document(resolution: Resolution, action: Callable[[ResourceDocument], None]) -> int:
    """Apply ``action`` to every document; a failing source does not stop the others.

    Inputs that hold no document at all count as one failure.

    Returns:
        int: Number of failures
    """
    failures = 0
    visited = 0
    for source in resolution.sources:
        try:
            for document in visit(source):
                visited += 1
                try:
                    action(document)
                except MeshClientError as e:
                    failures += 1
                    typer.echo(f"❌ {document}: {e}", err=True)
        except (DecodeError, VisitorError) as e:
            failures += 1
            typer.echo(f"❌ {source}: {e}", err=True)
    if not visited and not failures:
        failures += 1
        if resolution.single_item_implied:
            typer.echo("❌ no resource found in the given path", err=True)
        else:
            typer.echo("❌ no resources found", err=True)
    return failures


def _client(server: Optional[str]) -> MeshClient:
    return MeshClient(resolve_server(server))


def _finish(failures: int) -> None:
    if failures:
        raise typer.Exit(code=1)


@app.command("apply")
def apply_cmd(
    filename: List[str] = typer.Option(..., "--filename", "-f", help=FILENAME_HELP),
    recursive: bool = typer.Option(False, "--recursive", "-r", help="Walk directories recursively"),
    server: Optional[str] = typer.Option(None, help="Mesh control plane server"),
):
    """Create resources, updating the ones that already exist."""
    client = _client(server)

    def apply(document: ResourceDocument) -> None:
        accessor = client.for_kind(document.kind)
        try:
            accessor.create(document)
            typer.echo(f"✅ {document} created")
        except ConflictError:
            accessor.patch(document)
            typer.echo(f"✅ {document} updated")

    _finish(for_each_document(build_sources(filename, recursive), apply))


@app.command("create")
def create_cmd(
    filename: List[str] = typer.Option(..., "--filename", "-f", help=FILENAME_HELP),
    recursive: bool = typer.Option(False, "--recursive", "-r", help="Walk directories recursively"),
    server: Optional[str] = typer.Option(None, help="Mesh control plane server"),
):
    """Create resources; existing ones are reported as errors."""
    client = _client(server)

    def create(document: ResourceDocument) -> None:
        client.for_kind(document.kind).create(document)
        typer.echo(f"✅ {document} created")

    _finish(for_each_document(build_sources(filename, recursive), create))


@app.command("delete")
def delete_cmd(
    kind: Optional[str] = typer.Argument(None, help="Resource kind"),
    name: Optional[str] = typer.Argument(None, help="Resource name"),
    filename: Optional[List[str]] = typer.Option(None, "--filename", "-f", help=FILENAME_HELP),
    recursive: bool = typer.Option(False, "--recursive", "-r", help="Walk directories recursively"),
    server: Optional[str] = typer.Option(None, help="Mesh control plane server"),
):
    """Delete resources named on the command line or in files."""
    if not filename and not (kind and name):
        raise typer.BadParameter("give a kind and a name, or --filename")
    client = _client(server)

    def delete(document: ResourceDocument) -> None:
        client.for_kind(document.kind).delete(document.name)
        typer.echo(f"🗑️  {document} deleted")

    _finish(for_each_document(build_sources(filename, recursive, kind, name), delete))


def render(documents: List[ResourceDocument], output: str) -> str:
    if output == "json":
        return json.dumps([d.to_dict() for d in documents], indent=2)
    if output == "yaml":
        return yaml.safe_dump_all([d.to_dict() for d in documents], sort_keys=False).rstrip()
    rows = [("KIND", "NAME")] + [(d.kind, d.name) for d in documents]
    width = max(len(kind) for kind, _ in rows)
    return "\n".join(f"{kind.ljust(width)}  {name}" for kind, name in rows)


@app.command("get")
def get_cmd(
    kind: Optional[str] = typer.Argument(None, help="Resource kind"),
    name: Optional[str] = typer.Argument(None, help="Resource name; omit to list all of the kind"),
    filename: Optional[List[str]] = typer.Option(None, "--filename", "-f", help=FILENAME_HELP),
    recursive: bool = typer.Option(False, "--recursive", "-r", help="Walk directories recursively"),
    output: str = typer.Option("table", "--output", "-o", help="Output format: table, yaml or json"),
    server: Optional[str] = typer.Option(None, help="Mesh control plane server"),
):
    """Show resources."""
    if output not in ("table", "yaml", "json"):
        raise typer.BadParameter(f"unsupported output format {output!r}")
    if not filename and not kind:
        raise typer.BadParameter("give a kind, or --filename")
    client = _client(server)
    found: List[ResourceDocument] = []

    def get(document: ResourceDocument) -> None:
        accessor = client.for_kind(document.kind)
        if document.name:
            found.append(accessor.get(document.name))
        else:
            found.extend(accessor.list())

    failures = for_each_document(build_sources(filename, recursive, kind, name), get)
    if found:
        typer.echo(render(found, output))
    _finish(failures)
