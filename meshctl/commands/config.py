import typer

from ..errors import RCFileError
from ..rcfile import RCFile, resolve_server

app = typer.Typer(help="Manage local meshctl settings")


@app.command("set-server")
def set_server(server: str = typer.Argument(..., help="Mesh control plane server, e.g. 127.0.0.1:2381")):
    """Remember the mesh server in the rc file."""
    rc = RCFile()
    rc.server = server
    try:
        rc.save()
    except RCFileError as e:
        typer.echo(f"❌ {e}", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"✅ Server set to {server} in {rc.path}")


@app.command("view")
def view():
    """Show the mesh server meshctl talks to."""
    try:
        server = resolve_server()
    except RCFileError as e:
        typer.echo(f"❌ {e}", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"server: {server}")
