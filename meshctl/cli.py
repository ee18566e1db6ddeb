import logging
import sys

import typer

from meshctl.commands import config, mesh, resource
from meshctl.config import Config
from meshctl.errors import MeshctlError

app = typer.Typer(help="meshctl - service mesh installation and configuration CLI")

debug_mode = False


def setup_logging(debug: bool = False):
    """Configure logging based on debug mode."""
    log_level = logging.DEBUG if debug else getattr(logging, Config.LOG_LEVEL, logging.INFO)
    logging.basicConfig(
        level=log_level,
        format=Config.LOG_FORMAT,
        handlers=[
            logging.StreamHandler()
        ]
    )
    # Disable debug logging for noisy libraries
    if not debug:
        logging.getLogger('urllib3').setLevel(logging.WARNING)
        logging.getLogger('kubernetes').setLevel(logging.WARNING)


app.add_typer(mesh.app, name="mesh")
app.add_typer(resource.app, name="resource")
app.add_typer(config.app, name="config")


@app.callback()
def main(
    debug: bool = typer.Option(False, "--debug", "-d", help="Enable debug logging"),
):
    """meshctl - service mesh installation and configuration CLI."""
    global debug_mode
    debug_mode = debug
    setup_logging(debug)
    if debug:
        logging.getLogger().setLevel(logging.DEBUG)
        logging.debug("Debug mode enabled")


def run():
    """Console entry point; expected meshctl errors exit without a traceback."""
    try:
        app()
    except MeshctlError as e:
        logging.error(f"❌ {e}")
        sys.exit(1)
    except Exception as e:
        if debug_mode:
            import traceback
            logging.error(f"Unhandled exception: {e}\n{traceback.format_exc()}")
        else:
            logging.error(f"Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    run()
