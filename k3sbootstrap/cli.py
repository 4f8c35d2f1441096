import logging
import sys

import typer

from k3sbootstrap.commands import install, inventory, prep

app = typer.Typer(help="Bootstrap K3s cluster nodes and their platform services.")

# Global debug flag
debug_mode = False

app.command("install")(install.install)
app.command("prep")(prep.prep)
app.command("validate")(inventory.validate)
app.command("resolve")(inventory.resolve)


# Global options callback
@app.callback()
def callback(
    ctx: typer.Context,
    debug: bool = typer.Option(False, "--debug", "-d", help="Enable debug logging"),
):
    """k3s-bootstrap - K3s multi-node cluster bootstrap."""
    global debug_mode
    debug_mode = debug
    ctx.obj = {"debug": debug}


def main():
    try:
        app()
    except Exception as e:
        if debug_mode:
            import traceback
            logging.getLogger("k3sbootstrap").error(f"Unhandled exception: {e}\n{traceback.format_exc()}")
            typer.echo(traceback.format_exc(), err=True)
        else:
            logging.getLogger("k3sbootstrap").error(f"Error: {e}")
        typer.echo(f"❌ Error: {e}", err=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
