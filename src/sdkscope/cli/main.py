"""Root CLI application for sdkscope."""

import typer

from sdkscope import __version__
from sdkscope.cli import analyze, apk
from sdkscope.utils.output import setup_logging

app = typer.Typer(
    name="sdkscope",
    help="Find evidence of third-party SDKs inside Android packages.",
    no_args_is_help=True,
)

# Register subcommands
app.add_typer(analyze.app, name="analyze", help="SDK inventory and detection reports")
app.add_typer(apk.app, name="apk", help="Merge split packages and decode APKs")


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"sdkscope {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-V",
        help="Show debug logging (merge collisions, scan caps, tool commands).",
    ),
) -> None:
    """sdkscope - SDK evidence scanner for Android packages."""
    setup_logging(verbose)


if __name__ == "__main__":
    app()
