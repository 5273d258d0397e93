"""CLI commands for split package merging and APK decoding."""

import json
from contextlib import nullcontext
from pathlib import Path

import typer

from sdkscope.core.decompiler import APKDecompiler
from sdkscope.core.merger import SplitPackageMerger
from sdkscope.exceptions import SdkScopeError
from sdkscope.utils.deps import require
from sdkscope.utils.output import console

app = typer.Typer(no_args_is_help=True)


@app.command("merge")
def merge_split(
    container: Path = typer.Argument(
        ...,
        help="Split container (.apks, .xapk, .apkm, or a ZIP of split APKs).",
        exists=True,
        file_okay=True,
        dir_okay=False,
    ),
    output: Path = typer.Option(
        None,
        "--output",
        "-o",
        help="Merged APK path (default: <container>.merged.apk).",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output as JSON.",
    ),
) -> None:
    """Merge a split APK container into a single APK.

    The base APK is extracted first, then architecture splits, then every
    other split. A path present in several splits keeps the last copy.

    Examples:

        sdkscope apk merge app.apks

        sdkscope apk merge app.xapk -o app-merged.apk
    """
    console.set_json_mode(json_output)

    try:
        merger = SplitPackageMerger(container, output)

        if not json_output:
            console.print_info(f"Merging {container.name}...")

        with console.status("Merging splits...") if not json_output else nullcontext():
            result = merger.merge()

        if json_output:
            typer.echo(json.dumps(result.model_dump(mode="json"), indent=2))
            return

        console.print_success(f"Merged APK: {result.output_path}")
        console.print_info(f"  Base: {result.base_apk}")
        for name in result.arch_splits:
            console.print(f"    + {name} [dim](architecture)[/dim]")
        for name in result.other_splits:
            console.print(f"    + {name}")
        console.print_info(
            f"  {result.files_written} files, {result.collisions} overwritten path(s)"
        )

    except SdkScopeError as e:
        console.print_error(str(e))
        raise typer.Exit(1) from None


@app.command("decompile")
def decompile_apk(
    apk_path: Path = typer.Argument(
        ...,
        help="Path to APK file.",
        exists=True,
        file_okay=True,
        dir_okay=False,
    ),
    output_dir: Path = typer.Option(
        None,
        "--output",
        "-o",
        help="Output directory (default: ./<apk_name>/).",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output as JSON.",
    ),
) -> None:
    """Decode an APK into the trees the scanner reads.

    Output structure:

        <output_dir>/
        ├── decoded/  # apktool: manifest, res/, smali*/
        └── raw/      # unzipped APK: lib/, assets/, META-INF/

    Examples:

        sdkscope apk decompile app.apk

        sdkscope apk decompile app.apk -o ./analysis/
    """
    console.set_json_mode(json_output)

    try:
        require("apktool")
        decompiler = APKDecompiler(apk_path, output_dir)

        if not json_output:
            console.print_info(f"Decoding {apk_path.name}...")

        with console.status("Decoding...") if not json_output else nullcontext():
            result = decompiler.run()

        if json_output:
            typer.echo(json.dumps(result.model_dump(mode="json"), indent=2))
            return

        console.print_success(f"Decoded to {decompiler.output_dir}")
        console.print_info(f"  Decoded tree: {result.decoded_dir}")
        console.print_info(f"  Raw tree:     {result.raw_dir}")

    except SdkScopeError as e:
        console.print_error(str(e))
        raise typer.Exit(1) from None
