"""CLI commands for SDK inventory and detection reports."""

import json
from contextlib import nullcontext
from pathlib import Path

import typer
from rich.table import Table

from sdkscope.core.pipeline import AnalysisRunner
from sdkscope.exceptions import SdkScopeError
from sdkscope.models.report import AnalysisReport, ReportMode
from sdkscope.utils.config import resolve_settings
from sdkscope.utils.output import console

app = typer.Typer(no_args_is_help=True)

INPUT_HELP = "APK file or split container (.apks, .xapk, .apkm)."


def _report_payload(report: AnalysisReport) -> dict[str, object]:
    context = report.context
    facts = context.metadata.facts
    payload: dict[str, object] = {
        "mode": report.mode.value,
        "report_path": str(report.output_path) if report.output_path else None,
        "package_name": facts.package_name,
        "app_name": facts.app_name,
        "version_name": facts.version_name,
        "sdks": [entry.model_dump(mode="json") for entry in report.sdks],
        "native_libraries": [
            lib.model_dump(mode="json", exclude_none=True) for lib in context.libraries
        ],
    }
    if report.mode is ReportMode.DETECTION:
        payload["evidence"] = {
            keyword: record.model_dump(mode="json")
            for keyword, record in context.evidence.items()
        }
        payload["found"] = context.found_keywords
        payload["not_found"] = context.missing_keywords
    else:
        payload["competitors"] = [
            match.model_dump(mode="json") for match in context.competitors
        ]
    return payload


def _run(
    input_path: Path,
    mode: ReportMode,
    keywords: list[str] | None,
    output_dir: Path | None,
    output_name: str | None,
    library_db: Path | None,
    competitors: Path | None,
    code_scan_limit: int | None,
    keep_workdir: bool | None,
    print_report: bool,
    json_output: bool,
) -> AnalysisReport:
    console.set_json_mode(json_output)

    try:
        settings = resolve_settings(
            library_db=library_db,
            competitor_list=competitors,
            code_scan_limit=code_scan_limit,
            keep_workdir=keep_workdir,
        )
        runner = AnalysisRunner(settings)

        if not json_output:
            console.print_info(f"Analyzing {input_path.name} ({mode.value})...")

        with (
            console.status("Decoding and scanning...")
            if not json_output
            else nullcontext()
        ):
            report = runner.run(
                input_path,
                mode,
                keywords=keywords,
                output_dir=output_dir,
                output_name=output_name,
            )
    except SdkScopeError as e:
        console.print_error(str(e))
        raise typer.Exit(1) from None

    if json_output:
        typer.echo(json.dumps(_report_payload(report), indent=2))
        return report

    if print_report:
        console.print_text(report.text)

    if report.context.competitors:
        console.print_warning(
            f"{len(report.context.competitors)} potential competitor SDK(s) "
            "flagged by library name; review the report"
        )

    if settings.keep_workdir and runner.workdir is not None:
        console.print_info(f"Workspace kept at {runner.workdir}")
    console.print_success(f"Report written to {report.output_path}")
    return report


@app.command("inventory")
def inventory(
    input_path: Path = typer.Argument(
        ...,
        help=INPUT_HELP,
        exists=True,
        file_okay=True,
        dir_okay=False,
        readable=True,
    ),
    output_dir: Path = typer.Option(
        None,
        "--output-dir",
        "-o",
        help="Report directory (default: current directory).",
    ),
    output_name: str = typer.Option(
        None,
        "--output-name",
        "-n",
        help="Report file name (default: inventory-android-<app>-<timestamp>.txt).",
    ),
    library_db: Path = typer.Option(
        None,
        "--library-db",
        help="Pipe-delimited library database (name|description|vendor).",
    ),
    competitors: Path = typer.Option(
        None,
        "--competitors",
        help="Competitor name list, one per line.",
    ),
    keep_workdir: bool = typer.Option(
        None,
        "--keep-workdir/--clean-workdir",
        help="Keep the merged APK and decoded trees after the run.",
    ),
    print_report: bool = typer.Option(
        True,
        "--print/--no-print",
        help="Echo the report to the terminal.",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output as JSON.",
    ),
) -> None:
    """List every library in a package and flag potential competitors.

    Examples:

        sdkscope analyze inventory app.apk

        sdkscope analyze inventory app.xapk --competitors rivals.txt -o reports/
    """
    _run(
        input_path,
        ReportMode.INVENTORY,
        None,
        output_dir,
        output_name,
        library_db,
        competitors,
        None,
        keep_workdir,
        print_report,
        json_output,
    )


@app.command("detect")
def detect(
    input_path: Path = typer.Argument(
        ...,
        help=INPUT_HELP,
        exists=True,
        file_okay=True,
        dir_okay=False,
        readable=True,
    ),
    keywords: list[str] = typer.Option(
        ...,
        "--keyword",
        "-k",
        help="SDK keyword to search for (repeatable).",
    ),
    output_dir: Path = typer.Option(
        None,
        "--output-dir",
        "-o",
        help="Report directory (default: current directory).",
    ),
    output_name: str = typer.Option(
        None,
        "--output-name",
        "-n",
        help="Report file name (default: detection-android-<app>-<timestamp>.txt).",
    ),
    library_db: Path = typer.Option(
        None,
        "--library-db",
        help="Pipe-delimited library database (name|description|vendor).",
    ),
    code_scan_limit: int = typer.Option(
        None,
        "--code-scan-limit",
        min=0,
        help="Maximum code files searched by content per keyword (default: 50).",
    ),
    keep_workdir: bool = typer.Option(
        None,
        "--keep-workdir/--clean-workdir",
        help="Keep the merged APK and decoded trees after the run.",
    ),
    print_report: bool = typer.Option(
        True,
        "--print/--no-print",
        help="Echo the report to the terminal.",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output as JSON.",
    ),
) -> None:
    """Search a package for evidence of specific SDKs.

    Six channels are searched for every keyword: the manifest, resource XML,
    decompiled code, native library names, asset names and META-INF names.

    Examples:

        sdkscope analyze detect app.apk -k pspdfkit

        sdkscope analyze detect app.apks -k pspdfkit -k nutrient --json
    """
    report = _run(
        input_path,
        ReportMode.DETECTION,
        keywords,
        output_dir,
        output_name,
        library_db,
        None,
        code_scan_limit,
        keep_workdir,
        print_report,
        json_output,
    )

    if json_output:
        return

    table = Table(title="Keyword Evidence")
    table.add_column("Keyword", style="cyan")
    table.add_column("Result")
    table.add_column("Hits", justify="right")
    table.add_column("Locations")

    for keyword, record in report.context.evidence.items():
        table.add_row(
            keyword,
            "[green]FOUND[/green]" if record.found else "[red]NOT FOUND[/red]",
            str(record.total_hits),
            record.locations,
        )

    console.print(table)
