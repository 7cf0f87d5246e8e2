#!/usr/bin/env python3
"""
wafdetect CLI Interface
Command-line interface for the WAF fingerprinting scanner
"""

import asyncio
import json
import signal
from typing import List, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.progress import BarColumn, MofNCompleteColumn, Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

from wafdetect import __version__
from wafdetect.core.config import ScanConfig, load_config
from wafdetect.core.engine import ScanEngine
from wafdetect.core.errors import ConfigError
from wafdetect.core.model import ScanResult
from wafdetect.signatures.loader import load_signatures
from wafdetect.utils.logger import setup_logger
from wafdetect.utils.report import ReportGenerator

app = typer.Typer(
    name="wafdetect",
    help="Detect and fingerprint Web Application Firewalls",
    no_args_is_help=True
)

console = Console()
err_console = Console(stderr=True)

USAGE_NOTICE = """This tool sends SQL injection and XSS test strings to every target.
Only scan systems you own or have explicit permission to test."""


def read_target_file(path: str) -> List[str]:
    """Targets from a list file, one per line; blank lines and # comments skipped."""
    with open(path, "r", encoding="utf-8") as f:
        return [line.strip() for line in f if line.strip() and not line.strip().startswith("#")]


def collect_targets(url: Optional[str], list_file: Optional[str], config: ScanConfig) -> List[str]:
    targets: List[str] = []
    if url:
        targets.append(url.strip())
    if list_file:
        targets.extend(read_target_file(list_file))
    if not targets:
        targets.extend(config.targets)
    return targets


def install_cancel_handlers(loop: asyncio.AbstractEventLoop, cancel_event: asyncio.Event) -> None:
    """Set `cancel_event` on SIGINT/SIGTERM where the loop supports it."""
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, cancel_event.set)
        except (NotImplementedError, RuntimeError):
            # Windows event loops; KeyboardInterrupt is handled by the caller
            pass


def print_result(result: ScanResult, config: ScanConfig, reporter: ReportGenerator, out: Console) -> None:
    if config.format == "json":
        out.print(json.dumps(result.to_dict()), markup=False, highlight=False)
        return
    color = not config.no_color
    out.print(reporter.format_text_result(result, color=color), markup=color, highlight=False)


async def run_scan(engine: ScanEngine,
                   targets: List[str],
                   config: ScanConfig,
                   reporter: ReportGenerator) -> List[ScanResult]:
    cancel_event = asyncio.Event()
    install_cancel_handlers(asyncio.get_running_loop(), cancel_event)

    if config.silent or len(targets) <= 1:
        return await engine.run(
            targets,
            cancel_event=cancel_event,
            on_result=lambda result: print_result(result, config, reporter, console),
        )

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task("Scanning", total=len(targets))

        def on_result(result: ScanResult) -> None:
            print_result(result, config, reporter, progress.console)
            progress.advance(task)

        return await engine.run(targets, cancel_event=cancel_event, on_result=on_result)


@app.command()
def scan(
    url: Optional[str] = typer.Option(
        None, "--url", "-u",
        help="Single target URL (scheme optional, defaults to https)"
    ),
    list_file: Optional[str] = typer.Option(
        None, "--list", "-l",
        help="File with one target per line"
    ),
    threads: Optional[int] = typer.Option(
        None, "--threads", "-t",
        help="Number of concurrent workers [default: 10]"
    ),
    output: Optional[str] = typer.Option(
        None, "--output", "-o",
        help="Output file path"
    ),
    output_format: Optional[str] = typer.Option(
        None, "--format", "-f",
        help="Output format: txt, json, csv or html [default: txt]"
    ),
    timeout: Optional[float] = typer.Option(
        None, "--timeout",
        help="HTTP timeout per request in seconds [default: 10]"
    ),
    proxy: Optional[str] = typer.Option(
        None, "--proxy",
        help="Proxy URL (http://proxy:port)"
    ),
    user_agent: Optional[str] = typer.Option(
        None, "--user-agent",
        help="User-Agent for the baseline probes [default: waf-detector/1.0]"
    ),
    signatures: Optional[List[str]] = typer.Option(
        None, "--signatures", "-s",
        help="YAML signature file, or 'bundled' (repeatable)"
    ),
    config_file: Optional[str] = typer.Option(
        None, "--config", "-c",
        help="YAML config file"
    ),
    log_file: Optional[str] = typer.Option(
        None, "--log-file",
        help="Also write detailed logs to this file"
    ),
    silent: bool = typer.Option(
        False, "--silent",
        help="Only print results"
    ),
    no_color: bool = typer.Option(
        False, "--no-color",
        help="Disable colored output"
    ),
    debug: bool = typer.Option(
        False, "--debug",
        help="Verbose debug output"
    )
):
    """Probe one or more targets and report the WAF in front of each."""

    try:
        config = load_config(
            config_file,
            threads=threads,
            timeout=timeout,
            proxy=proxy,
            user_agent=user_agent,
            output_file=output,
            format=output_format,
            signature_files=list(signatures) if signatures else None,
            silent=silent or None,
            no_color=no_color or None,
            debug=debug or None,
        )
    except ConfigError as e:
        err_console.print(f"[red]ERROR: {escape(str(e))}[/red]", highlight=False)
        raise typer.Exit(1)

    # Setup logging
    verbosity = 2 if config.debug else 1
    logger = setup_logger(verbosity, log_file=log_file, silent=config.silent, no_color=config.no_color)

    try:
        targets = collect_targets(url, list_file, config)
    except OSError as e:
        err_console.print(f"[red]ERROR: cannot read target list {escape(list_file)}: {escape(str(e))}[/red]")
        raise typer.Exit(1)

    if not targets:
        err_console.print("[red]ERROR: no targets given, use --url or --list[/red]")
        raise typer.Exit(1)

    if not config.silent:
        err_console.print(Panel(USAGE_NOTICE, title="wafdetect", border_style="yellow"))

    reporter = ReportGenerator(logger)
    engine = ScanEngine(config, logger=logger)

    try:
        results = asyncio.run(run_scan(engine, targets, config, reporter))
    except KeyboardInterrupt:
        err_console.print("[yellow]Scan interrupted by user[/yellow]")
        raise typer.Exit(130)

    if not config.silent:
        console.print()
        console.print(reporter.console_summary(results), markup=False, highlight=False)
        stats = engine.get_scan_stats()
        if stats["duration_seconds"] is not None:
            logger.info(f"Finished in {stats['duration_seconds']:.2f}s")

    if config.output_file:
        try:
            reporter.write_results(results, config.output_file, config.format)
        except OSError as e:
            err_console.print(f"[red]ERROR: failed to write {escape(config.output_file)}: {escape(str(e))}[/red]")
            raise typer.Exit(1)


@app.command("signatures")
def list_signatures(
    signatures: Optional[List[str]] = typer.Option(
        None, "--signatures", "-s",
        help="YAML signature file, or 'bundled' (repeatable)"
    ),
    config_file: Optional[str] = typer.Option(
        None, "--config", "-c",
        help="YAML config file"
    )
):
    """List the active signatures in evaluation order."""
    try:
        config = load_config(config_file, signature_files=list(signatures) if signatures else None)
    except ConfigError as e:
        err_console.print(f"[red]ERROR: {escape(str(e))}[/red]", highlight=False)
        raise typer.Exit(1)

    logger = setup_logger(1, no_color=config.no_color)
    loaded = load_signatures(
        config.signature_files,
        logger=logger,
        min_indicators=config.min_indicators,
        discount=config.single_indicator_discount,
    )

    console.print(f"[cyan]{len(loaded)} signatures (first match wins ties):[/cyan]\n")
    for position, signature in enumerate(loaded, 1):
        extra = getattr(signature, "vendor", "") or ""
        console.print(f"  {position:>2}. {escape(signature.name)}" + (f"  [dim]{escape(extra)}[/dim]" if extra else ""))


@app.command()
def version():
    """Show version information."""
    console.print(f"wafdetect v{__version__}")


if __name__ == "__main__":
    app()
