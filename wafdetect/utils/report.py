"""
Report Generation Utilities for wafdetect
Console lines, summaries and the txt/json/csv/html output files
"""

import csv
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from jinja2 import Template
from rich.markup import escape
from tabulate import tabulate

from ..core.model import ScanResult


HTML_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>WAF Detection Report</title>
    <style>
        body { font-family: Arial, sans-serif; margin: 20px; background: #f5f5f5; }
        .header { background: #2c3e50; color: white; padding: 20px; border-radius: 8px; }
        .summary { display: flex; gap: 20px; margin: 20px 0; }
        .summary-item { flex: 1; background: white; padding: 15px; border-radius: 8px; text-align: center; }
        .summary-value { font-size: 2em; font-weight: bold; color: #2c3e50; }
        .summary-label { color: #6c757d; text-transform: uppercase; font-size: 0.85em; }
        table { width: 100%; border-collapse: collapse; background: white; }
        th, td { padding: 12px; text-align: left; border-bottom: 1px solid #dee2e6; }
        th { background: #2c3e50; color: white; }
        .badge { padding: 4px 10px; border-radius: 12px; font-size: 0.85em; font-weight: 600; }
        .badge-found { background: #d4edda; color: #155724; }
        .badge-none { background: #fff3cd; color: #856404; }
        .badge-error { background: #f8d7da; color: #721c24; }
        .error { color: #dc3545; }
    </style>
</head>
<body>
    <div class="header">
        <h1>WAF Detection Report</h1>
        <p>Generated on {{ scan_time }}</p>
    </div>

    <div class="summary">
        <div class="summary-item">
            <div class="summary-value">{{ summary.total_scanned }}</div>
            <div class="summary-label">Total Scanned</div>
        </div>
        <div class="summary-item">
            <div class="summary-value">{{ summary.wafs_detected }}</div>
            <div class="summary-label">WAFs Detected</div>
        </div>
        <div class="summary-item">
            <div class="summary-value">{{ summary.errors }}</div>
            <div class="summary-label">Errors</div>
        </div>
    </div>

    <table>
        <thead>
            <tr><th>URL</th><th>Status</th><th>WAF</th><th>Confidence</th><th>Details</th><th>Time</th></tr>
        </thead>
        <tbody>
            {% for result in results %}
            <tr>
                <td><strong>{{ result.url }}</strong></td>
                <td>
                    {% if result.error %}<span class="badge badge-error">Error</span>
                    {% elif result.waf_found %}<span class="badge badge-found">WAF Detected</span>
                    {% else %}<span class="badge badge-none">No WAF</span>{% endif %}
                </td>
                <td>{{ result.waf_name or "-" }}</td>
                <td>{% if result.confidence %}{{ "%.0f" | format(result.confidence * 100) }}%{% else %}-{% endif %}</td>
                <td>
                    {% if result.error %}<span class="error">{{ result.error }}</span>
                    {% else %}{{ result.details or "-" }}{% endif %}
                </td>
                <td>{{ "%.2f" | format(result.scan_duration) }}s</td>
            </tr>
            {% endfor %}
        </tbody>
    </table>
</body>
</html>
"""

CSV_COLUMNS = ["URL", "WAF Detected", "WAF Name", "Confidence", "Details", "Error", "Scan Time", "Timestamp"]


class ReportGenerator:
    """Formats scan results for the console and for output files."""

    FORMATS = ("txt", "json", "csv", "html")

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)

    def format_text_result(self, result: ScanResult, color: bool = True) -> str:
        """One line per target; rich markup when `color` is set."""
        url = escape(result.url) if color else result.url

        if result.error:
            if color:
                return f"[[red]--[/red]] {url} - [red]ERROR[/red]: {escape(result.error)}"
            return f"[--] {url} - ERROR: {result.error}"

        if not result.waf_found:
            if color:
                return f"[[yellow]--[/yellow]] {url} - [yellow]No WAF detected[/yellow]"
            return f"[--] {url} - No WAF detected"

        waf_info = "WAF detected"
        if result.waf_name:
            if result.confidence:
                waf_info = f"{result.waf_name} ({result.confidence * 100:.0f}% confidence)"
            else:
                waf_info = result.waf_name

        if color:
            return (f"[[green]++[/green]] {url} - [cyan]{escape(waf_info)}[/cyan] "
                    f"[blue]\\[{result.scan_duration:.2f}s][/blue]")
        return f"[++] {url} - {waf_info} [{result.scan_duration:.2f}s]"

    @staticmethod
    def summarize(results: List[ScanResult]) -> Dict[str, int]:
        summary = {"total_scanned": len(results), "wafs_detected": 0, "errors": 0}
        for result in results:
            if result.error:
                summary["errors"] += 1
            elif result.waf_found:
                summary["wafs_detected"] += 1
        return summary

    def console_summary(self, results: List[ScanResult]) -> str:
        """Generate console-friendly summary."""
        summary = self.summarize(results)
        rows = [
            ["Total scanned", summary["total_scanned"]],
            ["WAFs detected", summary["wafs_detected"]],
            ["Errors", summary["errors"]],
        ]

        vendors: Dict[str, int] = {}
        for result in results:
            if result.waf_found and result.waf_name:
                vendors[result.waf_name] = vendors.get(result.waf_name, 0) + 1

        text = "=== Scan Summary ===\n" + tabulate(rows, tablefmt="plain")
        if vendors:
            vendor_rows = sorted(vendors.items(), key=lambda x: x[1], reverse=True)
            text += "\n\n" + tabulate(vendor_rows, headers=["WAF", "Targets"], tablefmt="grid")
        return text

    # ── output files ────────────────────────────────────────────

    def write_results(self, results: List[ScanResult], path: Union[str, Path], fmt: str = "txt") -> str:
        """Write results to `path` in the given format and return the path."""
        writers = {
            "txt": self._write_text,
            "json": self._write_json,
            "csv": self._write_csv,
            "html": self._write_html,
        }
        if fmt not in writers:
            raise ValueError(f"Unsupported output format: {fmt}")

        filepath = Path(path)
        if filepath.parent and not filepath.parent.exists():
            filepath.parent.mkdir(parents=True, exist_ok=True)

        writers[fmt](results, filepath)
        self.logger.info(f"{fmt.upper()} report written: {filepath}")
        return str(filepath)

    def _write_text(self, results: List[ScanResult], filepath: Path) -> None:
        with open(filepath, "w", encoding="utf-8") as f:
            for result in results:
                f.write(self.format_text_result(result, color=False) + "\n")

    def _write_json(self, results: List[ScanResult], filepath: Path) -> None:
        output: Dict[str, Any] = {
            "results": [result.to_dict() for result in results],
            "summary": self.summarize(results),
            "scan_time": datetime.now().isoformat(),
        }
        with open(filepath, "w", encoding="utf-8") as f:
            json.dump(output, f, indent=2)

    def _write_csv(self, results: List[ScanResult], filepath: Path) -> None:
        with open(filepath, "w", newline="", encoding="utf-8") as csvfile:
            writer = csv.writer(csvfile)
            writer.writerow(CSV_COLUMNS)
            for result in results:
                writer.writerow([
                    result.url,
                    str(result.waf_found).lower(),
                    result.waf_name or "",
                    f"{result.confidence:.2f}" if result.confidence is not None else "",
                    result.details,
                    result.error or "",
                    f"{result.scan_duration:.3f}s",
                    result.timestamp.isoformat(),
                ])

    def _write_html(self, results: List[ScanResult], filepath: Path) -> None:
        template = Template(HTML_TEMPLATE, autoescape=True)
        html_content = template.render(
            results=results,
            summary=self.summarize(results),
            scan_time=datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
        )
        with open(filepath, "w", encoding="utf-8") as f:
            f.write(html_content)
