"""
Report generation for benchmark results.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from linkbench.interfaces import (
    DEFAULT_REALISTIC_RANGE,
    INTERFACE_PROFILES,
    PROFILE_FAMILIES,
    LinkClassification,
    RealisticRange,
)
from linkbench.timing import Unit

if TYPE_CHECKING:
    from linkbench.session import SuiteResult

logger = logging.getLogger(__name__)

LOW_BANDWIDTH_CAUSES = (
    "GPU might be in reduced PCIe mode (x8 instead of x16)",
    "PCIe slot might be limited (check motherboard manual)",
    "Driver or system configuration issue",
    "Thermal throttling",
)


class ReportGenerator:
    """Renders results to the console and writes report artifacts."""

    def __init__(self, console: Console | None = None):
        self.console = console or Console()

    def print_suite(self, suite: SuiteResult, realistic_range: RealisticRange = DEFAULT_REALISTIC_RANGE) -> None:
        """Print the results table and interface detection for one run."""
        title = f"Run #{suite.run_number} - {suite.source_label}"
        if suite.cancelled:
            title += " (stopped by user)"

        table = Table(title=title)
        table.add_column("Test")
        for column in ("Min", "Avg", "Max", "99%", "99.9%"):
            table.add_column(column, justify="right")
        table.add_column("Unit")
        table.add_column("Samples", justify="right")

        for r in suite.results:
            table.add_row(
                r.name,
                f"{r.min:.2f}",
                f"{r.avg:.2f}",
                f"{r.max:.2f}",
                f"{r.p99:.2f}",
                f"{r.p999:.2f}",
                r.unit.value,
                str(r.sample_count),
            )
        self.console.print(table)

        if suite.link is not None:
            self.print_interface_detection(suite.link, realistic_range)

    def print_interface_detection(
        self,
        link: LinkClassification,
        realistic_range: RealisticRange = DEFAULT_REALISTIC_RANGE,
    ) -> None:
        primary = link.primary
        if primary.profile is None:
            return

        lines = [
            f"[bold]{primary.profile.name}[/bold]",
            primary.profile.description,
            "",
        ]
        for label, analysis in (("Upload", link.upload), ("Download", link.download)):
            lines.append(
                f"{label + ':':<10}{analysis.measured_gbps:.2f} GB/s  "
                f"({analysis.percent_of_theoretical:.1f}% of {analysis.profile.name})"
            )
        lines.append("")

        verdict = primary.verdict(realistic_range)
        if verdict == "typical":
            lines.append("[green]✓ Performance is as expected for this interface[/green]")
        elif verdict == "low":
            lines.append("[yellow]⚠ Lower than expected - possible issues:[/yellow]")
            lines.extend(f"  • {cause}" for cause in LOW_BANDWIDTH_CAUSES)
        else:
            lines.append("[cyan]ℹ Exceptionally high efficiency - excellent![/cyan]")

        self.console.print(Panel("\n".join(lines), title="Likely Connection Type", expand=False))

    def print_reference_chart(self) -> None:
        """Print theoretical bandwidths of every known interface, grouped by family."""
        by_name = {p.name: p for p in INTERFACE_PROFILES}
        self.console.rule("PCIe & Thunderbolt Bandwidth Reference Chart")

        for family, names in PROFILE_FAMILIES.items():
            table = Table(title=family, title_justify="left")
            table.add_column("Interface", no_wrap=True)
            table.add_column("Theoretical", justify="right", no_wrap=True)
            table.add_column("Notes")
            for name in names:
                profile = by_name[name]
                table.add_row(profile.name, f"~{profile.bandwidth_gbps:.1f} GB/s", profile.description)
            self.console.print(table)

        self.console.print("Values shown are theoretical maximums.")
        self.console.print("Real-world performance is typically 70-90% of theoretical.")

    def write_summary_json(self, runs: list[SuiteResult], path: Path) -> None:
        """Write every run's results and classification to JSON."""
        data = {"runs": [suite.to_dict() for suite in runs]}
        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        logger.info(f"Wrote summary to {path}")

    def write_results_chart(self, suite: SuiteResult, path: Path) -> None:
        """Bar charts of avg and p99 for the bandwidth and latency tests of one run."""
        import matplotlib

        matplotlib.use("Agg")  # Non-interactive backend
        import matplotlib.pyplot as plt

        groups = [
            (Unit.GBPS, "Bandwidth (GB/s)"),
            (Unit.MICROSECONDS, "Latency (us)"),
        ]
        fig, axes = plt.subplots(1, 2, figsize=(14, 6))

        for ax, (unit, ylabel) in zip(axes, groups):
            results = [r for r in suite.results if r.unit is unit]
            if not results:
                ax.set_visible(False)
                continue

            x = range(len(results))
            width = 0.4
            ax.bar([i - width / 2 for i in x], [r.avg for r in results], width, label="Avg", color="#3498db")
            ax.bar([i + width / 2 for i in x], [r.p99 for r in results], width, label="P99", color="#e74c3c")
            ax.set_ylabel(ylabel)
            ax.set_xticks(list(x))
            ax.set_xticklabels([r.name.split(" - ", 1)[-1] for r in results], rotation=30, ha="right")
            ax.legend()

        fig.suptitle(f"Run #{suite.run_number} - {suite.source_label}")
        plt.tight_layout()
        path.parent.mkdir(parents=True, exist_ok=True)
        plt.savefig(path, dpi=150)
        plt.close(fig)
        logger.info(f"Saved results chart to {path}")
