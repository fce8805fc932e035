"""
Environment defaults and the interactive configuration step.
"""

from __future__ import annotations

import dataclasses
import os
from pathlib import Path
from typing import TYPE_CHECKING, Callable

from linkbench.errors import InvalidInputError

if TYPE_CHECKING:
    from rich.console import Console

    from linkbench.session import BenchmarkConfig

# Read from environment, default to the working directory
CSV_PATH = Path(os.environ.get("LINKBENCH_CSV", "gpu_benchmark_results.csv"))
OUTPUT_DIR = os.environ.get("LINKBENCH_OUTPUT_DIR")

MIB = 1024 * 1024


def get_csv_path() -> Path:
    """Get the configured result log path."""
    return CSV_PATH


def get_output_dir() -> Path | None:
    """Get the configured report directory, if any."""
    return Path(OUTPUT_DIR) if OUTPUT_DIR else None


def format_size(num_bytes: int) -> str:
    """Format a byte count the way test names print it, e.g. 256MB or 1B."""
    if num_bytes >= 1024 ** 3:
        return f"{num_bytes // 1024 ** 3}GB"
    if num_bytes >= MIB:
        return f"{num_bytes // MIB}MB"
    if num_bytes >= 1024:
        return f"{num_bytes // 1024}KB"
    return f"{num_bytes}B"


# choice -> (label, config field, parser). Toggles have no parser.
MENU_OPTIONS: dict[str, tuple[str, str, Callable[[str], object] | None]] = {
    "1": ("Large transfer size (MB)", "large_transfer_bytes", lambda v: int(v) * MIB),
    "2": ("Small transfer size (bytes)", "small_transfer_bytes", int),
    "3": ("Command latency iterations", "command_latency_iterations", int),
    "4": ("Transfer latency iterations", "transfer_latency_iterations", int),
    "5": ("Copies per batch", "copies_per_batch", int),
    "6": ("Bandwidth test batches", "bandwidth_batches", int),
    "7": ("Continuous mode", "continuous_mode", None),
    "8": ("CSV logging", "csv_logging_enabled", None),
    "9": ("CSV filename", "csv_path", Path),
}


def apply_menu_choice(config: BenchmarkConfig, choice: str, value: str | None = None) -> BenchmarkConfig:
    """Return a new config with one menu option applied.

    Raises:
        InvalidInputError: for an unknown choice, a missing value, or a value
            that does not parse or is out of range.
    """
    if choice not in MENU_OPTIONS:
        raise InvalidInputError(f"Unknown menu option {choice!r}")

    _, field_name, parser = MENU_OPTIONS[choice]
    if parser is None:
        return dataclasses.replace(config, **{field_name: not getattr(config, field_name)})

    if value is None or not value.strip():
        raise InvalidInputError(f"Option {choice} requires a value")
    try:
        parsed = parser(value.strip())
    except ValueError as e:
        raise InvalidInputError(f"Invalid value {value!r} for option {choice}") from e
    return dataclasses.replace(config, **{field_name: parsed})


def _describe(config: BenchmarkConfig, field_name: str) -> str:
    value = getattr(config, field_name)
    if isinstance(value, bool):
        return "ON" if value else "OFF"
    if field_name.endswith("_bytes"):
        return format_size(value)
    return str(value)


def configure_interactively(config: BenchmarkConfig, console: Console) -> BenchmarkConfig:
    """Show the settings menu until the user chooses to start the benchmark."""
    from rich.prompt import Prompt

    from linkbench.report import ReportGenerator

    while True:
        console.rule("GPU Benchmark Configuration")
        for choice, (label, field_name, _) in MENU_OPTIONS.items():
            console.print(f"{choice}. {label}: {_describe(config, field_name)}")
        console.print("H. Show PCIe/Thunderbolt bandwidth reference chart")
        console.print("0. Start benchmark")
        console.rule()

        choice = Prompt.ask("Select option (0-9, H)", console=console, default="0").strip().upper()
        if choice == "0":
            return config
        if choice == "H":
            ReportGenerator(console).print_reference_chart()
            continue
        if choice not in MENU_OPTIONS:
            console.print(f"[red]Unknown option {choice}[/red]")
            continue

        label, _, parser = MENU_OPTIONS[choice]
        value = None if parser is None else Prompt.ask(f"Enter {label.lower()}", console=console)
        try:
            config = apply_menu_choice(config, choice, value)
        except InvalidInputError as e:
            console.print(f"[red]{e}[/red]")
