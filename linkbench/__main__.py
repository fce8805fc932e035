#!/usr/bin/env python3
"""
CLI entry point for the interconnect benchmark.

Usage:
    python -m linkbench
    python -m linkbench --backend cpu --batches 8 --command-iterations 1000
    python -m linkbench --continuous --output ./results
"""

from __future__ import annotations

import argparse
import dataclasses
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn
from rich.table import Table

from linkbench.backends import BACKENDS, create_backend, list_devices
from linkbench.cancellation import KeyboardCancel
from linkbench.config import MIB, configure_interactively, format_size, get_output_dir
from linkbench.csv_logger import ResultLogger
from linkbench.errors import BenchmarkError
from linkbench.report import ReportGenerator
from linkbench.session import BenchmarkConfig, BenchmarkOrchestrator


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for the benchmark run."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(levelname)s - %(message)s",
        datefmt="%H:%M:%S",
    )


def create_progress_callback(console: Console):
    """Create a progress callback that shows one rich progress bar per test."""
    progress = Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        console=console,
    )

    task_id = None
    current_message = None
    last_completed = -1
    started = False

    def callback(current: int, total: int, message: str) -> None:
        nonlocal task_id, current_message, last_completed, started

        if not started:
            progress.start()
            started = True

        # A new series starts over at a lower percentage, even for the same test name.
        if message != current_message or current <= last_completed:
            task_id = progress.add_task(message, total=total)
            current_message = message

        progress.update(task_id, completed=current)
        last_completed = current

    return callback, lambda: progress.stop() if started else None


def print_devices(console: Console) -> None:
    devices = list_devices()
    if not devices:
        console.print("No CUDA devices found. Use --backend cpu to benchmark host memory.")
        return

    table = Table(title=f"Found {len(devices)} GPU(s)")
    table.add_column("Index", justify="right")
    table.add_column("Name")
    table.add_column("VRAM", justify="right")
    for d in devices:
        table.add_row(str(d.index), d.name, f"{d.total_memory_mb} MB")
    console.print(table)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Measure host <-> GPU interconnect bandwidth and latency",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Run the default suite on the first CUDA device
    python -m linkbench

    # Pick a device and shorten the latency tests
    python -m linkbench --device 1 --command-iterations 10000

    # Compare CUDA against plain host memory copies
    python -m linkbench --backend cuda --backend cpu

    # Repeat until ESC is pressed, writing summary.json and charts
    python -m linkbench --continuous --output ./results
        """,
    )

    parser.add_argument(
        "--backend",
        action="append",
        choices=sorted(BACKENDS),
        help="Backend to benchmark; repeat to run several in sequence (default: cuda)",
    )
    parser.add_argument("--device", type=int, default=None, help="CUDA device index (default: 0)")
    parser.add_argument("--list-devices", action="store_true", help="List CUDA devices and exit")
    parser.add_argument(
        "--reference-chart",
        action="store_true",
        help="Print the PCIe/Thunderbolt bandwidth reference chart and exit",
    )
    parser.add_argument("--configure", action="store_true", help="Adjust settings interactively before starting")

    defaults = BenchmarkConfig(output_dir=None)
    parser.add_argument(
        "--large-size-mb",
        type=int,
        default=defaults.large_transfer_bytes // MIB,
        help=f"Bandwidth test transfer size in MB (default: {defaults.large_transfer_bytes // MIB})",
    )
    parser.add_argument(
        "--small-size",
        type=int,
        default=defaults.small_transfer_bytes,
        help=f"Latency test transfer size in bytes (default: {defaults.small_transfer_bytes})",
    )
    parser.add_argument(
        "--command-iterations",
        type=int,
        default=defaults.command_latency_iterations,
        help=f"Command submission latency iterations (default: {defaults.command_latency_iterations})",
    )
    parser.add_argument(
        "--transfer-iterations",
        type=int,
        default=defaults.transfer_latency_iterations,
        help=f"Transfer latency iterations (default: {defaults.transfer_latency_iterations})",
    )
    parser.add_argument(
        "--copies-per-batch",
        type=int,
        default=defaults.copies_per_batch,
        help=f"Copies per bandwidth batch (default: {defaults.copies_per_batch})",
    )
    parser.add_argument(
        "--batches",
        type=int,
        default=defaults.bandwidth_batches,
        help=f"Bandwidth test batches (default: {defaults.bandwidth_batches})",
    )
    parser.add_argument("--continuous", action="store_true", help="Repeat the suite until ESC is pressed")
    parser.add_argument("--no-csv", action="store_true", help="Disable CSV result logging")
    parser.add_argument("--csv", type=Path, default=defaults.csv_path, help=f"CSV log path (default: {defaults.csv_path})")
    parser.add_argument(
        "-o", "--output",
        type=Path,
        default=get_output_dir(),
        help="Directory for summary.json, charts and logs (default: none)",
    )
    parser.add_argument(
        "--realistic-range",
        type=float,
        nargs=2,
        metavar=("MIN", "MAX"),
        default=(defaults.realistic_min_percent, defaults.realistic_max_percent),
        help="Percent of theoretical bandwidth considered realistic (default: 60 95)",
    )
    parser.add_argument(
        "--upload-weight",
        type=float,
        default=defaults.upload_weight,
        help="Weight of upload bandwidth in the combined link estimate (default: 0.5, the midpoint)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")
    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the benchmark CLI."""
    args = build_parser().parse_args(argv)

    setup_logging(args.verbose)
    console = Console()
    report = ReportGenerator(console)

    if args.list_devices:
        print_devices(console)
        return 0

    if args.reference_chart:
        report.print_reference_chart()
        return 0

    try:
        config = BenchmarkConfig(
            large_transfer_bytes=args.large_size_mb * MIB,
            small_transfer_bytes=args.small_size,
            command_latency_iterations=args.command_iterations,
            transfer_latency_iterations=args.transfer_iterations,
            copies_per_batch=args.copies_per_batch,
            bandwidth_batches=args.batches,
            continuous_mode=args.continuous,
            csv_logging_enabled=not args.no_csv,
            csv_path=args.csv,
            realistic_min_percent=args.realistic_range[0],
            realistic_max_percent=args.realistic_range[1],
            upload_weight=args.upload_weight,
            output_dir=args.output,
        )
    except BenchmarkError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.configure:
        config = configure_interactively(config, console)

    backends = args.backend or ["cuda"]

    # Print configuration
    console.rule("GPU Interconnect Benchmark")
    console.print(f"  Backends:            {', '.join(backends)}")
    console.print(f"  Large transfer size: {format_size(config.large_transfer_bytes)}")
    console.print(f"  Small transfer size: {format_size(config.small_transfer_bytes)}")
    console.print(f"  Bandwidth batches:   {config.bandwidth_batches} x {config.copies_per_batch} copies")
    console.print(f"  Command iterations:  {config.command_latency_iterations}")
    console.print(f"  Transfer iterations: {config.transfer_latency_iterations}")
    console.print(f"  CSV log:             {config.csv_path if config.csv_logging_enabled else 'disabled'}")
    console.print(f"  Continuous mode:     {'ON' if config.continuous_mode else 'OFF'}")
    console.rule()

    progress_callback, cleanup = create_progress_callback(console)

    try:
        result_logger = ResultLogger(config.csv_path) if config.csv_logging_enabled else None
        try:
            with KeyboardCancel() as cancel:
                if config.continuous_mode:
                    console.print("Continuous mode enabled. Press ESC during any test or between runs to stop.")

                for name in backends:
                    with create_backend(name, args.device) as backend:
                        console.print(f"Using {backend.label}: {backend.describe()}")
                        run_config = config
                        if config.output_dir is not None and len(backends) > 1:
                            run_config = dataclasses.replace(config, output_dir=config.output_dir / backend.label.lower())

                        orchestrator = BenchmarkOrchestrator(
                            run_config,
                            backend,
                            result_logger=result_logger,
                            cancel_signal=cancel,
                            progress_callback=progress_callback,
                            on_run_complete=lambda suite: report.print_suite(suite, config.realistic_range),
                        )
                        orchestrator.run()
        finally:
            if result_logger is not None:
                result_logger.close()

        cleanup()
        if config.output_dir is not None:
            console.print(f"Reports saved to: {config.output_dir}")
        return 0

    except KeyboardInterrupt:
        cleanup()
        print("\nBenchmark interrupted by user")
        return 130

    except BenchmarkError as e:
        cleanup()
        logging.error(f"Benchmark failed: {e}")
        print(f"\nError: {e}", file=sys.stderr)
        return 1

    except Exception as e:
        cleanup()
        logging.exception("Benchmark failed with error")
        print(f"\nError: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
