import io
import json
from datetime import datetime

from rich.console import Console

from linkbench.interfaces import classify_link
from linkbench.metrics import summarize
from linkbench.report import ReportGenerator
from linkbench.session import SuiteResult
from linkbench.timing import SampleSeries, Unit


def _console() -> tuple[Console, io.StringIO]:
    buffer = io.StringIO()
    return Console(file=buffer, width=160, color_system=None), buffer


def _suite(upload: float, download: float, cancelled: bool = False) -> SuiteResult:
    results = [
        summarize(SampleSeries("Test 1 - CPU -> GPU 256MB Transfer Bandwidth", Unit.GBPS, [upload])),
        summarize(SampleSeries("Test 2 - GPU -> CPU 256MB Transfer Bandwidth", Unit.GBPS, [download])),
        summarize(SampleSeries("Test 3 - CPU -> GPU Command Submission Latency", Unit.MICROSECONDS, [8.0, 12.0])),
    ]
    now = datetime.now()
    return SuiteResult(
        run_number=1,
        source_label="CUDA",
        results=results,
        link=classify_link(upload, download),
        cancelled=cancelled,
        start_time=now,
        end_time=now,
    )


def test_print_suite_typical_link():
    console, buffer = _console()

    ReportGenerator(console).print_suite(_suite(24.0, 28.0))

    out = buffer.getvalue()
    assert "Run #1 - CUDA" in out
    assert "Command Submission Latency" in out
    assert "PCIe 4.0 x16" in out
    assert "as expected" in out


def test_print_suite_low_link_lists_causes():
    console, buffer = _console()

    ReportGenerator(console).print_suite(_suite(0.1, 0.1))

    out = buffer.getvalue()
    assert "Lower than expected" in out
    assert "Thermal throttling" in out


def test_print_suite_marks_cancelled_runs():
    console, buffer = _console()

    ReportGenerator(console).print_suite(_suite(24.0, 28.0, cancelled=True))

    assert "stopped by user" in buffer.getvalue()


def test_reference_chart_lists_every_profile():
    console, buffer = _console()

    ReportGenerator(console).print_reference_chart()

    out = buffer.getvalue()
    for name in ("PCIe 3.0 x1", "PCIe 5.0 x16", "Thunderbolt 5", "USB4 Gen 3x2", "OCuLink PCIe 3.0"):
        assert name in out


def test_summary_json(tmp_path):
    path = tmp_path / "summary.json"

    ReportGenerator(Console(file=io.StringIO())).write_summary_json([_suite(24.0, 28.0)], path)

    data = json.loads(path.read_text(encoding="utf-8"))
    run = data["runs"][0]
    assert run["api"] == "CUDA"
    assert [r["unit"] for r in run["results"]] == ["GB/s", "GB/s", "us"]
    assert run["interface"]["likely_connection"]["is_realistic"] is True


def test_results_chart(tmp_path):
    path = tmp_path / "charts" / "results.png"

    ReportGenerator(Console(file=io.StringIO())).write_results_chart(_suite(24.0, 28.0), path)

    assert path.exists()
    assert path.stat().st_size > 0
