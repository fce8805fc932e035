import json

import pytest

from conftest import FakeBackend, ScriptedCancel
from linkbench.cancellation import CancellationToken
from linkbench.config import MIB
from linkbench.csv_logger import ResultLogger
from linkbench.errors import OperationError
from linkbench.operations import CopyDirection
from linkbench.session import BenchmarkConfig, BenchmarkOrchestrator, RunState, build_suite
from linkbench.timing import Unit


def _config(**overrides) -> BenchmarkConfig:
    values = dict(
        large_transfer_bytes=4 * MIB,
        small_transfer_bytes=64,
        command_latency_iterations=5,
        transfer_latency_iterations=4,
        copies_per_batch=2,
        bandwidth_batches=3,
        output_dir=None,
    )
    values.update(overrides)
    return BenchmarkConfig(**values)


def test_suite_order_and_names():
    names = [t.name for t in build_suite(_config())]
    assert names == [
        "Test 1 - CPU -> GPU 4MB Transfer Bandwidth",
        "Test 2 - GPU -> CPU 4MB Transfer Bandwidth",
        "Test 3 - CPU -> GPU Command Submission Latency",
        "Test 4 - CPU -> GPU 64B Transfer Latency",
        "Test 5 - GPU -> CPU 64B Transfer Latency",
    ]


def test_single_run_produces_five_results(fake_backend):
    orchestrator = BenchmarkOrchestrator(_config(), fake_backend)
    assert orchestrator.state is RunState.IDLE

    runs = orchestrator.run()

    assert len(runs) == 1
    suite = runs[0]
    assert [r.unit for r in suite.results] == [Unit.GBPS] * 2 + [Unit.MICROSECONDS] * 3
    assert [r.sample_count for r in suite.results] == [3, 3, 5, 4, 4]
    assert suite.results[0].avg == pytest.approx(25.0)
    assert suite.results[1].avg == pytest.approx(27.0)
    assert suite.results[2].avg == pytest.approx(10.0)
    assert orchestrator.state is RunState.COMPLETED
    assert orchestrator.run_count == 1
    assert all(op.closed for op in fake_backend.created)


def test_link_classified_from_bandwidth_midpoint(fake_backend):
    suite = BenchmarkOrchestrator(_config(), fake_backend).run_suite()

    assert suite.link.primary.measured_gbps == pytest.approx(26.0)
    assert suite.link.primary.profile.name == "PCIe 4.0 x16"
    assert suite.link.primary.is_realistic is True
    assert suite.link.upload.measured_gbps == pytest.approx(25.0)


def test_classifier_bounds_come_from_config(fake_backend):
    config = _config(realistic_min_percent=90.0, realistic_max_percent=95.0)

    suite = BenchmarkOrchestrator(config, fake_backend).run_suite()

    assert suite.link.primary.is_realistic is False


def test_results_are_logged_with_backend_label(fake_backend, csv_path):
    with ResultLogger(csv_path) as result_logger:
        BenchmarkOrchestrator(_config(), fake_backend, result_logger=result_logger).run()

    lines = csv_path.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 1 + 5
    assert all(",FAKE,Test " in line for line in lines[1:])


def test_source_label_override(fake_backend, csv_path):
    with ResultLogger(csv_path) as result_logger:
        BenchmarkOrchestrator(_config(), fake_backend, result_logger=result_logger, source_label="D3D12").run()

    assert ",D3D12," in csv_path.read_text(encoding="utf-8").splitlines()[1]


def test_operation_error_aborts_remaining_tests(csv_path):
    backend = FakeBackend(fail_direction=CopyDirection.DOWNLOAD)
    with ResultLogger(csv_path) as result_logger:
        orchestrator = BenchmarkOrchestrator(_config(), backend, result_logger=result_logger)

        with pytest.raises(OperationError):
            orchestrator.run()

    assert orchestrator.state is RunState.FAILED
    # Upload bandwidth ran, download bandwidth failed, nothing after it was created
    assert len(backend.created) == 2
    assert backend.created[1].closed
    assert csv_path.read_text(encoding="utf-8").splitlines()[1:] == []


def test_unexpected_error_marks_run_failed(csv_path):
    class BrokenSubmissionBackend(FakeBackend):
        def create_submission(self):
            raise RuntimeError("device lost")

    backend = BrokenSubmissionBackend()
    with ResultLogger(csv_path) as result_logger:
        orchestrator = BenchmarkOrchestrator(_config(), backend, result_logger=result_logger)

        with pytest.raises(RuntimeError, match="device lost"):
            orchestrator.run()

    assert orchestrator.state is RunState.FAILED
    assert csv_path.read_text(encoding="utf-8").splitlines()[1:] == []


def test_continuous_mode_stops_when_cancelled_between_runs(fake_backend):
    token = CancellationToken()
    seen = []

    def on_run_complete(suite):
        seen.append(suite.run_number)
        if suite.run_number == 3:
            token.cancel()

    orchestrator = BenchmarkOrchestrator(
        _config(continuous_mode=True),
        fake_backend,
        cancel_signal=token,
        on_run_complete=on_run_complete,
    )

    runs = orchestrator.run()

    assert len(runs) == 3
    assert seen == [1, 2, 3]
    assert orchestrator.run_count == 3
    assert orchestrator.state is RunState.CANCELLED
    assert not any(suite.cancelled for suite in runs)


def test_continuous_mode_stops_after_cancel_inside_a_test(fake_backend):
    # Bandwidth test 1 has 3 repetitions; fire on its 2nd poll
    cancel = ScriptedCancel(fire_on=[2])
    orchestrator = BenchmarkOrchestrator(_config(continuous_mode=True), fake_backend, cancel_signal=cancel)

    runs = orchestrator.run()

    assert len(runs) == 1
    assert runs[0].cancelled is True
    assert runs[0].results[0].sample_count == 2
    assert runs[0].results[0].cancelled is True
    # The remaining tests still complete
    assert [r.sample_count for r in runs[0].results[1:]] == [3, 5, 4, 4]
    assert orchestrator.state is RunState.CANCELLED


def test_tests_not_cancellable_outside_continuous_mode(fake_backend):
    cancel = ScriptedCancel(fire_on=range(1, 100))
    orchestrator = BenchmarkOrchestrator(_config(), fake_backend, cancel_signal=cancel)

    runs = orchestrator.run()

    assert cancel.polls == 0
    assert len(runs) == 1
    assert orchestrator.state is RunState.COMPLETED


def test_progress_reaches_every_test(fake_backend):
    messages = []
    orchestrator = BenchmarkOrchestrator(
        _config(),
        fake_backend,
        progress_callback=lambda cur, total, msg: messages.append((msg, cur)),
    )

    orchestrator.run()

    finished = [msg for msg, cur in messages if cur == 100]
    assert finished == [t.name for t in build_suite(_config())]


def test_reports_written_to_output_dir(fake_backend, tmp_path):
    output_dir = tmp_path / "out"

    BenchmarkOrchestrator(_config(output_dir=output_dir), fake_backend).run()

    summary = json.loads((output_dir / "summary.json").read_text(encoding="utf-8"))
    assert len(summary["runs"]) == 1
    assert summary["runs"][0]["api"] == "FAKE"
    assert summary["runs"][0]["interface"]["likely_connection"]["profile"] == "PCIe 4.0 x16"
    assert (output_dir / "charts" / "results.png").exists()
    assert (output_dir / "logs" / "benchmark.log").exists()
