import sys
from unittest.mock import patch

import pytest


def test_benchmark_mode_runs_benchmark_cli() -> None:
    with patch("segmask.benchmark.run_benchmark_cli") as run_benchmark_cli:
        with patch.object(sys, "argv", ["segmask", "--benchmark", "--crop-count", "8", "--runs", "1"]):
            from segmask.main import main

            main()

        run_benchmark_cli.assert_called_once()
        passed_args = run_benchmark_cli.call_args[0][0]
        assert passed_args.crop_count == 8
        assert passed_args.runs == 1


def test_median_seconds_warms_up_then_times_each_run(monkeypatch) -> None:
    from segmask.benchmark import resample_speed

    ticks = iter([0.0, 1.1, 10.0, 11.3, 20.0, 21.2])
    monkeypatch.setattr(resample_speed.time, "perf_counter", lambda: next(ticks))
    calls = []

    median = resample_speed.median_seconds(lambda: calls.append(1), runs=3)

    assert len(calls) == 4
    assert median == pytest.approx(1.2)


def test_median_seconds_rejects_zero_runs() -> None:
    from segmask.benchmark.resample_speed import median_seconds

    with pytest.raises(ValueError):
        median_seconds(lambda: None, runs=0)


def test_benchmark_resample_speed_reports_every_backend() -> None:
    from segmask.benchmark.resample_speed import benchmark_resample_speed

    results = benchmark_resample_speed(crop_count=2, crop_hw=(4, 3), target_hw=(8, 6), runs=1)
    assert set(results) == {"reference", "vectorized"}
    for median_s, rate in results.values():
        assert median_s >= 0.0
        assert rate >= 0.0


def test_run_benchmark_cli_prints_table(capsys) -> None:
    from argparse import Namespace

    from segmask.benchmark import run_benchmark_cli

    run_benchmark_cli(Namespace(crop_count=2, runs=1))
    out = capsys.readouterr().out
    assert "resample_speed" in out
    assert "vectorized" in out
