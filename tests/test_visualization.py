"""
Tests for post-run plotting and run discovery.
"""

from types import SimpleNamespace

import matplotlib.pyplot as plt
import pytest

from mpc_control import plot_results
from mpc_control.data_collector import DataCollector
from mpc_control.plot_results import find_latest_run
from mpc_control.visualization import parse_cycle_data, plot_run_summary


def _cycle(speed, fallback):
    telemetry = SimpleNamespace(x=0.0, y=0.0, psi=0.0, speed=speed)
    state = SimpleNamespace(cte=0.2, epsi=0.01)
    command = SimpleNamespace(
        steering=0.1,
        throttle=0.5,
        cost=float("nan") if fallback else 30.0,
        cte=0.15,
        status="Maximum_WallTime_Exceeded" if fallback else "Solve_Succeeded",
        fallback=fallback,
        mpc_x=[] if fallback else [0.5, 1.0],
        mpc_y=[] if fallback else [0.0, 0.0],
    )
    return telemetry, state, command


@pytest.fixture
def recorded_run(tmp_path):
    run_dir = tmp_path / "results" / "run_20250101_120000_s1"
    with DataCollector(run_dir=str(run_dir)) as collector:
        for i in range(5):
            collector.log_cycle(100.0 + 0.1 * i, *_cycle(speed=10.0 + i, fallback=(i == 3)))
    return run_dir


def test_parse_cycle_data(recorded_run):
    data = parse_cycle_data(recorded_run / "cycles.csv")

    assert data["time"][0] == 0.0
    assert data["time"][-1] == pytest.approx(0.4)
    assert list(data["speed"]) == [10.0, 11.0, 12.0, 13.0, 14.0]
    assert data["fallback"].sum() == 1


def test_parse_rejects_foreign_csv(tmp_path):
    path = tmp_path / "cycles.csv"
    path.write_text("a,b\n1,2\n")
    with pytest.raises(ValueError):
        parse_cycle_data(path)


def test_missing_csv(tmp_path):
    with pytest.raises(FileNotFoundError):
        parse_cycle_data(tmp_path / "cycles.csv")


def test_plot_run_summary_saves_figures(recorded_run):
    figures = plot_run_summary(recorded_run, save_plots=True, show_plots=False)

    assert len(figures) == 2
    assert (recorded_run / "tracking.png").exists()
    assert (recorded_run / "commands.png").exists()
    plt.close("all")


def test_find_latest_run(tmp_path):
    results = tmp_path / "results"
    for name in ["run_20250101_120000_s1", "run_20250102_090000_s1", "run_20250101_120000_s2"]:
        (results / name).mkdir(parents=True)
    (results / "notes").mkdir()

    assert find_latest_run(results).name == "run_20250102_090000_s1"


def test_find_latest_run_without_runs(tmp_path):
    with pytest.raises(FileNotFoundError):
        find_latest_run(tmp_path)
    with pytest.raises(FileNotFoundError):
        find_latest_run(tmp_path / "missing")


def test_summarize_run(recorded_run):
    summary = plot_results.summarize_run(recorded_run)

    assert summary["cycles"] == 5
    assert summary["fallbacks"] == 1
    assert summary["mean_abs_cte"] == pytest.approx(0.2)
    assert summary["mean_speed"] == pytest.approx(12.0)
    assert summary["duration"] == pytest.approx(0.4)


def test_resolve_run_dir(recorded_run):
    results_dir = recorded_run.parent
    assert plot_results.resolve_run_dir(results_dir) == recorded_run
    assert plot_results.resolve_run_dir(results_dir, recorded_run.name) == recorded_run
    with pytest.raises(FileNotFoundError):
        plot_results.resolve_run_dir(results_dir, "run_missing")


def test_cli_saves_latest_run(recorded_run):
    plot_results.main(["--results-dir", str(recorded_run.parent), "--save", "--no-show"])
    plt.close("all")

    assert (recorded_run / "commands.png").exists()
