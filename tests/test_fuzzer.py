"""
Tests for the fuzz harness, driven without atheris
"""

import json
import os

import pytest

from calc_tool import fuzzer
from calc_tool.calculator import evaluate_with_trace


@pytest.fixture
def run_args(tmp_path):
    args = fuzzer.parse_args(["--target", "calc", "--artifacts-dir", str(tmp_path), "--plain"])
    fuzzer.start_run(args)
    yield args
    fuzzer.reset_stats()


def _boom(_text):
    raise ZeroDivisionError("division by zero")


def test_targets_are_consistent():
    assert set(fuzzer.EXPECTED_EXCEPTIONS) == set(fuzzer.TARGET_FUNCS) == set(fuzzer.TRACE_FUNCS)


@pytest.mark.parametrize("expr", fuzzer.CALC_EXPR_SEEDS)
def test_seed_expressions_evaluate(expr):
    result, steps = evaluate_with_trace(expr)
    assert steps[-1] == f"RESULT = {int(result)}"


def test_valid_input_counts_and_writes_summary(run_args, tmp_path):
    fuzzer.test_one_input(b"1+2")
    assert fuzzer.STATS["total_inputs"] == 1
    assert fuzzer.STATS["handled_exceptions"] == 0
    assert fuzzer.STATS["unexpected_exceptions"] == 0
    summary = json.loads((tmp_path / "run_summary.json").read_text())
    assert summary["target"] == "calc"
    assert (tmp_path / "SUCCESS.txt").exists()


@pytest.mark.parametrize("data", [b"1/0", b"(((", b"\xff\xfe", b"2^3"])
def test_calc_errors_are_expected(run_args, data):
    fuzzer.test_one_input(data)
    assert fuzzer.STATS["handled_exceptions"] == 1
    assert fuzzer.STATS["unexpected_exceptions"] == 0


def test_deep_nesting_is_not_a_crash(run_args):
    fuzzer.test_one_input(b"(" * 3000 + b"1" + b")" * 3000)
    assert fuzzer.STATS["unexpected_exceptions"] == 0


def test_cli_target_sanitizes_input(tmp_path):
    fuzzer.start_run(fuzzer.parse_args(["--target", "cli", "--artifacts-dir", str(tmp_path), "--plain"]))
    fuzzer.test_one_input(b"1 2")
    fuzzer.test_one_input(b"abc")
    assert fuzzer.STATS["handled_exceptions"] == 1
    fuzzer.reset_stats()


def test_crash_is_recorded_when_continuing(run_args, monkeypatch):
    monkeypatch.setitem(fuzzer.TARGET_FUNCS, "calc", _boom)
    run_args.continue_on_crash = True
    fuzzer.test_one_input(b"7/7")

    assert fuzzer.STATS["unexpected_exceptions"] == 1
    (base,) = fuzzer.STATS["crashes"]
    with open(base + ".input", "rb") as f:
        assert f.read() == b"7/7"
    with open(base + ".json", encoding="utf-8") as f:
        meta = json.load(f)
    assert meta["exception_type"] == "ZeroDivisionError"
    assert meta["input_preview"] == "7/7"
    assert os.path.dirname(base) == run_args.artifacts_dir


def test_crash_propagates_by_default(run_args, monkeypatch):
    monkeypatch.setitem(fuzzer.TARGET_FUNCS, "calc", _boom)
    with pytest.raises(ZeroDivisionError):
        fuzzer.test_one_input(b"7/7")
    assert fuzzer.STATS["unexpected_exceptions"] == 1


def test_no_fail_counts_crash_as_handled(run_args, monkeypatch):
    monkeypatch.setitem(fuzzer.TARGET_FUNCS, "calc", _boom)
    run_args.no_fail = True
    fuzzer.test_one_input(b"7/7")
    assert fuzzer.STATS["handled_exceptions"] == 1
    assert fuzzer.STATS["crashes"] == []


def test_trace_path_prints_steps(run_args, capsys):
    run_args.trace_calc = 2
    fuzzer.test_one_input(b"2*3")
    out = capsys.readouterr().out
    assert "Calculator Trace" in out
    assert "MUL  2 * 3 = 6" in out
    assert run_args.trace_calc == 1


def test_trace_errors_with_demo(run_args, capsys):
    run_args.trace_calc = 3
    run_args.trace_errors = True
    run_args.demo_ops = True
    fuzzer.test_one_input(b"4/0")
    out = capsys.readouterr().out
    assert "EXPECTED FAILURE: DivisionByZero" in out
    assert "DEMO OK" in out
    assert run_args.trace_calc == 1


def test_help_does_not_need_atheris(capsys):
    assert fuzzer.main(["--help"]) == 0
    assert "Usage" in capsys.readouterr().out
