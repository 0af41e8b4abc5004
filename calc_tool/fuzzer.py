"""
Coverage-guided fuzz harness for the calculator (atheris).

Any CalcError is an expected outcome: the input was rejected the way the
calculator promises to reject bad input. Every other exception (RecursionError,
ZeroDivisionError, OverflowError, ...) is a crash and is written to the
artifacts dir together with its trace.

atheris is only imported in main(), so the harness logic can be driven
without it.
"""

import sys, os, argparse, json as _json, base64, hashlib, traceback, time, random
from functools import partial

from calc_tool import cli, errors, report
from calc_tool.calculator import FLOAT_MODE, INTEGER_MODE, evaluate, evaluate_with_trace

EXPECTED_EXCEPTIONS = {
    "calc": (errors.CalcError,),
    "calc_float": (errors.CalcError,),
    "cli": (errors.CalcError,),
}

TARGET_FUNCS = {
    "calc": partial(evaluate, config=INTEGER_MODE),
    "calc_float": partial(evaluate, config=FLOAT_MODE),
    "cli": partial(cli.compute, config=INTEGER_MODE),
}

TRACE_FUNCS = {
    "calc": partial(evaluate_with_trace, config=INTEGER_MODE),
    "calc_float": partial(evaluate_with_trace, config=FLOAT_MODE),
    "cli": partial(cli.compute, config=INTEGER_MODE),
}

ARGS = None
STATS = {}

LAST_SUMMARY_TS = 0.0
DEFAULT_SUMMARY_INTERVAL = 5.0

CALC_EXPR_SEEDS = [
    "(1+2)*3-2",
    "-4 + 10 / 3",
    "--7 * (8 - -2)",
    "(100 - 25) / 5",
    "((3+3)*(2+1)) - 4",
]

USAGE = """
Usage:
  calc-fuzz --target calc|calc_float|cli --time_budget 60 --artifacts-dir reports
            [--continue_on_crash] [--trace_calc N] [--trace_errors] [--demo_ops]
            [--summary_interval SECONDS] [--plain] [--no_fail] [corpus_dir ...]

Notes:
  • --trace_calc N shows step-by-step operations N times.
  • --demo_ops guarantees you see real operations even if fuzz inputs error out early.
  • Periodic summaries are printed/written during fuzzing so you don't rely on 'finally'.
""".strip()


def reset_stats():
    global LAST_SUMMARY_TS
    LAST_SUMMARY_TS = 0.0
    STATS.clear()
    STATS.update({
        "target": None,
        "mode": None,
        "start_time": None,
        "duration_sec": None,
        "total_inputs": 0,
        "handled_exceptions": 0,
        "unexpected_exceptions": 0,
        "artifacts_dir": None,
        "crashes": [],
        "seed": None,
    })


reset_stats()


def _b64(b: bytes) -> str:
    return base64.b64encode(b).decode("ascii")


def _write_json(path: str, obj: dict):
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        _json.dump(obj, f, indent=2, sort_keys=True)


def _write_artifact(prefix: str, data_bytes: bytes, meta: dict) -> str:
    base = os.path.join(ARGS.artifacts_dir, f"{prefix}_{hashlib.sha1(data_bytes).hexdigest()}")
    with open(base + ".input", "wb") as f:
        f.write(data_bytes)
    _write_json(base + ".json", meta)
    return base


def _write_summary_files(note: str):
    os.makedirs(ARGS.artifacts_dir, exist_ok=True)
    _write_json(os.path.join(ARGS.artifacts_dir, "run_summary.json"), STATS)
    # at least one extra file so CI artifacts are never empty
    with open(os.path.join(ARGS.artifacts_dir, "SUCCESS.txt"), "w") as f:
        f.write(note)


def _periodic_summary(force: bool = False):
    """Write JSON + print table periodically so we don't rely on finally."""
    global LAST_SUMMARY_TS
    now = time.time()
    interval = max(0.5, getattr(ARGS, "summary_interval", DEFAULT_SUMMARY_INTERVAL))
    if not force and (now - LAST_SUMMARY_TS) < interval:
        return
    LAST_SUMMARY_TS = now

    STATS["duration_sec"] = round(now - (STATS.get("start_time") or now), 3)
    _write_summary_files("Fuzz run in progress/completed. See run_summary.json for details.\n")
    report.render_summary(STATS, plain=ARGS.plain)


def _print_trace(expr: str, steps: list, outcome: str):
    report.print_calc_trace(expr, steps, outcome, plain=ARGS.plain)


def _classify_and_handle_exception(e: Exception, data_str: str, data_bytes: bytes, steps_if_any=None):
    expected = EXPECTED_EXCEPTIONS.get(ARGS.target, tuple())
    if ARGS.no_fail or isinstance(e, expected):
        STATS["handled_exceptions"] += 1
        if ARGS.trace_errors and ARGS.trace_calc > 0:
            _print_trace(data_str, steps_if_any or [], f"EXPECTED FAILURE: {type(e).__name__}")
            ARGS.trace_calc -= 1
        return

    STATS["unexpected_exceptions"] += 1
    crash_meta = {
        "target": ARGS.target,
        "exception_type": type(e).__name__,
        "exception_message": str(e),
        "traceback": traceback.format_exc(),
        "input_b64": _b64(data_bytes),
        "input_preview": data_str[:200],
        "seed": ARGS.seed,
        "ts": time.time(),
        "trace_steps": steps_if_any or [],
    }
    path = _write_artifact("crash", data_bytes, crash_meta)
    STATS["crashes"].append(path)

    if ARGS.continue_on_crash:
        if ARGS.trace_calc > 0:
            _print_trace(data_str, steps_if_any or [], f"UNEXPECTED CRASH: {type(e).__name__}")
            ARGS.trace_calc -= 1
        return
    raise e


def _maybe_demo_calc_ops():
    """Print a demo evaluation so you always see actual operations."""
    expr = random.choice(CALC_EXPR_SEEDS)
    try:
        result, steps = TRACE_FUNCS[ARGS.target](expr)
        _print_trace(expr, steps, f"DEMO OK (result {result})")
    except errors.CalcError as e:
        _print_trace(expr, e.trace_steps, f"DEMO ERROR: {e.kind}")


def test_one_input(data: bytes):
    STATS["total_inputs"] += 1
    s = data.decode("utf-8", errors="ignore")

    # tracing path
    if ARGS.trace_calc > 0:
        try:
            result, steps = TRACE_FUNCS[ARGS.target](s)
            _print_trace(s, steps, f"OK (result {result})")
            ARGS.trace_calc -= 1
        except Exception as e:
            steps = getattr(e, "trace_steps", [])
            _classify_and_handle_exception(e, s, data, steps_if_any=steps)
            if ARGS.demo_ops and ARGS.trace_calc > 0:
                _maybe_demo_calc_ops()
                ARGS.trace_calc -= 1
        finally:
            _periodic_summary()
        return

    try:
        TARGET_FUNCS[ARGS.target](s)
    except Exception as e:
        _classify_and_handle_exception(e, s, data, steps_if_any=getattr(e, "trace_steps", []))
    finally:
        _periodic_summary()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(add_help=False)
    parser.add_argument("--target", choices=list(TARGET_FUNCS.keys()), default="calc")
    parser.add_argument("--artifacts-dir", default="reports")
    parser.add_argument("--time_budget", type=int, default=60)
    parser.add_argument("--max_len", type=int, default=4096)
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--continue_on_crash", action="store_true",
                        help="Record crashes but continue (better console summary).")
    parser.add_argument("--trace_calc", type=int, default=0,
                        help="Print up to N traced calculator evaluations.")
    parser.add_argument("--trace_errors", action="store_true",
                        help="Also print traces for expected failures.")
    parser.add_argument("--demo_ops", action="store_true",
                        help="After an error trace, also print a demo expression so real operations are visible.")
    parser.add_argument("--summary_interval", type=float, default=DEFAULT_SUMMARY_INTERVAL,
                        help="How often to write/print summary during fuzzing (seconds).")
    parser.add_argument("--plain", action="store_true",
                        help="Render tables with tabulate instead of rich.")
    parser.add_argument("--no_fail", action="store_true",
                        help="Count every exception as handled so the run is smooth/quiet.")
    parser.add_argument("--help", action="store_true")
    parser.add_argument("corpus", nargs="*")
    return parser


def parse_args(argv=None):
    args, _ = build_parser().parse_known_args(argv)
    return args


def start_run(args):
    """Install `args` as the active run and reset counters."""
    global ARGS
    ARGS = args
    reset_stats()
    os.makedirs(ARGS.artifacts_dir, exist_ok=True)
    STATS["target"] = ARGS.target
    STATS["start_time"] = time.time()
    STATS["artifacts_dir"] = ARGS.artifacts_dir
    STATS["seed"] = ARGS.seed
    STATS["mode"] = "no-fail" if ARGS.no_fail else "default"


def main(argv=None):
    args = parse_args(argv)
    if args.help:
        print(USAGE)
        return 0

    import atheris

    start_run(args)
    atheris.instrument_all()

    flags = [sys.argv[0], f"-max_total_time={ARGS.time_budget}", f"-max_len={ARGS.max_len}"]
    if ARGS.seed is not None:
        flags.append(f"-seed={ARGS.seed}")
    flags.extend(ARGS.corpus or [])

    # initial summary so the artifacts dir exists immediately
    _periodic_summary(force=True)

    atheris.Setup(flags, test_one_input)
    try:
        atheris.Fuzz()
    finally:
        # some environments never return here; the periodic summaries keep things visible
        STATS["duration_sec"] = round(time.time() - STATS["start_time"], 3)
        _write_summary_files("Fuzz run completed. See run_summary.json for details.\n")
        report.render_summary(STATS, plain=ARGS.plain)
    return 0


if __name__ == "__main__":
    raise SystemExit(main() or 0)
