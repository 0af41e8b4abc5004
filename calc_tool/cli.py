"""
Command-line wrapper around the calculator.

    echo "(2+3)*4" | calc           -> 20
    echo "7/2"     | calc --float   -> 3.5000

Exit code 0 with exactly one line on stdout, or exit code 1 with
`Error: <message>` on stderr and nothing on stdout.

Environment:
  CALC_TRACE=1         also render the evaluation steps to stderr
  CALC_LOG_LEVEL=NAME  logging level (default WARNING)
"""

import argparse
import logging
import os
import sys

from calc_tool import errors, inputs, report
from calc_tool.calculator import EvalConfig, evaluate_with_trace, is_whole_number

EXIT_OK = 0
EXIT_FAILURE = 1

TRACE_ENV = "CALC_TRACE"
LOG_LEVEL_ENV = "CALC_LOG_LEVEL"

logger = logging.getLogger(__name__)


class _ArgumentParser(argparse.ArgumentParser):
    def error(self, message):
        raise errors.UnknownArgument()


def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(prog="calc", add_help=False, allow_abbrev=False)
    parser.add_argument("--float", dest="use_floats", action="store_true",
                        help="Use floating-point arithmetic instead of integers.")
    return parser


def parse_args(argv) -> EvalConfig:
    try:
        args, extra = build_parser().parse_known_args(argv)
    except argparse.ArgumentError as exc:
        raise errors.UnknownArgument() from exc
    if extra:
        raise errors.UnknownArgument()
    return EvalConfig(use_floats=args.use_floats)


def format_result(value: float, config: EvalConfig) -> str:
    if config.use_floats:
        return f"{value:.4f}"
    if not is_whole_number(value):
        raise errors.FinalNotInteger()
    return str(int(round(value)))


def compute(raw: str, config: EvalConfig):
    """Full pipeline for one raw input: returns (output line, trace steps)."""
    text = inputs.prepare(raw)
    value, steps = evaluate_with_trace(text, config)
    return format_result(value, config), steps


def _trace_enabled() -> bool:
    return os.environ.get(TRACE_ENV, "").strip().lower() in ("1", "true", "yes", "on")


def run(argv=None, stdin=None, stdout=None, stderr=None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    stdin = sys.stdin.buffer if stdin is None else stdin
    stdout = sys.stdout if stdout is None else stdout
    stderr = sys.stderr if stderr is None else stderr

    raw = ""
    try:
        config = parse_args(argv)
        raw = inputs.read_input(stdin)
        output, steps = compute(raw, config)
    except errors.CalcError as exc:
        logger.debug("fatal %s at position %s", exc.kind, exc.position)
        print(f"Error: {exc}", file=stderr)
        if _trace_enabled():
            report.print_calc_trace(raw, exc.trace_steps, f"ERROR: {exc.kind}", file=stderr)
        return EXIT_FAILURE

    print(output, file=stdout)
    if _trace_enabled():
        report.print_calc_trace(raw, steps, f"OK (result {output})", file=stderr)
    return EXIT_OK


def _configure_logging():
    name = os.environ.get(LOG_LEVEL_ENV, "WARNING").upper()
    level = getattr(logging, name, logging.WARNING)
    if not isinstance(level, int):
        level = logging.WARNING
    logging.basicConfig(level=level, stream=sys.stderr)


def main() -> int:
    _configure_logging()
    return run()


if __name__ == "__main__":
    raise SystemExit(main())
