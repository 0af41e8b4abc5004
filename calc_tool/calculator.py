"""
Recursive-descent calculator core: traceable steps with error propagation.

Grammar (LL(1), no backtracking):

    expression := term (('+' | '-') term)*
    term       := factor (('*' | '/') factor)*
    factor     := ('+' | '-')* ('(' expression ')' | number)
    number     := digit+

Public API:
- evaluate(text, config=None) -> float
- evaluate_with_trace(text, config=None) -> (float, [steps...])

Values are floats in both modes. In integer mode every finalized value has to
sit within INTEGER_TOLERANCE of a whole number, and division floors.

On a CalcError the steps recorded so far are attached as `exc.trace_steps`
so the harness and the CLI can show the attempted operations.
"""

import logging
import math
from dataclasses import dataclass

from calc_tool import errors

VALUE_LIMIT = 2e9
INTEGER_TOLERANCE = 1e-9
DIVISOR_EPSILON = 1e-4
MAX_NESTING_DEPTH = 200

DIGITS = "0123456789"
WHITESPACE = " \t\n\v\f\r"
OPERATORS = "()+-*/"

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EvalConfig:
    use_floats: bool = False
    max_depth: int = MAX_NESTING_DEPTH

    @property
    def mode(self) -> str:
        return "float" if self.use_floats else "integer"


INTEGER_MODE = EvalConfig()
FLOAT_MODE = EvalConfig(use_floats=True)


def is_valid_character(ch: str) -> bool:
    if len(ch) != 1:
        return False
    return ch in DIGITS or ch in OPERATORS or ch in WHITESPACE


def is_whole_number(x: float) -> bool:
    return abs(x - round(x)) < INTEGER_TOLERANCE


def validate_range(x: float) -> float:
    if x < -VALUE_LIMIT or x > VALUE_LIMIT:
        raise errors.OutOfRange()
    return x


def _check_divisor(rhs: float):
    if abs(rhs) < DIVISOR_EPSILON:
        raise errors.DivisionByZero()


def integer_divide(lhs: float, rhs: float) -> float:
    """Floor division: rounds toward negative infinity, so -7/2 is -4."""
    _check_divisor(rhs)
    return validate_range(float(math.floor(lhs / rhs)))


def floating_divide(lhs: float, rhs: float) -> float:
    _check_divisor(rhs)
    return validate_range(lhs / rhs)


def _fmt(x: float) -> str:
    if x == int(x):
        return str(int(x))
    return repr(x)


class Cursor:
    """Forward-only read position over an immutable piece of text."""

    END = "\0"

    def __init__(self, text: str):
        self._text = text
        self.pos = 0

    @property
    def text(self) -> str:
        return self._text

    def peek(self) -> str:
        if self.pos < len(self._text):
            return self._text[self.pos]
        return self.END

    def advance(self) -> str:
        ch = self.peek()
        if self.pos < len(self._text):
            self.pos += 1
        return ch

    def skip_whitespace(self):
        while self.pos < len(self._text) and self._text[self.pos] in WHITESPACE:
            self.pos += 1

    def at_end(self) -> bool:
        return self.pos >= len(self._text)


class _Recorder:
    def __init__(self):
        self.steps = []

    def log(self, msg: str):
        self.steps.append(msg)


class Evaluator:
    """
    One evaluation pass over a cursor.

    Each grammar level is a method, so any of them can be driven directly from
    a cursor positioned mid-text. The division policy is fixed when the
    evaluator is built and never consulted again.
    """

    def __init__(self, cursor: Cursor, config: EvalConfig = None, recorder: _Recorder = None):
        self.cursor = cursor
        self.config = config or INTEGER_MODE
        self.recorder = recorder or _Recorder()
        self._divide = floating_divide if self.config.use_floats else integer_divide
        self._depth = 0

    def check_integral(self, value: float) -> float:
        if not self.config.use_floats and not is_whole_number(value):
            raise errors.NonIntegerResult(position=self.cursor.pos)
        return value

    def read_number(self) -> float:
        cur = self.cursor
        cur.skip_whitespace()
        if cur.peek() not in DIGITS:
            raise errors.ExpectedNumber(position=cur.pos)
        start = cur.pos
        value = 0.0
        while cur.peek() in DIGITS:
            value = value * 10.0 + (ord(cur.advance()) - ord("0"))
            if value > VALUE_LIMIT:
                raise errors.NumberOutOfRange(position=start)
        self.recorder.log(f"NUM  {_fmt(value)}")
        return value

    def factor(self) -> float:
        cur = self.cursor
        cur.skip_whitespace()
        negative = False
        while cur.peek() in "+-":
            if cur.advance() == "-":
                negative = not negative
            cur.skip_whitespace()

        if cur.peek() == "(":
            if self._depth >= self.config.max_depth:
                raise errors.NestingTooDeep(position=cur.pos)
            cur.advance()
            self._depth += 1
            try:
                value = self.expression()
            finally:
                self._depth -= 1
            cur.skip_whitespace()
            if cur.peek() != ")":
                raise errors.MissingCloseParen(position=cur.pos)
            cur.advance()
        else:
            value = self.read_number()

        if negative:
            value = -value
            self.recorder.log(f"NEG  -({_fmt(-value)}) = {_fmt(value)}")
        return validate_range(value)

    def term(self) -> float:
        cur = self.cursor
        value = self.factor()
        cur.skip_whitespace()
        while cur.peek() in "*/":
            op = cur.advance()
            cur.skip_whitespace()
            right = self.factor()
            cur.skip_whitespace()
            if op == "*":
                res = self.check_integral(validate_range(value * right))
                self.recorder.log(f"MUL  {_fmt(value)} * {_fmt(right)} = {_fmt(res)}")
            else:
                res = self._divide(value, right)
                self.recorder.log(f"DIV  {_fmt(value)} / {_fmt(right)} = {_fmt(res)}")
            value = res
        return value

    def expression(self) -> float:
        cur = self.cursor
        value = self.term()
        cur.skip_whitespace()
        while cur.peek() in "+-":
            op = cur.advance()
            cur.skip_whitespace()
            right = self.term()
            cur.skip_whitespace()
            if op == "+":
                res = value + right
                name = "ADD "
            else:
                res = value - right
                name = "SUB "
            self.check_integral(validate_range(res))
            self.recorder.log(f"{name} {_fmt(value)} {op} {_fmt(right)} = {_fmt(res)}")
            value = res
        return value

    def evaluate(self) -> float:
        """Top-level entry: a full expression followed by nothing but whitespace."""
        value = self.expression()
        self.cursor.skip_whitespace()
        if not self.cursor.at_end():
            raise errors.TrailingInput(position=self.cursor.pos)
        return value


def evaluate_with_trace(text: str, config: EvalConfig = None):
    """Return (result, steps). On CalcError, attach `trace_steps` and re-raise."""
    if not isinstance(text, str):
        raise TypeError("Expression must be a string")
    config = config or INTEGER_MODE
    rec = _Recorder()
    evaluator = Evaluator(Cursor(text), config, rec)
    logger.debug("evaluating %d chars in %s mode", len(text), config.mode)

    try:
        result = evaluator.evaluate()
    except errors.CalcError as exc:
        rec.log(f"ERROR {exc.kind}: {exc}")
        exc.trace_steps = list(rec.steps)
        logger.debug("evaluation failed at %s: %s", exc.position, exc.kind)
        raise

    rec.log(f"RESULT = {_fmt(result)}")
    return result, rec.steps


def evaluate(text: str, config: EvalConfig = None) -> float:
    return evaluate_with_trace(text, config)[0]
