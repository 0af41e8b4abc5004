"""Input acquisition and pre-validation. Nothing here parses."""

from calc_tool import errors
from calc_tool.calculator import WHITESPACE, is_valid_character

MAX_INPUT_BYTES = 1023


def read_input(stream, limit: int = MAX_INPUT_BYTES) -> str:
    """Read `stream` to EOF, failing with InputTooLarge if it holds more than `limit`."""
    data = stream.read(limit + 1)
    if len(data) > limit:
        raise errors.InputTooLarge()
    if isinstance(data, bytes):
        # non-ASCII bytes become U+FFFD and fail pre-validation
        data = data.decode("ascii", errors="replace")
    return data


def check_valid_chars(raw: str):
    for pos, ch in enumerate(raw):
        if not is_valid_character(ch):
            raise errors.InvalidCharacter(position=pos)


def sanitize_input(raw: str) -> str:
    return "".join(ch for ch in raw if ch not in WHITESPACE)


def prepare(raw: str) -> str:
    """Validate then strip all whitespace; the result is what the evaluator sees."""
    check_valid_chars(raw)
    text = sanitize_input(raw)
    if not text:
        raise errors.EmptyInput()
    return text
