"""
Error taxonomy for the calculator.

Every failure is fatal for a single run: it is raised where it is detected and
only the command-line layer turns it into `Error: <message>` plus exit code 1.
All kinds derive from ValueError so callers that only care about "bad input"
can catch that.
"""


class CalcError(ValueError):
    message = "Calculation failed"

    def __init__(self, message: str = None, position: int = None):
        super().__init__(message or self.message)
        self.position = position
        self.trace_steps = []

    @property
    def kind(self) -> str:
        return type(self).__name__


# parse errors
class ExpectedNumber(CalcError):
    message = "Expected a number"


class NumberOutOfRange(CalcError):
    message = "Number exceeds allowed range"


class MissingCloseParen(CalcError):
    message = "Missing closing parenthesis"


class TrailingInput(CalcError):
    message = "Unexpected characters after expression"


class NestingTooDeep(CalcError):
    message = "Expression nested too deeply"


# arithmetic policy
class OutOfRange(CalcError):
    message = "Value out of range"


class NonIntegerResult(CalcError):
    message = "Non-integer result in integer mode"


class DivisionByZero(CalcError):
    message = "Division by zero or near-zero"


class FinalNotInteger(CalcError):
    message = "Final result not an integer"


# input / command line
class InvalidCharacter(CalcError):
    message = "Invalid character in input"


class EmptyInput(CalcError):
    message = "Empty input"


class InputTooLarge(CalcError):
    message = "Input exceeds allowed size"


class UnknownArgument(CalcError):
    message = "Unknown argument"
