# file: exceptions.py


class CommandParseError(Exception):
    """Base class for every problem found in a trade command."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self):
        return self.message


class CommandSyntaxError(CommandParseError):
    """Input is structurally unrecognizable. Parsing stops immediately."""


class CommandValidationError(CommandParseError):
    """A recognized field carries an out-of-policy value."""


class MissingFieldError(CommandParseError):
    """A required field never matched any accepted form."""
