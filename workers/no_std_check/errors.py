"""
Errors — fatal conditions raised by the driver and the wrapper.

Child processes that exit non-zero are *not* errors: their exit code is
propagated as our own.  Everything here ends the process with status 1
and a one-line message on stderr (see ``cli.main``).
"""


class NoStdCheckError(Exception):
    """Base class for every fatal condition of the tool."""


class PreconditionError(NoStdCheckError):
    """Unsupported channel, missing wrapper environment, empty argv."""


class ToolchainError(NoStdCheckError):
    """A rustc / cargo query failed or produced unparsable output."""


class SysrootError(NoStdCheckError):
    """Synthesis could not complete; the destination tree is left as is."""


class ChildSignaled(NoStdCheckError):
    """A child process was terminated by a signal and has no exit code."""

    def __init__(self, program: str, signal: int):
        super().__init__(f"{program} terminated by signal {signal}")
        self.program = program
        self.signal = signal
