class ShellError(Exception):
    """Base class for errors reported to the user without leaving the shell."""


class ParseError(ShellError):
    """The input line is not a valid command."""


class LaunchError(ShellError):
    """A pipeline could not be started; nothing of it is left running."""


class JobTableFull(LaunchError):
    """No free job id is left for a new job."""


class JobError(ShellError):
    """Bad job reference given to fg/bg."""


class ShellExit(Exception):
    """Raised by the exit builtin to leave the command loop."""

    def __init__(self, status=0):
        super().__init__(status)
        self.status = status
