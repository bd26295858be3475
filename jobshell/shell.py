import logging
import sys

from jobshell import config
from jobshell.builtin import execute_builtin
from jobshell.errors import ParseError, ShellError, ShellExit
from jobshell.executor import Launcher
from jobshell.history import init_readline, load_history, save_history
from jobshell.job_control import JobState, Session
from jobshell.parser import parse_command
from jobshell.prompt import get_prompt
from jobshell.signals import SignalCoordinator
from jobshell.terminal import Terminal

log = logging.getLogger(__name__)


class Shell:
    """The read-evaluate loop tying parser, builtins and launcher together."""

    def __init__(self, session=None, terminal=None):
        self.session = session if session is not None else Session()
        self.terminal = terminal if terminal is not None else Terminal()
        self.coordinator = SignalCoordinator(self.session)
        self.launcher = Launcher(self.session, self.coordinator, self.terminal)

    @property
    def interactive(self):
        return self.terminal.interactive

    def start(self):
        self.terminal.claim()
        self.coordinator.install()
        if self.interactive:
            init_readline()
            load_history()
        log.debug("shell started (interactive=%s)", self.interactive)

    def notify(self):
        """Announce jobs that stopped or finished since the last prompt."""
        self.coordinator.dispatch_pending()
        if self.interactive:
            for job in self.session.jobs.list():
                if job.changed and job.state is not JobState.RUNNING:
                    print(f"[{job.id}]  {str(job.state):<8} {job.text}")
                job.changed = False
        for job in self.session.jobs.reap():
            log.debug("reaped %r (status %s)", job, job.exit_status)

    def read_line(self):
        if self.interactive:
            return input(get_prompt())
        return input()

    def _report(self, error):
        print(f"{config.SHELL_NAME}: {error}", file=sys.stderr)

    def execute(self, line):
        """Run one input line: a builtin or an external pipeline."""
        try:
            pipeline = parse_command(line)
        except ParseError as e:
            self._report(e)
            self.session.last_status = 2
            return
        if pipeline is None:
            return

        if pipeline.is_simple:
            executed, status = execute_builtin(pipeline.stages[0], self)
            if executed:
                self.session.last_status = status
                return

        try:
            self.launcher.run(pipeline)
        except ShellError as e:
            self._report(e)
            self.session.last_status = 1

    def main_loop(self):
        self.start()
        try:
            while True:
                try:
                    self.notify()
                    line = self.read_line()
                except EOFError:
                    if self.interactive:
                        print()
                    break
                except KeyboardInterrupt:
                    print()
                    continue

                try:
                    self.execute(line)
                except KeyboardInterrupt:
                    print()
        except ShellExit as e:
            return e.status
        finally:
            if self.interactive:
                save_history()
        return 0


def main():
    logging.basicConfig(
        level=config.LOG_LEVEL,
        filename=config.LOG_FILE,
        format="%(asctime)s %(name)s %(levelname)s: %(message)s",
    )
    return Shell().main_loop()
