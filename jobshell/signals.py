"""
Job-control signal handling.

The SIGCHLD handler only collects raw (pid, status) pairs into a queue; the
command loop attributes them to jobs through ``dispatch_pending``. While the
launcher forks a pipeline or waits on a foreground job it holds SIGCHLD
blocked, so its own blocking waitpid() is the only collector.
"""

import logging
import os
import signal
from collections import deque
from contextlib import contextmanager

log = logging.getLogger(__name__)

WAIT_FLAGS = os.WNOHANG | os.WUNTRACED | os.WCONTINUED


class SignalCoordinator:

    def __init__(self, session):
        self.session = session
        self._events = deque()
        self._holding = 0
        self._installed = {}

    def install(self):
        """Install handlers for SIGCHLD, SIGTSTP and SIGINT."""
        handlers = {
            signal.SIGCHLD: self.handle_sigchld,
            signal.SIGTSTP: self.handle_sigtstp,
            signal.SIGINT: self.handle_sigint,
        }
        for signum, handler in handlers.items():
            self._installed[signum] = signal.signal(signum, handler)

    def uninstall(self):
        for signum, previous in self._installed.items():
            signal.signal(signum, previous)
        self._installed.clear()

    def handle_sigchld(self, signum, frame):
        # A deferred call while held must not steal statuses from the
        # launcher's synchronous wait.
        if self._holding:
            return
        self.collect()

    def handle_sigtstp(self, signum, frame):
        self._forward(signal.SIGTSTP)

    def handle_sigint(self, signum, frame):
        if not self._forward(signal.SIGINT):
            raise KeyboardInterrupt

    def _forward(self, signum):
        pgid = self.session.foreground_pgid
        if not pgid or pgid == os.getpgrp():
            return False
        try:
            os.killpg(pgid, signum)
        except ProcessLookupError:
            pass
        return True

    def collect(self):
        """Non-blocking sweep of every pending child state change."""
        while True:
            try:
                pid, status = os.waitpid(-1, WAIT_FLAGS)
            except ChildProcessError:
                return
            if pid == 0:
                return
            self._events.append((pid, status))

    def has_pending(self):
        return bool(self._events)

    def dispatch_pending(self):
        """Apply queued status changes to the session's jobs."""
        count = 0
        while self._events:
            pid, status = self._events.popleft()
            self.session.record_status(pid, status)
            count += 1
        if count:
            log.debug("dispatched %d child status change(s)", count)
        return count

    @contextmanager
    def holding_children(self):
        """Block SIGCHLD for the duration; the caller reaps synchronously."""
        old_mask = signal.pthread_sigmask(signal.SIG_BLOCK, {signal.SIGCHLD})
        self._holding += 1
        try:
            yield
        finally:
            self._holding -= 1
            signal.pthread_sigmask(signal.SIG_SETMASK, old_mask)
            if not self._holding:
                self.collect()
