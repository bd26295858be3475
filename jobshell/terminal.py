import logging
import os
import signal
import termios

log = logging.getLogger(__name__)


class Terminal:
    """
    Controlling-terminal ownership for job control.

    Only active when the shell's stdin is a tty; otherwise every method is a
    no-op and children simply inherit the shell's descriptors.
    """

    def __init__(self, fd=0, interactive=None):
        self.fd = fd
        if interactive is None:
            interactive = os.isatty(fd)
        self.interactive = interactive
        self.shell_pgid = os.getpgrp()
        self.modes = None

    def claim(self):
        """Put the shell in its own process group in the foreground."""
        if not self.interactive:
            return
        # Ctrl-\ must not kill the shell, and tcsetpgrp() from the
        # background would otherwise stop it.
        for signum in (signal.SIGQUIT, signal.SIGTTOU, signal.SIGTTIN):
            signal.signal(signum, signal.SIG_IGN)

        pid = os.getpid()
        if os.getpgrp() != pid:
            try:
                os.setpgid(pid, pid)
            except PermissionError:
                # already a session leader
                pass
        self.shell_pgid = os.getpgrp()
        try:
            os.tcsetpgrp(self.fd, self.shell_pgid)
            self.modes = termios.tcgetattr(self.fd)
        except (OSError, termios.error) as e:
            log.warning("job control disabled: %s", e)
            self.interactive = False

    def give_to(self, pgid, modes=None):
        if not self.interactive:
            return
        try:
            if modes is not None:
                termios.tcsetattr(self.fd, termios.TCSADRAIN, modes)
            os.tcsetpgrp(self.fd, pgid)
        except (OSError, termios.error) as e:
            log.debug("could not give terminal to %d: %s", pgid, e)

    def reclaim(self):
        """
        Take the terminal back for the shell.
        Returns: the modes the job left the terminal in (None if not a tty).
        """
        if not self.interactive:
            return None
        job_modes = None
        try:
            job_modes = termios.tcgetattr(self.fd)
            os.tcsetpgrp(self.fd, self.shell_pgid)
            if self.modes is not None:
                termios.tcsetattr(self.fd, termios.TCSADRAIN, self.modes)
        except (OSError, termios.error) as e:
            log.debug("could not reclaim terminal: %s", e)
        return job_modes
