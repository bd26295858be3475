import logging
import os
import signal
import sys

from jobshell import config
from jobshell.errors import JobError, JobTableFull, LaunchError
from jobshell.job_control import Job, JobState

log = logging.getLogger(__name__)

# Dispositions the shell changes for itself that programs must not inherit.
# Python also starts with SIGPIPE ignored.
CHILD_DEFAULT_SIGNALS = (
    signal.SIGINT,
    signal.SIGQUIT,
    signal.SIGTSTP,
    signal.SIGTTIN,
    signal.SIGTTOU,
    signal.SIGCHLD,
    signal.SIGPIPE,
)


def _child_error(message):
    print(f"{config.SHELL_NAME}: {message}", file=sys.stderr, flush=True)


class Launcher:
    """Forks pipelines into process groups and waits on foreground jobs."""

    def __init__(self, session, coordinator, terminal):
        self.session = session
        self.coordinator = coordinator
        self.terminal = terminal

    def run(self, pipeline):
        """
        Execute a parsed pipeline.
        Foreground pipelines block until they exit or stop; background
        pipelines are registered as Running jobs and left alone.
        Returns: the Job
        """
        if pipeline.background and self.session.jobs.full:
            raise JobTableFull(f"job table full ({self.session.jobs.max_jobs} jobs)")

        with self.coordinator.holding_children():
            job = self._spawn(pipeline)
            if pipeline.background:
                self.session.jobs.register(job)
                print(f"[{job.id}] {job.pgid}")
            else:
                self.wait(job)
        return job

    def _spawn(self, pipeline):
        sys.stdout.flush()
        sys.stderr.flush()

        job = Job(pipeline.text)
        foreground = not pipeline.background
        last = len(pipeline.stages) - 1
        prev_read = pipe_r = pipe_w = None
        try:
            for idx, argv in enumerate(pipeline.stages):
                if idx < last:
                    pipe_r, pipe_w = os.pipe()

                pid = os.fork()
                if pid == 0:
                    self._exec_stage(argv, job.pgid, prev_read, pipe_w, pipe_r, foreground)

                # The child sets its group too; doing it on both sides means
                # neither exec nor tcsetpgrp can race ahead of it.
                pgid = job.pgid or pid
                try:
                    os.setpgid(pid, pgid)
                except OSError:
                    pass
                job.add_process(pid)
                if idx == 0 and foreground:
                    self.terminal.give_to(pgid)
                log.debug("stage %d %r: pid %d pgid %d", idx, argv, pid, pgid)

                if prev_read is not None:
                    os.close(prev_read)
                if pipe_w is not None:
                    os.close(pipe_w)
                prev_read, pipe_r, pipe_w = pipe_r, None, None
        except OSError as e:
            self._abandon(job)
            raise LaunchError(f"{argv[0]}: {e.strerror or e}") from e
        finally:
            for fd in (prev_read, pipe_r, pipe_w):
                if fd is not None:
                    os.close(fd)
        return job

    def _exec_stage(self, argv, pgid, stdin_fd, stdout_fd, unused_fd, foreground):
        # Runs in the forked child and never returns.
        status = 126
        try:
            try:
                os.setpgid(0, pgid)
            except OSError:
                pass
            if foreground:
                self.terminal.give_to(pgid or os.getpid())
            for signum in CHILD_DEFAULT_SIGNALS:
                signal.signal(signum, signal.SIG_DFL)
            signal.pthread_sigmask(signal.SIG_UNBLOCK, {signal.SIGCHLD})

            if stdin_fd is not None:
                os.dup2(stdin_fd, 0)
                os.close(stdin_fd)
            if stdout_fd is not None:
                os.dup2(stdout_fd, 1)
                os.close(stdout_fd)
            if unused_fd is not None:
                os.close(unused_fd)
            os.execvp(argv[0], argv)
        except FileNotFoundError:
            status = 127
            _child_error(f"{argv[0]}: command not found")
        except PermissionError:
            _child_error(f"{argv[0]}: permission denied")
        except OSError as e:
            _child_error(f"{argv[0]}: {e.strerror or e}")
        finally:
            os._exit(status)

    def _abandon(self, job):
        """Kill and reap whatever part of a failed pipeline was started."""
        for pid in job.pids:
            try:
                os.kill(pid, signal.SIGKILL)
            except ProcessLookupError:
                pass
        for pid in job.pids:
            try:
                os.waitpid(pid, 0)
            except ChildProcessError:
                pass
        job.mark_done()
        self.terminal.reclaim()
        log.debug("abandoned partial pipeline %r", job)

    def wait(self, job):
        """
        Block until every process of the job has exited or the job stops.
        The caller must hold SIGCHLD (see SignalCoordinator.holding_children).
        Returns: the job's final state
        """
        self.session.foreground = job
        self.terminal.give_to(job.pgid, job.tmodes)
        try:
            while True:
                self._wait_for_change(job)
                if job.state is not JobState.STOPPED or job.id is not None:
                    break
                try:
                    self.session.jobs.register(job)
                    break
                except JobTableFull as e:
                    print(f"{config.SHELL_NAME}: {e}; resuming: {job.text}", file=sys.stderr)
                    if self.session.signal_job(job):
                        job.state = JobState.RUNNING
        finally:
            self.session.foreground = None
            job.tmodes = self.terminal.reclaim()

        job.changed = False
        if job.state is JobState.STOPPED:
            if self.terminal.interactive:
                print()
            print(f"[{job.id}]+  Stopped  {job.text}")
            self.session.last_status = 128 + signal.SIGTSTP
        else:
            self.session.last_status = job.exit_status or 0
            if job.id is not None and self.session.jobs.find(job.id) is job:
                self.session.jobs.remove(job.id)
        return job.state

    def _wait_for_change(self, job):
        while job.state is JobState.RUNNING:
            # statuses collected before SIGCHLD was held
            self.coordinator.dispatch_pending()
            if job.state is not JobState.RUNNING:
                break
            try:
                pid, status = os.waitpid(-1, os.WUNTRACED)
            except ChildProcessError:
                log.warning("no children left while waiting for %r", job)
                job.mark_done()
                break
            self.session.record_status(pid, status)

    def resume(self, job, foreground=True):
        """Continue a stopped (or background) job, in the foreground or not."""
        with self.coordinator.holding_children():
            self.coordinator.dispatch_pending()
            if job.state is JobState.DONE:
                raise JobError(f"job {job.id} has terminated")

            if foreground:
                print(job.text, flush=True)
                self.terminal.give_to(job.pgid, job.tmodes)
                if self.session.signal_job(job):
                    job.state = JobState.RUNNING
                return self.wait(job)

            # already-running jobs get SIGCONT too
            if self.session.signal_job(job):
                job.state = JobState.RUNNING
                text = job.text if job.text.endswith("&") else f"{job.text} &"
                print(f"[{job.id}]+ {text}")
            return job.state
