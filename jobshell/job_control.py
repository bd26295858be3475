import logging
import os
import signal
from enum import Enum

from jobshell import config
from jobshell.errors import JobTableFull

log = logging.getLogger(__name__)


class JobState(Enum):
    RUNNING = "Running"
    STOPPED = "Stopped"
    DONE = "Done"

    def __str__(self):
        return self.value


def decode_status(status):
    """
    Translate a raw waitpid() status.
    Returns: (state, exit_status) where exit_status is None unless the
    process is gone; a death by signal N is reported as 128 + N.
    """
    if os.WIFSTOPPED(status):
        return JobState.STOPPED, None
    if os.WIFCONTINUED(status):
        return JobState.RUNNING, None
    if os.WIFSIGNALED(status):
        return JobState.DONE, 128 + os.WTERMSIG(status)
    return JobState.DONE, os.WEXITSTATUS(status)


class Job:
    """
    A launched pipeline that has not been fully reaped.

    The process group is led by the first stage; the last stage is the
    representative pid whose exit status becomes the job's status.
    """

    def __init__(self, text, pids=(), pgid=0):
        self.id = None
        self.text = text
        self.pids = list(pids)
        self.pgid = pgid or (self.pids[0] if self.pids else 0)
        self.state = JobState.RUNNING
        self.exit_status = None
        self.tmodes = None
        # set on every state change, cleared once the user has been told
        self.changed = False
        self._live = set(self.pids)

    @property
    def pid(self):
        return self.pids[-1] if self.pids else 0

    def add_process(self, pid):
        if not self.pgid:
            self.pgid = pid
        self.pids.append(pid)
        self._live.add(pid)

    def owns(self, pid):
        return pid in self.pids or pid == self.pgid

    def live_pids(self):
        return [pid for pid in self.pids if pid in self._live]

    def apply(self, pid, state, exit_status=None):
        """Apply the state change of one member process to the job."""
        if self.state is JobState.DONE:
            return
        old = self.state
        if state is JobState.DONE:
            self._live.discard(pid)
            if pid == self.pid:
                self.exit_status = exit_status
            if not self._live:
                self.state = JobState.DONE
        else:
            self.state = state
        if self.state is not old:
            self.changed = True
            log.debug("job %s (pgid %d): %s -> %s", self.id, self.pgid, old, self.state)

    def mark_done(self):
        self._live.clear()
        if self.state is not JobState.DONE:
            self.state = JobState.DONE
            self.changed = True

    def __str__(self):
        return f"[{self.id}]  {self.pgid:<7} {str(self.state):<8} {self.text}"

    def __repr__(self):
        return f"Job(id={self.id}, pgid={self.pgid}, state={self.state}, text={self.text!r})"


class JobTable:
    """Background and stopped jobs, keyed by job id."""

    def __init__(self, max_jobs=None):
        self.max_jobs = max_jobs or config.MAX_JOBS
        self._jobs = {}

    def __len__(self):
        return len(self._jobs)

    def __iter__(self):
        return iter(self.list())

    @property
    def full(self):
        return len(self._jobs) >= self.max_jobs

    def register(self, job, state=None):
        """Insert a job under the next free id and return the id."""
        if self.full:
            raise JobTableFull(f"job table full ({self.max_jobs} jobs)")
        job_id = max(self._jobs, default=0) + 1
        job.id = job_id
        if state is not None:
            job.state = state
        self._jobs[job_id] = job
        log.debug("registered %r", job)
        return job_id

    def list(self):
        return [self._jobs[job_id] for job_id in sorted(self._jobs)]

    def find(self, job_id):
        return self._jobs.get(job_id)

    def find_by_pid(self, pid):
        for job in self._jobs.values():
            if job.owns(pid):
                return job
        return None

    def update_state(self, pid, state, exit_status=None):
        """
        Record the new state of process ``pid`` (a stage pid or group id).
        Returns the affected job, or None when the pid is not tracked.
        """
        job = self.find_by_pid(pid)
        if job is not None:
            job.apply(pid, state, exit_status)
        return job

    def remove(self, job_id):
        job = self._jobs[job_id]
        if job.state is not JobState.DONE:
            raise ValueError(f"job {job_id} is still {job.state}")
        del self._jobs[job_id]
        log.debug("removed job %d", job_id)
        return job

    def reap(self):
        """Drop every finished job and return them in id order."""
        done = [job for job in self.list() if job.state is JobState.DONE]
        for job in done:
            self.remove(job.id)
        return done


class Session:
    """
    Shell-wide state shared by the command loop, launcher, builtins and
    signal coordinator.
    """

    def __init__(self, jobs=None):
        self.jobs = jobs if jobs is not None else JobTable()
        self.foreground = None
        self.last_status = 0

    @property
    def foreground_pgid(self):
        return self.foreground.pgid if self.foreground is not None else 0

    def record_status(self, pid, status):
        """Attribute a raw waitpid() status to the job that owns ``pid``."""
        state, exit_status = decode_status(status)
        fg = self.foreground
        if fg is not None and fg.owns(pid):
            fg.apply(pid, state, exit_status)
            return fg
        job = self.jobs.update_state(pid, state, exit_status)
        if job is None:
            log.debug("status %#x for untracked pid %d", status, pid)
        return job

    def signal_job(self, job, signum=signal.SIGCONT):
        try:
            os.killpg(job.pgid, signum)
        except ProcessLookupError:
            log.debug("process group %d already gone", job.pgid)
            job.mark_done()
            return False
        return True
