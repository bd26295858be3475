"""Tests for jobs, the job table and the shell session.

A job wraps the process group of one pipeline. Its state follows its
processes: it stops when a member stops and is done only once every
member has exited.
"""

import os
import signal

import pytest

from jobshell.errors import JobTableFull
from jobshell.job_control import Job, JobState, JobTable, Session, decode_status

# Linux wait status encodings
EXITED_0 = 0
STOPPED = (signal.SIGTSTP << 8) | 0x7F
CONTINUED = 0xFFFF


def _exited(code):
    return code << 8


def _done(job):
    for pid in job.pids:
        job.apply(pid, JobState.DONE, 0)
    return job


class TestDecodeStatus:
    """Verify translation of raw waitpid() statuses."""

    def test_normal_exit(self):
        assert decode_status(_exited(3)) == (JobState.DONE, 3)

    def test_killed_by_signal(self):
        assert decode_status(signal.SIGKILL) == (JobState.DONE, 128 + signal.SIGKILL)

    def test_stopped(self):
        assert decode_status(STOPPED) == (JobState.STOPPED, None)

    def test_continued(self):
        assert decode_status(CONTINUED) == (JobState.RUNNING, None)


class TestJob:
    """Verify the Job data structure."""

    def test_first_process_leads_group(self):
        job = Job("a | b")
        job.add_process(100)
        job.add_process(101)
        assert job.pgid == 100
        assert job.pid == 101
        assert job.id is None
        assert job.state is JobState.RUNNING

    def test_owns_member_and_group(self):
        job = Job("a | b", pids=[100, 101])
        assert job.owns(100)
        assert job.owns(101)
        assert not job.owns(102)

    def test_done_only_when_all_exit(self):
        """One finished stage does not finish the pipeline."""
        job = Job("a | b", pids=[100, 101])
        job.apply(100, JobState.DONE, 0)
        assert job.state is JobState.RUNNING
        assert job.live_pids() == [101]
        job.apply(101, JobState.DONE, 4)
        assert job.state is JobState.DONE
        assert job.exit_status == 4

    def test_exit_status_from_last_stage(self):
        job = Job("a | b", pids=[100, 101])
        job.apply(101, JobState.DONE, 0)
        job.apply(100, JobState.DONE, 1)
        assert job.exit_status == 0

    def test_stop_and_continue(self):
        job = Job("sleep 5", pids=[100])
        job.apply(100, JobState.STOPPED)
        assert job.state is JobState.STOPPED
        assert job.changed
        job.apply(100, JobState.RUNNING)
        assert job.state is JobState.RUNNING

    def test_done_is_terminal(self):
        job = _done(Job("true", pids=[100]))
        job.apply(100, JobState.RUNNING)
        assert job.state is JobState.DONE

    def test_str(self):
        """String form shows id, group, state and command text."""
        job = Job("sleep 5 &", pids=[4242])
        job.id = 3
        text = str(job)
        assert text.startswith("[3]")
        assert "4242" in text
        assert "Running" in text
        assert text.endswith("sleep 5 &")


class TestJobTable:
    """Verify the job table."""

    def test_register_assigns_increasing_ids(self):
        table = JobTable()
        first = Job("a", pids=[10])
        second = Job("b", pids=[20])
        assert table.register(first) == 1
        assert table.register(second) == 2
        assert first.id == 1
        assert len(table) == 2

    def test_register_with_state(self):
        table = JobTable()
        job = Job("vim", pids=[10])
        table.register(job, JobState.STOPPED)
        assert job.state is JobState.STOPPED

    def test_freed_id_is_reused(self):
        table = JobTable()
        table.register(Job("a", pids=[10]))
        second = Job("b", pids=[20])
        table.register(second)
        _done(second)
        table.remove(2)
        assert table.register(Job("c", pids=[30])) == 2

    def test_ids_stay_stable(self):
        """Removing a lower id does not renumber the others."""
        table = JobTable()
        first = Job("a", pids=[10])
        table.register(first)
        table.register(Job("b", pids=[20]))
        _done(first)
        table.remove(1)
        assert [job.id for job in table.list()] == [2]
        assert table.register(Job("c", pids=[30])) == 3

    def test_list_is_ordered_by_id(self):
        table = JobTable()
        for n in range(5):
            table.register(Job(f"job{n}", pids=[100 + n]))
        assert [job.id for job in table.list()] == [1, 2, 3, 4, 5]

    def test_find(self):
        table = JobTable()
        job = Job("a", pids=[10])
        table.register(job)
        assert table.find(1) is job
        assert table.find(2) is None

    def test_find_by_pid(self):
        table = JobTable()
        job = Job("a | b", pids=[10, 11])
        table.register(job)
        assert table.find_by_pid(11) is job
        assert table.find_by_pid(12) is None

    def test_update_state(self):
        table = JobTable()
        job = Job("a | b", pids=[10, 11])
        table.register(job)
        assert table.update_state(11, JobState.STOPPED) is job
        assert job.state is JobState.STOPPED
        assert table.update_state(99, JobState.DONE, 0) is None

    def test_remove_requires_done(self):
        table = JobTable()
        table.register(Job("a", pids=[10]))
        with pytest.raises(ValueError):
            table.remove(1)
        with pytest.raises(KeyError):
            table.remove(7)

    def test_reap_drops_done_jobs(self):
        table = JobTable()
        done = Job("a", pids=[10])
        table.register(done)
        table.register(Job("b", pids=[20]))
        _done(done)
        assert table.reap() == [done]
        assert [job.text for job in table.list()] == ["b"]
        assert table.reap() == []

    def test_full_table(self):
        table = JobTable(max_jobs=2)
        table.register(Job("a", pids=[10]))
        table.register(Job("b", pids=[20]))
        assert table.full
        with pytest.raises(JobTableFull):
            table.register(Job("c", pids=[30]))


class TestSession:
    """Verify attribution of child statuses."""

    def test_idle_session(self):
        session = Session()
        assert session.foreground_pgid == 0
        assert session.last_status == 0

    def test_status_goes_to_foreground_job(self):
        session = Session()
        job = Job("sleep 5", pids=[100])
        session.foreground = job
        assert session.foreground_pgid == 100
        assert session.record_status(100, STOPPED) is job
        assert job.state is JobState.STOPPED
        assert len(session.jobs) == 0

    def test_status_goes_to_tracked_job(self):
        session = Session()
        job = Job("sleep 5 &", pids=[100])
        session.jobs.register(job)
        session.record_status(100, _exited(0))
        assert job.state is JobState.DONE

    def test_untracked_pid_is_ignored(self):
        session = Session()
        assert session.record_status(12345, EXITED_0) is None

    def test_signal_job(self, monkeypatch):
        sent = []
        monkeypatch.setattr(os, "killpg", lambda pgid, sig: sent.append((pgid, sig)))
        session = Session()
        job = Job("sleep 5", pids=[100])
        assert session.signal_job(job)
        assert sent == [(100, signal.SIGCONT)]

    def test_signal_vanished_job_marks_it_done(self, monkeypatch):
        def gone(pgid, sig):
            raise ProcessLookupError(pgid)

        monkeypatch.setattr(os, "killpg", gone)
        session = Session()
        job = Job("sleep 5", pids=[100])
        assert not session.signal_job(job)
        assert job.state is JobState.DONE
