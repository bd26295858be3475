import os
import sys

import psutil

from jobshell.errors import JobError, ShellExit
from jobshell.history import show_history
from jobshell.job_control import JobState


def builtin_help(args, shell):
    """Print help message"""
    print("""jobshell help:
 Built-in commands:
  cd [dir]       : change directory (home if omitted)
  exit           : exit shell, leaving background jobs running
  jobs [-l]      : list background and stopped jobs
  fg <job_id>    : resume a job in the foreground
  bg <job_id>    : resume a stopped job in the background
  history        : show command history
  help           : print this help

Features:
  Pipes using |
  Background with a trailing & (run command in background)
  Ctrl+Z stops the foreground job, Ctrl+C interrupts it
""")
    return 0


def builtin_cd(args, shell):
    """Change directory"""
    if len(args) > 1:
        print("cd: too many arguments", file=sys.stderr)
        return 1
    path = os.path.expanduser(args[0]) if args else os.environ.get("HOME") or os.path.expanduser("~")
    try:
        os.chdir(path)
        return 0
    except OSError as e:
        print(f"cd: {e.strerror}: {path}", file=sys.stderr)
        return 1


def builtin_exit(args, shell):
    raise ShellExit(0)


def _describe_process(pid):
    try:
        proc = psutil.Process(pid)
        return f"{pid:<7} {proc.status():<10} {proc.name()}"
    except psutil.NoSuchProcess:
        return f"{pid:<7} terminated"
    except psutil.AccessDenied:
        return f"{pid:<7} unknown"


def builtin_jobs(args, shell):
    """List tracked jobs ordered by id; -l adds every live process."""
    long_format = False
    for arg in args:
        if arg != "-l":
            print(f"jobs: {arg}: invalid option", file=sys.stderr)
            print("jobs: usage: jobs [-l]", file=sys.stderr)
            return 2
        long_format = True

    shell.coordinator.dispatch_pending()
    shell.session.jobs.reap()
    for job in shell.session.jobs.list():
        print(job)
        if long_format:
            for pid in job.live_pids():
                print(f"      {_describe_process(pid)}")
    return 0


def _lookup_job(args, shell):
    if not args:
        raise JobError("usage: missing job id")
    ref = args[0]
    try:
        job_id = int(ref[1:] if ref.startswith("%") else ref)
    except ValueError:
        raise JobError(f"{ref}: invalid job id") from None

    shell.coordinator.dispatch_pending()
    job = shell.session.jobs.find(job_id)
    if job is None or job.state is JobState.DONE:
        raise JobError(f"{ref}: no such job")
    return job


def builtin_fg(args, shell):
    job = _lookup_job(args, shell)
    shell.launcher.resume(job, foreground=True)
    return shell.session.last_status


def builtin_bg(args, shell):
    job = _lookup_job(args, shell)
    shell.launcher.resume(job, foreground=False)
    return 0


def builtin_history(args, shell):
    show_history()
    return 0


BUILTINS = {
    "cd": builtin_cd,
    "exit": builtin_exit,
    "jobs": builtin_jobs,
    "fg": builtin_fg,
    "bg": builtin_bg,
    "help": builtin_help,
    "history": builtin_history,
}


def execute_builtin(argv, shell):
    """
    Execute a built-in command if argv names one.
    Returns (executed: bool, exit_code: int)
    """
    if not argv or argv[0] not in BUILTINS:
        return False, 0

    name, args = argv[0], argv[1:]
    try:
        return True, BUILTINS[name](args, shell)
    except JobError as e:
        print(f"{name}: {e}", file=sys.stderr)
        return True, 1
