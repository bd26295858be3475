import os

SHELL_NAME = "jobshell"

HISTORY_FILE = os.path.expanduser(
    os.environ.get("JOBSHELL_HISTFILE", "~/.jobshell_history")
)
MAX_HISTORY = int(os.environ.get("JOBSHELL_MAX_HISTORY", "1000"))

# Parser limits
MAX_LINE = int(os.environ.get("JOBSHELL_MAX_LINE", "1024"))
MAX_ARGS = int(os.environ.get("JOBSHELL_MAX_ARGS", "64"))
MAX_STAGES = int(os.environ.get("JOBSHELL_MAX_STAGES", "10"))

MAX_JOBS = int(os.environ.get("JOBSHELL_MAX_JOBS", "100"))

USE_COLOR = os.environ.get("JOBSHELL_COLOR", "1").lower() not in ("0", "no", "false", "off")

LOG_LEVEL = os.environ.get("JOBSHELL_LOG_LEVEL", "WARNING").upper()
LOG_FILE = os.environ.get("JOBSHELL_LOG_FILE") or None
