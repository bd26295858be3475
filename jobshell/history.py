import logging
import os
import readline
import sys

from jobshell.config import HISTORY_FILE, MAX_HISTORY

log = logging.getLogger(__name__)


def init_readline():
    """Configure readline key bindings for interactive use."""
    if not sys.stdin.isatty():
        log.debug("stdin is not a terminal; readline not configured")
        return False
    try:
        readline.parse_and_bind("set editing-mode emacs")

        # Ctrl+Left/Right jump between words
        readline.parse_and_bind("\\e[1;5D: backward-word")
        readline.parse_and_bind("\\e[1;5C: forward-word")

        readline.parse_and_bind("\\e[A: previous-history")
        readline.parse_and_bind("\\e[B: next-history")
        readline.parse_and_bind("set completion-ignore-case on")
        readline.parse_and_bind("set show-all-if-ambiguous on")
    except Exception as e:
        print(f"Warning: Could not configure readline: {e}", file=sys.stderr)
        return False
    return True


def save_history(path=HISTORY_FILE):
    try:
        readline.set_history_length(MAX_HISTORY)
        readline.write_history_file(path)
    except OSError as e:
        print(f"Warning: Could not save history: {e}", file=sys.stderr)


def load_history(path=HISTORY_FILE):
    try:
        if os.path.exists(path):
            readline.read_history_file(path)
            readline.set_history_length(MAX_HISTORY)
    except OSError as e:
        print(f"Warning: Could not load history: {e}", file=sys.stderr)


def show_history():
    hlen = readline.get_current_history_length()
    for i in range(1, hlen + 1):
        print(f"{i:>5}  {readline.get_history_item(i)}")
