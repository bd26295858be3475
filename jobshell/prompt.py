import getpass
import os
import socket

from jobshell import config

GREEN = "\x1b[92m"
YELLOW = "\x1b[33m"
MAGENTA = "\x1b[95m"
RESET = "\x1b[0m"


def _paint(text, color, use_color):
    if not use_color:
        return text
    # \001 and \002 tell readline the escape codes take no columns
    return f"\001{color}\002{text}\001{RESET}\002"


def get_prompt(use_color=None):
    """Render '[user] on [host] >> cwd $ '."""
    if use_color is None:
        use_color = config.USE_COLOR
    try:
        user = getpass.getuser()
    except (KeyError, OSError):
        user = os.getenv("USER") or "user"
    host = socket.gethostname()
    try:
        cwd = os.getcwd()
    except FileNotFoundError:
        cwd = "?"
    home = os.path.expanduser("~")
    if cwd == home or cwd.startswith(home + os.sep):
        cwd = "~" + cwd[len(home):]

    return (
        f"{_paint(f'[{user}]', GREEN, use_color)} on "
        f"{_paint(f'[{host}]', YELLOW, use_color)} >> "
        f"{_paint(cwd, MAGENTA, use_color)} $ "
    )
