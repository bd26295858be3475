import shlex
from collections import namedtuple

from jobshell import config
from jobshell.errors import ParseError

PIPE = "|"
BACKGROUND = "&"
QUOTES = "\"'"

# quoted is True when the word came from a quoted string, so "|" stays a word
Token = namedtuple("Token", "text quoted")


class Pipeline:
    """One parsed input line: its stages, background flag and original text."""

    def __init__(self, stages, background=False, text=""):
        self.stages = stages
        self.background = background
        self.text = text

    @property
    def is_simple(self):
        return len(self.stages) == 1

    def __repr__(self):
        return f"Pipeline({self.stages!r}, background={self.background})"


def _split_words(line):
    # Non-POSIX shlex keeps the quote characters on the word, which is how a
    # quoted "|" is told apart from a pipe, and does no escape processing.
    lex = shlex.shlex(line, posix=False)
    lex.whitespace_split = True
    lex.commenters = ""
    try:
        return list(lex)
    except ValueError as e:
        raise ParseError(f"syntax error: {str(e).lower()}") from None


def tokenize(line):
    """
    Split a raw line into tokens and detect the background marker.
    Returns: (tokens: list of Token, background: bool)
    """
    if len(line) > config.MAX_LINE:
        raise ParseError(f"line too long (limit is {config.MAX_LINE} characters)")

    tokens = []
    for word in _split_words(line):
        if len(word) >= 2 and word[0] in QUOTES and word[-1] == word[0]:
            tokens.append(Token(word[1:-1], True))
        else:
            tokens.append(Token(word, False))

    if len(tokens) > config.MAX_ARGS:
        raise ParseError(f"too many arguments (limit is {config.MAX_ARGS})")

    background = False
    kept = []
    for tok in tokens:
        if tok.text == BACKGROUND and not tok.quoted:
            background = True
        else:
            kept.append(tok)

    # "sleep 5&"
    if kept and not kept[-1].quoted and kept[-1].text.endswith(BACKGROUND):
        background = True
        kept[-1] = Token(kept[-1].text[:-1], False)

    return kept, background


def build_pipeline(tokens):
    """Group tokens into argument vectors, one per stage, split on '|'."""
    stages, cur = [], []
    for tok in tokens:
        if tok.text == PIPE and not tok.quoted:
            if not cur:
                raise ParseError("syntax error near unexpected token '|'")
            stages.append(cur)
            cur = []
        else:
            cur.append(tok.text)
    if not cur:
        raise ParseError("syntax error near unexpected token '|'")
    stages.append(cur)

    if len(stages) > config.MAX_STAGES:
        raise ParseError(f"too many pipeline stages (limit is {config.MAX_STAGES})")
    return stages


def parse_command(line):
    """
    Parse a command line into a Pipeline.
    Returns None for a blank line.
    """
    text = line.strip()
    if not text:
        return None

    tokens, background = tokenize(text)
    if not tokens:
        raise ParseError("syntax error near unexpected token '&'")

    return Pipeline(build_pipeline(tokens), background, text)
