"""jobshell - a small interactive shell with pipelines and job control."""

__version__ = "0.1.0"
