"""livepipe: pipe data in, type a command, watch its output update as you type."""

__version__ = "0.1.0"
