"""Allow running as python -m espstrings."""

from espstrings.cli import app

app()
