"""Read, translate and rewrite the text inside Bethesda plugin files."""

__version__ = "0.3.0"
