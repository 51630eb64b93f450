"""cmdify-sync: keep a personal collection of CLI commands in sync
across machines through a GitHub gist or a local file."""

__version__ = "0.4.0"
