"""Remote store client for the GitHub gist transport."""

from .client import GistClient

__all__ = ["GistClient"]
