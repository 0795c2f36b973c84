"""Textual dashboard for gistree."""

from .app import GistreeApp

__all__ = ["GistreeApp"]
