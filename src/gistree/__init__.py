"""gistree - browse and edit GitHub gists as a lazily synchronized tree."""

__version__ = "0.1.0"
