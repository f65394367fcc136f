"""Command-line shell for browsing and editing a notes repository."""

from ._helpers import main  # noqa: F401

# Command modules register themselves on the main group.
from . import _basic, _write  # noqa: F401
