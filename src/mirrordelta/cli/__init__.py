"""mirrordelta CLI — mirror a repository and report what changed."""

from ._helpers import main  # noqa: F401 — entry point

# Import command modules to register Click commands with the main group.
from . import _sync  # noqa: F401
