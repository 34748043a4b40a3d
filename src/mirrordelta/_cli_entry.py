"""Console-script entry point for ``mirrordelta``.

click ships in the ``cli`` extra; without it the library still imports
but the command cannot run.
"""

import importlib.util
import sys

MISSING_CLICK = (
    "mirrordelta: the command-line interface needs click, which is not installed.\n"
    "Reinstall with the cli extra:  pip install 'mirrordelta[cli]'"
)


def main(argv=None):
    if importlib.util.find_spec("click") is None:
        sys.stderr.write(MISSING_CLICK + "\n")
        raise SystemExit(1)
    from .cli import main as cli_main

    cli_main(args=argv, prog_name="mirrordelta")
