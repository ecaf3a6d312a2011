"""Package entry point.

Preferred invocation is via the installed console script:

    data-detective ...

We also support:

    python -m data_detective ...
"""

from __future__ import annotations

from .cli import app


def main() -> None:
    """Entry point used by the console script and `python -m data_detective`."""

    app()


if __name__ == "__main__":
    main()
