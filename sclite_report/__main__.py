"""Package entry point for ``python -m sclite_report``.

WHY: Python's ``-m`` flag looks for ``__main__.py`` inside the package and
executes it.

HOW: Delegates to the CLI's main() function.
"""

from sclite_report.cli import main

if __name__ == "__main__":
    main()
