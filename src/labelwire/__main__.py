"""Entry point for running Labelwire as a module."""

import sys

from labelwire.cli.main import main

if __name__ == "__main__":
    sys.exit(main())
