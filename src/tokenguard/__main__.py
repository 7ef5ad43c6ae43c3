"""Entry point for running as module: python -m tokenguard"""

import sys

from tokenguard.cli import main

if __name__ == "__main__":
    sys.exit(main())
