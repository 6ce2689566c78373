"""Allow running hostguard as a module: python -m hostguard"""

import sys

from hostguard.cli.known_hosts import main

if __name__ == "__main__":
    sys.exit(main())
