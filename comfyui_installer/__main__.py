import sys

from .boot import main

if __name__ == "__main__":
    sys.exit(main())
