"""
Allow running evtriagectl as a module: python -m evtriage.cli
"""

import sys
from .evtriagectl import main

if __name__ == "__main__":
    sys.exit(main())
