"""
Entry point for running as a module.

Usage: python -m gemini_browser "TASK"
"""

import sys
from .cli import main

if __name__ == "__main__":
    sys.exit(main())
