"""
Main entry point for running the package as a module.

Usage:
    python -m derivatives purge --package thumb
    python -m derivatives invalidate ID [ID ...]
    python -m derivatives urls ID --extension jpg
"""

import sys
from .cli import main

if __name__ == '__main__':
    sys.exit(main())
