#!/usr/bin/env python3
"""Main entry point for the build pipeline CLI."""
import sys

from buildgraph.cli import main

if __name__ == "__main__":
    sys.exit(main())
