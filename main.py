#!/usr/bin/env python3
"""
vodscribe Entry Point Script

This script initializes the CLI handler and runs the transcript pipeline.
"""

import sys
from vodscribe.cli import CLIHandler

if __name__ == "__main__":
    sys.exit(CLIHandler().run())
