#!/usr/bin/env python3
"""Glucose Ingest CLI launcher script.

This is a convenience script that can be run directly from the scripts directory.
The actual implementation is in glucose_ingest.ingest_cli for proper package integration.

Usage:
    python scripts/ingest_cli.py <command> [options]

Or install the package and use:
    glucose-ingest <command> [options]
    python -m glucose_ingest.ingest_cli <command> [options]
"""

from glucose_ingest.ingest_cli import main

if __name__ == "__main__":
    main()
