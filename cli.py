#!/usr/bin/env python3
"""
Convenience entry point to run the config-driven CLI.

Usage examples:
  python cli.py validate --config config/signal_booster.yaml
  python cli.py run --config config/signal_booster.yaml --dry-run
  python cli.py extract notes/physician_note1.txt --strategy rules
"""

from dme_extraction.cli import main


if __name__ == "__main__":
    main()
