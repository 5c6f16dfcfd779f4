#!/usr/bin/env python3
"""Entry point for running deep research from a source checkout."""

from deep_research.cli import main

if __name__ == "__main__":
    main()
