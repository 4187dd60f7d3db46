"""
Entry point for running the planner as a module.

Usage:
    python -m planner preview definition.json --store store.json
    python -m planner generate definition.json
    python -m planner commit definition.json --store store.json
    python -m planner holidays 2025
"""

from planner.cli import main

if __name__ == "__main__":
    main()
