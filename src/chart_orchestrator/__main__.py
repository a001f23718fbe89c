"""
Package entry point for python -m execution.

USAGE:
    python -m chart_orchestrator                 # Launch web API
    python -m chart_orchestrator dashboard       # Launch web API
    python -m chart_orchestrator decode "c=..."  # Print decoded view state
    python -m chart_orchestrator fetch "c=..."   # Fetch and print chart data
"""

import sys

from chart_orchestrator.cli import main

if __name__ == "__main__":
    sys.exit(main())
