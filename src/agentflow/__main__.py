"""
Entry point for running AgentFlow as a module.

Usage:
    python -m agentflow
"""

import sys

from agentflow.main import main

if __name__ == "__main__":
    sys.exit(main())
