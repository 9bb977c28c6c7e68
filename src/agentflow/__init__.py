"""
AgentFlow - Node-graph workflows for AI agents.
"""

__version__ = "0.1.0"
