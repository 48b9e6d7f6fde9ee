"""
agent-spawner

Polls a Buildkite organization for outstanding jobs and launches local agents
whose capability tags satisfy each job's agent query rules.
"""

__version__ = "0.1.0"
