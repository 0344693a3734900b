"""
depver - package version resolution across registry ecosystems.

Resolves version metadata from deps.dev with a TTL cache, a retrying
registry client and a concurrent batch orchestrator, and exposes it as
MCP tools and a CLI.
"""

__version__ = "0.3.0"
