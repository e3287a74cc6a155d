"""Code Reasoning MCP server: structured, branchable, revisable thought chains."""

__version__ = "0.6.0"
