"""MCP server adapter for CharStats."""
