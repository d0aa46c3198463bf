"""MCP tools for feed_shelf."""
