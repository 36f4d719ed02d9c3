"""Agent framework integrations.

Available integrations:
- cncquery.integrations.mcp - MCP (Model Context Protocol) server
"""
