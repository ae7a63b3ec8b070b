"""MCP server for method-drill"""
