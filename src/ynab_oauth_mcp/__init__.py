"""
YNAB OAuth MCP Server - A multi-account MCP server for YNAB budget management.

This package provides a Model Context Protocol (MCP) server that enables
AI assistants to interact with YNAB (You Need A Budget) for:
- Authenticating one or more YNAB users via OAuth
- Reading budgets, accounts, categories, payees and months
- Creating and managing transactions and scheduled transactions
- Assigning "Ready to Assign" money and recommending allocations

Security: OAuth tokens are stored locally and refreshed transparently; they
are never sent to any AI provider. Only structured API calls go to YNAB.
"""

__version__ = "0.2.0"
__license__ = "MIT"
