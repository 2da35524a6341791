from .base import Tool
from .toolify import tool, toolify
from .catalog import ToolCatalog
from .fs import LocalFsTools
from .git import GitTools
from .mcp import McpTool, McpToolProvider, list_mcp_tools

__all__ = ["Tool",
           "ToolCatalog",
           "GitTools",
           "LocalFsTools",
           "McpTool",
           "McpToolProvider",
           "list_mcp_tools",
           "tool",
           "toolify",]
