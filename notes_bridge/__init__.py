"""MCP-мост к HTTP API видеозаметок."""

__version__ = "1.0.0"
