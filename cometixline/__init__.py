"""Status line generator for Claude Code sessions: configuration, segments and rendering."""

__version__ = "1.1.2"