"""voyageboard: visual trip-planning whiteboard with ai-assisted stops."""

__version__ = "0.1.0"
