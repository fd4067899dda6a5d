"""textual frontend."""
