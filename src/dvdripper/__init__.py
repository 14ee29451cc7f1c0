"""DVD Ripper - extract DVD titles to Matroska files using external tools."""

__version__ = "0.1.0"
