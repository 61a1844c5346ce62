"""CastMatch: scores model submissions against reference looks and profile rules."""

__version__ = "1.0.0"
