"""Rule engine relation action core: entity resolution, caching and routing."""

__version__ = "0.1.0"
