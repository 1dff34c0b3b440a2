"""CiteShelf: citation export and personal library client for research papers."""

__version__ = "0.1.0"
