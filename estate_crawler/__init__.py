"""estate-crawler: resumable, budgeted crawling of Hokkaido real-estate portals."""

__version__ = "0.1.0"

__all__ = ["__version__"]
