"""A simulated block-based file system with i-nodes, bitmaps and a command shell."""

__version__ = "0.1.0"

__all__ = ["__version__"]