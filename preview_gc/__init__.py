"""preview-gc: garbage collector for per-branch preview environments."""

__version__ = "0.1.0"
