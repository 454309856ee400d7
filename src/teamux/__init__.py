"""Teamux: tmux-hosted agent teams driven by an on-disk task board."""

__version__ = "0.1.0"

__all__ = ["__version__"]
