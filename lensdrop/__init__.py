"""LensDrop: image URL in, visual-search screenshot out."""

__version__ = "1.0.0"
