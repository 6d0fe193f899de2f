"""
immich-captioner
================

Fills in missing Immich image descriptions using a local Ollama vision model,
so that Immich's text search can find photos by what is in them.
"""

__version__ = "1.0.0"
