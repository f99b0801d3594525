"""
Flatty: Convert directory trees into LLM-friendly text chunks.

Every eligible file is written exactly once into a small number of plain-text
documents, each sized to fit a token budget and grouped by directory, file type,
or plain size.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
