"""Core adapters for podforge.

Concrete collaborators of the batch pipeline: content analysis, audio
transcoding, NotebookLM generation, the monday.com board and RedCircle
publishing. None of them import from cli/ or batch/.

Architecture principles:
- No Click decorators or CLI concerns
- Return typed domain models
- External services reached only through these modules
"""

__all__ = [
    "metadata",
    "transcode",
    "notebooklm",
    "board",
    "redcircle",
]
