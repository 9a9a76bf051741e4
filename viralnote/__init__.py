"""viralnote: resilient AI analysis and generation for the note-copy generator."""

__version__ = "0.1.0"
