"""LINE webhook bot that answers with Gemini and negotiates what to do with uploaded files."""

__version__ = "0.1.0"
