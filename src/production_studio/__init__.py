"""Production Studio - autonomous narrated video production over tool-calling agents"""

__version__ = "0.1.0"
