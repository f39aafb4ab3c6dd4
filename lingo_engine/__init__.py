"""
Lingo Engine

Adaptive learning session engine for language-learning exercises: exercise
selection, LLM-backed question generation and marking, session state and
performance aggregation.
"""

__version__ = "0.1.0"
