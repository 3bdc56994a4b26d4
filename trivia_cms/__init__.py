"""
Trivia quiz content service.

Quiz authoring, near-duplicate detection, AI generation review and quiz
session statistics.
"""

__version__ = "0.1.0"
