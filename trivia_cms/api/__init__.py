"""
API package initialization.

Exports shared schema models for external use.
"""

# Re-export commonly used schema models
from .schemas import (  # noqa: F401
    GenerateIn,
    GeneratedItemOut,
    ReviewIn,
    SessionCompleteIn,
    SessionIn,
    SessionStartIn,
    SimilarityIn,
)
