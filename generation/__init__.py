"""
Content generation package

- IdeaGenerator: proposes headline ideas from a website profile and its cached analysis
- DraftGenerator: writes the full article (plus an optional header image) for an idea
"""

from .idea_generator import IdeaGenerator
from .draft_generator import DraftGenerator
from .schemas import GeneratedIdea, GeneratedDraft, sanitize_keyword_density

__all__ = ['IdeaGenerator', 'DraftGenerator', 'GeneratedIdea', 'GeneratedDraft', 'sanitize_keyword_density']
