import math
import re
from typing import Any, Dict, List, Optional

from pydantic import Field, field_validator

from scraper.schemas import CamelModel

MIN_ESTIMATED_WORDS = 1000
MAX_ESTIMATED_WORDS = 3000
DEFAULT_KEYWORD_DENSITY = 2.5
DEFAULT_READABILITY = 75

# Leading numeric prefix, as a lenient float parser reads it ("3.5%" -> 3.5, "2 percent" -> 2)
_FLOAT_PREFIX = re.compile(r'[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?')


def _score(value, default):
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(number):
        return default
    return int(round(min(100, max(0, number))))


def sanitize_keyword_density(value):
    """Coerce a model-reported keyword density into a finite, non-negative float.

    Strings lose their "%" before parsing; anything unparsable, infinite,
    NaN, negative or missing becomes DEFAULT_KEYWORD_DENSITY.
    """
    density = None
    if isinstance(value, bool):
        density = None
    elif isinstance(value, str):
        match = _FLOAT_PREFIX.match(value.replace('%', '', 1).strip())
        density = float(match.group()) if match else None
    elif isinstance(value, (int, float)):
        density = float(value)

    if density is None or not math.isfinite(density) or density < 0:
        return DEFAULT_KEYWORD_DENSITY
    return density


class GeneratedIdea(CamelModel):
    headline: str
    confidence: int = 50
    keywords: List[str] = Field(default_factory=list)
    estimated_words: int = 1500
    seo_score: int = 50

    @field_validator('headline')
    @classmethod
    def _headline(cls, value):
        value = value.strip()
        if not value:
            raise ValueError('headline must not be empty')
        return value

    @field_validator('confidence', 'seo_score', mode='before')
    @classmethod
    def _scores(cls, value):
        return _score(value, 50)

    @field_validator('estimated_words', mode='before')
    @classmethod
    def _words(cls, value):
        try:
            words = int(float(value))
        except (TypeError, ValueError, OverflowError):
            return 1500
        return min(MAX_ESTIMATED_WORDS, max(MIN_ESTIMATED_WORDS, words))

    @field_validator('keywords', mode='before')
    @classmethod
    def _keywords(cls, value):
        if isinstance(value, str):
            value = value.split(',')
        if not isinstance(value, list):
            return []
        return [str(keyword).strip() for keyword in value if str(keyword).strip()]


class GeneratedDraft(CamelModel):
    title: str
    content: str
    excerpt: str = ''
    word_count: int = 0
    readability_score: int = DEFAULT_READABILITY
    keyword_density: float = DEFAULT_KEYWORD_DENSITY
    frontmatter: Dict[str, Any] = Field(default_factory=dict)
    image_url: Optional[str] = None

    @field_validator('readability_score', mode='before')
    @classmethod
    def _readability(cls, value):
        # A missing or zero score falls back to the default
        return _score(value, DEFAULT_READABILITY) if value else DEFAULT_READABILITY

    @field_validator('keyword_density', mode='before')
    @classmethod
    def _density(cls, value):
        return sanitize_keyword_density(value)

    @field_validator('excerpt', mode='before')
    @classmethod
    def _excerpt(cls, value):
        return value if isinstance(value, str) else ''
