from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model serialising to the camelCase keys used in storage and the API"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json(self):
        return self.model_dump(mode='json', by_alias=True, exclude_none=True)


def _unique(values):
    seen = set()
    result = []
    for value in values:
        if not isinstance(value, str):
            value = str(value)
        value = value.strip()
        if value and value not in seen:
            seen.add(value)
            result.append(value)
    return result


def _clamp_score(value, default):
    try:
        score = float(value)
    except (TypeError, ValueError):
        return default
    if score != score or score in (float('inf'), float('-inf')):
        return default
    return int(round(min(100, max(0, score))))


class Link(CamelModel):
    text: str
    href: str


class FAQ(CamelModel):
    question: str
    answer: str = ''

    @field_validator('answer', mode='before')
    @classmethod
    def _answer(cls, value):
        return '' if value is None else str(value)


class ScoredFAQ(FAQ):
    relevance_score: int = 50

    @field_validator('relevance_score', mode='before')
    @classmethod
    def _score(cls, value):
        return _clamp_score(value, 50)


class PageMetadata(CamelModel):
    keywords: Optional[str] = None
    author: Optional[str] = None
    published_date: Optional[str] = None


class ScrapedPage(CamelModel):
    url: str
    title: str = ''
    description: str = ''
    headings: List[str] = Field(default_factory=list)
    paragraphs: List[str] = Field(default_factory=list)
    links: List[Link] = Field(default_factory=list)
    cta_candidates: List[Link] = Field(default_factory=list)
    faq_sections: List[FAQ] = Field(default_factory=list)
    metadata: PageMetadata = Field(default_factory=PageMetadata)
    full_text: str = ''


class CTA(CamelModel):
    text: str
    url: str = ''


class SEOInsights(CamelModel):
    primary_keywords: List[str] = Field(default_factory=list)
    semantic_keywords: List[str] = Field(default_factory=list)
    content_gaps: List[str] = Field(default_factory=list)
    recommended_topics: List[str] = Field(default_factory=list)

    @field_validator('*', mode='before')
    @classmethod
    def _lists(cls, value):
        if value is None:
            return []
        if isinstance(value, str):
            value = [value]
        return _unique(value)


class AnalyzedContent(CamelModel):
    faqs: List[ScoredFAQ] = Field(default_factory=list)
    key_topics: List[str] = Field(default_factory=list)
    common_questions: List[str] = Field(default_factory=list)
    content_themes: List[str] = Field(default_factory=list)
    seo_insights: SEOInsights = Field(default_factory=SEOInsights)
    summary: str = ''
    cta: Optional[CTA] = None

    @field_validator('key_topics', 'common_questions', 'content_themes', mode='before')
    @classmethod
    def _topic_lists(cls, value):
        if value is None:
            return []
        if isinstance(value, str):
            value = [value]
        return _unique(value)

    @field_validator('seo_insights', mode='before')
    @classmethod
    def _insights(cls, value):
        return value or {}

    @field_validator('summary', mode='before')
    @classmethod
    def _summary(cls, value):
        return value if isinstance(value, str) else ''


class AIAnalysis(AnalyzedContent):
    """The model's raw answer; FAQs without a question are dropped, a CTA without text is ignored"""

    @field_validator('faqs', mode='before')
    @classmethod
    def _faqs(cls, value):
        if not isinstance(value, list):
            return []
        return [
            faq for faq in value
            if isinstance(faq, dict) and isinstance(faq.get('question'), str) and faq['question'].strip()
        ]

    @field_validator('cta', mode='before')
    @classmethod
    def _cta(cls, value):
        if not isinstance(value, dict) or not value.get('text'):
            return None
        return {'text': str(value['text']), 'url': str(value.get('url') or '')}


class WebsiteAnalysis(CamelModel):
    analyzed_content: AnalyzedContent
    scraped_at: datetime
    url: str
