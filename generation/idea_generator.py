import logging

from pydantic import ValidationError

from utils.llm_handler import LLMResponseError
from .schemas import GeneratedIdea, MAX_ESTIMATED_WORDS, MIN_ESTIMATED_WORDS

logger = logging.getLogger(__name__)

# Top-level keys the model has been seen to use for the idea list
IDEA_LIST_KEYS = ('ideas', 'articles')
MIN_IDEA_KEYWORDS = 3
MAX_IDEA_KEYWORDS = 5

SCRAPED_CONTEXT = """
REAL-WORLD DATA FROM WEBSITE ANALYSIS:
- Key Topics Found: {key_topics}
- Common Questions: {common_questions}
- Recommended Topics: {recommended_topics}
- Primary SEO Keywords: {primary_keywords}
- Semantic Keywords: {semantic_keywords}
- Content Gaps: {content_gaps}
- Top FAQs Found: {top_faqs}

Use this real-world data to generate article ideas that:
1. Address actual user questions and FAQs
2. Fill content gaps identified in the analysis
3. Target the primary and semantic keywords found
4. Cover recommended topics that will improve SEO
"""

IDEAS_PROMPT = """You are an expert SEO content strategist. Generate {count} compelling article ideas for a blog with the following context:

Website: {name}
URL: {url}
Target Keywords: {keywords}
Tone: {tone}
Target Audience: {audience}
{scraped_context}
For each article idea, provide:
1. A compelling, SEO-optimized headline that addresses real user questions
2. Confidence score (0-100) based on SEO potential and relevance to actual user needs
3. Primary keywords to target (3-5) - prioritize keywords from the real-world data
4. Estimated word count ({min_words}-{max_words})
5. SEO score (0-100) based on keyword relevance, search intent, and alignment with user questions

{priority}

Return your response as a JSON object with an "ideas" array of objects with these exact fields: headline, confidence, keywords (array), estimatedWords, seoScore."""

PRIORITY_NOTE = (
    "IMPORTANT: Prioritize ideas that answer the FAQs and common questions found on the website. "
    "This will significantly improve SEO rankings."
)


def scraped_data_of(website):
    """Return the cached analysis of a website as a dict, or None when it was never analyzed"""
    data = getattr(website, 'scraped_data', None)
    return data if isinstance(data, dict) and data else None


class IdeaGenerator:
    def __init__(self, llm_handler):
        self.llm_handler = llm_handler

    def word_bounds(self, website):
        low = getattr(website, 'min_word_count', None) or MIN_ESTIMATED_WORDS
        high = getattr(website, 'max_word_count', None) or MAX_ESTIMATED_WORDS
        low, high = max(low, MIN_ESTIMATED_WORDS), min(high, MAX_ESTIMATED_WORDS)
        if low > high:
            return MIN_ESTIMATED_WORDS, MAX_ESTIMATED_WORDS
        return low, high

    def build_prompt(self, website, count):
        scraped = scraped_data_of(website)
        scraped_context = ''
        if scraped:
            insights = scraped.get('seoInsights') or {}
            faqs = scraped.get('faqs') or []
            scraped_context = SCRAPED_CONTEXT.format(
                key_topics=', '.join(scraped.get('keyTopics') or []),
                common_questions=', '.join((scraped.get('commonQuestions') or [])[:5]),
                recommended_topics=', '.join(insights.get('recommendedTopics') or []),
                primary_keywords=', '.join(insights.get('primaryKeywords') or []) or 'N/A',
                semantic_keywords=', '.join((insights.get('semanticKeywords') or [])[:10]) or 'N/A',
                content_gaps=', '.join(insights.get('contentGaps') or []) or 'None identified',
                top_faqs='\n'.join(f"Q: {faq.get('question')}" for faq in faqs[:3]),
            )

        low, high = self.word_bounds(website)
        return IDEAS_PROMPT.format(
            count=count,
            name=website.name,
            url=website.url,
            keywords=', '.join(website.keywords or []),
            tone=website.tone or 'Professional and informative',
            audience=website.audience or 'General audience',
            scraped_context=scraped_context,
            min_words=low,
            max_words=high,
            priority=PRIORITY_NOTE if scraped else '',
        )

    def generate_ideas(self, website, count=5):
        """Ask the model for `count` headline ideas.

        Raises LLMConfigurationError without a credential and LLMResponseError
        when the answer holds no idea list.
        """
        logger.info(f"Generating {count} article ideas for website: {website.name}")
        parsed = self.llm_handler.generate_ideas(self.build_prompt(website, count))

        raw_ideas = next(
            (parsed[key] for key in IDEA_LIST_KEYS if isinstance(parsed.get(key), list)),
            None,
        )
        if raw_ideas is None:
            raise LLMResponseError(
                f"Model response has no idea list (expected one of: {', '.join(IDEA_LIST_KEYS)})"
            )

        low, high = self.word_bounds(website)
        ideas = []
        for raw in raw_ideas:
            try:
                idea = GeneratedIdea.model_validate(raw)
            except ValidationError as e:
                logger.warning(f"Skipping malformed idea: {str(e)}")
                continue
            idea.estimated_words = min(high, max(low, idea.estimated_words))
            idea.keywords = self._fill_keywords(idea.keywords, website.keywords or [])
            ideas.append(idea)
            if len(ideas) == count:
                break

        logger.info(f"Generated {len(ideas)} ideas for {website.name}")
        return ideas

    def _fill_keywords(self, keywords, site_keywords):
        result = list(dict.fromkeys(keywords))
        for keyword in site_keywords:
            if len(result) >= MIN_IDEA_KEYWORDS:
                break
            if keyword not in result:
                result.append(keyword)
        return result[:MAX_IDEA_KEYWORDS]
