import logging

from .schemas import AIAnalysis, AnalyzedContent, CTA, SEOInsights, ScoredFAQ
from .web_crawler import DEAD_HREF, PASSTHROUGH_SCHEMES, origin_of, resolve_url

logger = logging.getLogger(__name__)

MAX_PROMPT_CHARS = 15000
MAX_FAQS = 20
HEURISTIC_FAQ_SCORE = 90
FALLBACK_FAQ_SCORE = 80
FALLBACK_TOPIC_LIMIT = 10
FALLBACK_SUMMARY = 'Content analysis unavailable'
GENERIC_CTA_TEXT = 'Learn More'

ANALYSIS_PROMPT = """You are an expert SEO content analyst. Analyze the following website content and extract valuable insights for content generation.

Website Content:
{content}

Existing FAQs Found:
{faqs}

Headings Found:
{headings}

CTA Candidates Found:
{ctas}

Your task:
1. Extract and enhance FAQs - identify questions that users commonly ask about this topic, even if not explicitly stated. Rate each FAQ's relevance (0-100).
2. Identify key topics and themes from the content
3. Generate common questions that potential readers might have
4. Provide SEO insights including:
   - Primary keywords (most important)
   - Semantic keywords (related terms)
   - Content gaps (topics not covered but should be)
   - Recommended topics for new articles
5. Suggest the best Call-to-Action (CTA) based on the CTA candidates found. Choose the most prominent and relevant CTA that would work well for blog articles. If no good CTA candidates are found, suggest a generic one like "Learn More" with the website's homepage URL.

Return your response as JSON with this exact structure:
{{
  "faqs": [{{"question": string, "answer": string, "relevanceScore": number}}],
  "keyTopics": [string],
  "commonQuestions": [string],
  "contentThemes": [string],
  "seoInsights": {{
    "primaryKeywords": [string],
    "semanticKeywords": [string],
    "contentGaps": [string],
    "recommendedTopics": [string]
  }},
  "summary": "A 2-3 sentence summary of the website's main focus and content",
  "cta": {{
    "text": "Suggested CTA text (e.g., 'Learn More', 'Get Started', 'Sign Up')",
    "url": "Full URL for the CTA (use homepage if no specific URL found)"
  }}
}}"""


def merge_faqs(heuristic_faqs, ai_faqs, heuristic_score=HEURISTIC_FAQ_SCORE):
    """Merge scraped FAQs with model FAQs.

    Scraped FAQs are keyed by lower-cased question and scored heuristic_score;
    model FAQs whose question is already a key are dropped. The result is
    free of case-insensitive duplicate questions,
    sorted by relevance (stable) and capped at MAX_FAQS.
    """
    existing = {}
    for faq in heuristic_faqs:
        # First occurrence of a question wins
        existing.setdefault(faq.question.lower(), ScoredFAQ(
            question=faq.question, answer=faq.answer, relevance_score=heuristic_score,
        ))

    for faq in ai_faqs:
        existing.setdefault(faq.question.lower(), faq)

    combined = sorted(
        existing.values(),
        key=lambda faq: faq.relevance_score,
        reverse=True,
    )
    return combined[:MAX_FAQS]


def resolve_cta(cta, candidates, base_url, site_url=None):
    """Pick the CTA to store, making sure its URL is absolute.

    The model's CTA wins; otherwise the first candidate in document order;
    otherwise a generic "Learn More" pointing at the site origin. A blank or
    unfollowable URL (javascript:, a bare "#") also becomes the site origin.
    """
    home = base_url or site_url or '/'
    if cta is None and candidates:
        first = candidates[0]
        return CTA(text=first.text, url=_usable_url(first.href, base_url, home))
    if cta is None:
        return CTA(text=GENERIC_CTA_TEXT, url=home)
    url = _usable_url(cta.url, base_url, home)
    if url != cta.url:
        return CTA(text=cta.text, url=url)
    return cta


def _usable_url(href, base_url, home):
    href = (href or '').strip()
    if not href or DEAD_HREF.match(href):
        return home
    resolved = resolve_url(href, base_url)
    if not resolved.startswith(PASSTHROUGH_SCHEMES) and not resolved.startswith('/'):
        return home
    return resolved


class ContentAnalyzer:
    def __init__(self, llm_handler):
        self.llm_handler = llm_handler

    def analyze(self, pages, site_url=None):
        """Synthesize FAQs, topics and SEO insights for a set of scraped pages.

        Never raises on model failures: any error while asking the model or
        reading its answer yields a heuristics-only AnalyzedContent.
        """
        all_faqs = [faq for page in pages for faq in page.faq_sections]
        all_headings = [heading for page in pages for heading in page.headings]
        all_ctas = [cta for page in pages for cta in page.cta_candidates]
        base_url = self._base_url(pages, site_url)

        prompt = self.build_prompt(pages, all_faqs, all_headings, all_ctas)

        try:
            logger.info(f"Analyzing scraped content ({len(pages)} pages)...")
            raw = self.llm_handler.analyze_content(prompt)
            parsed = AIAnalysis.model_validate(raw)
        except Exception as e:
            logger.error(f"Error analyzing content: {str(e)}", exc_info=True)
            logger.warning("Using heuristic data instead of AI analysis")
            return self.fallback(all_faqs, all_headings, all_ctas, base_url, site_url)

        analyzed = AnalyzedContent(
            faqs=merge_faqs(all_faqs, parsed.faqs),
            key_topics=parsed.key_topics,
            common_questions=parsed.common_questions,
            content_themes=parsed.content_themes,
            seo_insights=parsed.seo_insights,
            summary=parsed.summary,
            cta=resolve_cta(parsed.cta, all_ctas, base_url, site_url),
        )
        logger.info(
            f"Analysis complete: {len(analyzed.faqs)} FAQs, {len(analyzed.key_topics)} key topics"
        )
        return analyzed

    def build_prompt(self, pages, faqs, headings, ctas):
        combined_text = '\n\n---\n\n'.join(page.full_text for page in pages)
        content = combined_text[:MAX_PROMPT_CHARS]
        if len(combined_text) > MAX_PROMPT_CHARS:
            content += ' ... (truncated)'

        return ANALYSIS_PROMPT.format(
            content=content,
            faqs='\n\n'.join(f"Q: {faq.question}\nA: {faq.answer}" for faq in faqs),
            headings='\n'.join(headings),
            ctas='\n'.join(f'Text: "{cta.text}" → URL: {cta.href}' for cta in ctas),
        )

    def fallback(self, faqs, headings, ctas, base_url, site_url=None):
        return AnalyzedContent(
            faqs=merge_faqs(faqs, [], heuristic_score=FALLBACK_FAQ_SCORE),
            key_topics=headings[:FALLBACK_TOPIC_LIMIT],
            common_questions=[],
            content_themes=[],
            seo_insights=SEOInsights(),
            summary=FALLBACK_SUMMARY,
            cta=resolve_cta(None, ctas, base_url, site_url),
        )

    def _base_url(self, pages, site_url):
        base_url = origin_of(site_url) if site_url else ''
        if not base_url and pages and pages[0].links:
            base_url = origin_of(pages[0].links[0].href)
        return base_url
