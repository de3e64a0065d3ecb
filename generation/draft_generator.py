import logging
from datetime import datetime, timezone

from pydantic import ValidationError

from utils.llm_handler import LLMResponseError
from .idea_generator import scraped_data_of
from .schemas import GeneratedDraft

logger = logging.getLogger(__name__)

MAX_RELEVANT_FAQS = 5
DEFAULT_AUTHOR = 'AI Content Generator'

SCRAPED_CONTEXT = """
REAL-WORLD DATA TO INCORPORATE:
- Relevant FAQs to address: {faqs}
- Key Topics: {key_topics}
- SEO Insights: {primary_keywords}

CRITICAL: Naturally incorporate answers to the relevant FAQs into your content. This real-world data will significantly improve SEO and user engagement.
"""

FIXED_CTA_INSTRUCTION = """
CALL-TO-ACTION REQUIREMENT:
- CTA Text: "{text}"
- CTA URL: {url}
- IMPORTANT: You MUST conclude the article with a call-to-action section that includes a link using the exact CTA text and URL provided above.
- Format the CTA as a prominent button or link at the end of the article.
- Example format: [{text}]({url}) or use MDX button component if available.
"""

OPEN_CTA_INSTRUCTION = """
CALL-TO-ACTION REQUIREMENT:
- Conclude the article with a clear, compelling call-to-action that encourages readers to engage further.
- If no specific CTA is provided, create an appropriate CTA based on the article topic and website context.
"""

DRAFT_PROMPT = """You are an expert SEO content writer. Write a comprehensive, SEO-optimized blog post with the following specifications:

Headline: {headline}
Website: {name}
Target Keywords: {keywords}
Additional Context Keywords: {site_keywords}
Target Word Count: {words}
Tone: {tone}
Audience: {audience}
{scraped_context}
{cta_instruction}

Requirements:
1. Write in MDX format (Markdown with optional JSX)
2. Include proper frontmatter with: title, description, date, keywords, author
3. Use headers (H2, H3) for structure
4. Naturally incorporate target keywords (aim for 2-3% density)
5. Write clear, engaging content optimized for readability
6. Include a compelling meta description (150-160 characters)
7. Add practical examples and actionable advice
8. {closing}

Return your response as JSON with these fields:
- title: The article title
- content: The full MDX content (without frontmatter)
- frontmatter: Object with metadata
- excerpt: A 2-3 sentence summary
- readabilityScore: 0-100 based on clarity
- keywordDensity: percentage of keyword usage"""

IMAGE_PROMPT = (
    "A professional, high-quality, modern illustration or photograph related to: {headline}. "
    "Keywords: {keywords}. "
    "Style: Clean, modern, suitable for a blog article header image. "
    "Aspect ratio: 16:9 landscape format. "
    "No text overlays, no watermarks, no logos."
)


def _first_word(text):
    words = text.lower().split(' ')
    return words[0] if words else ''


def select_relevant_faqs(headline, faqs, limit=MAX_RELEVANT_FAQS):
    """FAQs sharing a first word with the headline, in stored order"""
    headline_lower = headline.lower()
    relevant = []
    for faq in faqs:
        question = (faq.get('question') or '').lower()
        if not question:
            continue
        if _first_word(question) in headline_lower or _first_word(headline) in question:
            relevant.append(faq)
    return relevant[:limit]


def count_words(content):
    return len(content.split())


class DraftGenerator:
    def __init__(self, llm_handler):
        self.llm_handler = llm_handler

    def build_prompt(self, headline, website, keywords, estimated_words):
        scraped = scraped_data_of(website)
        scraped_context = ''
        if scraped:
            relevant = select_relevant_faqs(headline, scraped.get('faqs') or [])
            scraped_context = SCRAPED_CONTEXT.format(
                faqs='\n\n'.join(f"Q: {faq.get('question')}\nA: {faq.get('answer')}" for faq in relevant),
                key_topics=', '.join(scraped.get('keyTopics') or []) or 'N/A',
                primary_keywords=', '.join((scraped.get('seoInsights') or {}).get('primaryKeywords') or []) or 'N/A',
            )

        cta_text, cta_url = website.cta_text, website.cta_url
        if cta_text and cta_url:
            cta_instruction = FIXED_CTA_INSTRUCTION.format(text=cta_text, url=cta_url)
            closing = f'MUST include the specified CTA at the end: "{cta_text}" linking to {cta_url}'
        else:
            cta_instruction = OPEN_CTA_INSTRUCTION
            closing = 'Conclude with a clear, compelling call-to-action'

        return DRAFT_PROMPT.format(
            headline=headline,
            name=website.name,
            keywords=', '.join(keywords),
            site_keywords=', '.join(website.keywords or []),
            words=estimated_words,
            tone=website.tone or 'Professional and informative',
            audience=website.audience or 'General audience',
            scraped_context=scraped_context,
            cta_instruction=cta_instruction,
            closing=closing,
        )

    def generate_draft(self, headline, website, keywords, estimated_words):
        """Write a full article for an idea, then try to illustrate it.

        Text failures propagate. The image is optional: any error there is
        logged and the draft is returned without one.
        """
        logger.info(f"Generating draft for headline: \"{headline}\"")
        parsed = self.llm_handler.generate_draft(
            self.build_prompt(headline, website, keywords, estimated_words)
        )

        content = parsed.get('content')
        if not isinstance(content, str) or not content.strip():
            raise LLMResponseError("Model response has no article content")

        title = parsed.get('title') if isinstance(parsed.get('title'), str) and parsed.get('title') else headline
        excerpt = parsed.get('excerpt') if isinstance(parsed.get('excerpt'), str) else ''
        frontmatter = parsed.get('frontmatter')
        if isinstance(frontmatter, dict) and frontmatter:
            frontmatter = dict(frontmatter)
        else:
            frontmatter = {
                'title': title,
                'description': excerpt,
                'date': datetime.now(timezone.utc).isoformat(),
                'keywords': list(keywords),
                'author': DEFAULT_AUTHOR,
            }

        image_url = self.generate_image(headline, keywords)
        if image_url:
            frontmatter['image'] = image_url
            frontmatter['imageUrl'] = image_url

        try:
            draft = GeneratedDraft(
                title=title,
                content=content,
                excerpt=excerpt,
                word_count=count_words(content),
                readability_score=parsed.get('readabilityScore'),
                keyword_density=parsed.get('keywordDensity'),
                frontmatter=frontmatter,
                image_url=image_url,
            )
        except ValidationError as e:
            raise LLMResponseError(f"Model returned an unusable draft: {str(e)}") from e

        logger.info(f"Draft generated: \"{draft.title}\" ({draft.word_count} words)")
        return draft

    def generate_image(self, headline, keywords):
        prompt = IMAGE_PROMPT.format(headline=headline, keywords=', '.join(list(keywords)[:3]))
        try:
            image_url = self.llm_handler.generate_image(prompt)
        except Exception as e:
            logger.error(f"Failed to generate image for \"{headline}\": {str(e)}", exc_info=True)
            return None
        logger.info(f"Image generated successfully: {image_url}")
        return image_url
