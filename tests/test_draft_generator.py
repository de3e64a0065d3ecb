"""
Tests for draft generation: CTA handling, FAQ selection, metric sanitising and the optional image.
"""
import math
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from generation.draft_generator import DraftGenerator, count_words, select_relevant_faqs
from generation.schemas import sanitize_keyword_density
from utils.llm_handler import LLMError, LLMResponseError

CONTENT = '## Why bread\n\nBaking bread at home is simple and rewarding.'


def make_website(**fields):
    defaults = {
        'name': 'Bakery',
        'url': 'https://bakery.example',
        'keywords': ['bread', 'baking'],
        'tone': 'Warm',
        'audience': 'Home bakers',
        'scraped_data': None,
        'cta_text': None,
        'cta_url': None,
    }
    defaults.update(fields)
    return SimpleNamespace(**defaults)


@pytest.fixture
def llm_handler():
    handler = MagicMock()
    handler.generate_draft.return_value = {
        'title': 'How to Bake Bread',
        'content': CONTENT,
        'excerpt': 'Everything you need to bake bread.',
        'readabilityScore': 88,
        'keywordDensity': '2.8%',
    }
    handler.generate_image.return_value = 'https://images.example/bread.png'
    return handler


class TestSanitizeKeywordDensity:

    @pytest.mark.parametrize('value, expected', [
        ('3.5%', 3.5),
        ('2.75 percent', 2.75),
        (' 4 % ', 4.0),
        (2, 2.0),
        (1.25, 1.25),
        (0, 0.0),
        ('abc', 2.5),
        ('', 2.5),
        (None, 2.5),
        (True, 2.5),
        (-1, 2.5),
        ('-3%', 2.5),
        (float('nan'), 2.5),
        (float('inf'), 2.5),
        ('Infinity', 2.5),
        ([3], 2.5),
    ])
    def test_values(self, value, expected):
        result = sanitize_keyword_density(value)
        assert math.isfinite(result)
        assert result == expected


class TestSelectRelevantFaqs:

    def test_first_word_overlap(self):
        faqs = [
            {'question': 'How long does proofing take?', 'answer': 'An hour.'},
            {'question': 'What flour should I use?', 'answer': 'Bread flour.'},
            {'question': 'Bread keeps going stale?', 'answer': 'Freeze it.'},
            {'question': '', 'answer': 'Ignored.'},
        ]

        relevant = select_relevant_faqs('How to bake bread', faqs)

        assert [faq['question'] for faq in relevant] == [
            'How long does proofing take?', 'Bread keeps going stale?',
        ]

    def test_limited_to_five(self):
        faqs = [{'question': f'How {i}?', 'answer': 'a'} for i in range(8)]
        assert len(select_relevant_faqs('How to bake bread', faqs)) == 5


class TestDraftPrompt:

    def test_fixed_cta_when_both_fields_are_set(self, llm_handler):
        website = make_website(cta_text='Start Free Trial', cta_url='https://bakery.example/trial')

        prompt = DraftGenerator(llm_handler).build_prompt('How to Bake Bread', website, ['bread'], 1500)

        assert 'CTA Text: "Start Free Trial"' in prompt
        assert 'CTA URL: https://bakery.example/trial' in prompt
        assert 'You MUST conclude the article with a call-to-action' in prompt
        assert '[Start Free Trial](https://bakery.example/trial)' in prompt

    @pytest.mark.parametrize('cta_text, cta_url', [
        (None, None),
        ('Start Free Trial', None),
        (None, 'https://bakery.example/trial'),
    ])
    def test_open_cta_otherwise(self, llm_handler, cta_text, cta_url):
        website = make_website(cta_text=cta_text, cta_url=cta_url)

        prompt = DraftGenerator(llm_handler).build_prompt('How to Bake Bread', website, ['bread'], 1500)

        assert 'create an appropriate CTA based on the article topic' in prompt
        assert 'CTA Text:' not in prompt

    def test_includes_relevant_faqs(self, llm_handler):
        website = make_website(scraped_data={
            'faqs': [{'question': 'How long to knead?', 'answer': 'Ten minutes.'}],
            'keyTopics': ['sourdough'],
            'seoInsights': {'primaryKeywords': ['bread recipe']},
        })

        prompt = DraftGenerator(llm_handler).build_prompt('How to Bake Bread', website, ['bread'], 1500)

        assert 'Q: How long to knead?\nA: Ten minutes.' in prompt
        assert 'Key Topics: sourdough' in prompt
        assert 'SEO Insights: bread recipe' in prompt
        assert 'Target Word Count: 1500' in prompt


class TestGenerateDraft:

    def test_draft_fields(self, llm_handler):
        draft = DraftGenerator(llm_handler).generate_draft('How to Bake Bread', make_website(), ['bread'], 1500)

        assert draft.title == 'How to Bake Bread'
        assert draft.content == CONTENT
        assert draft.word_count == count_words(CONTENT)
        assert draft.readability_score == 88
        assert draft.keyword_density == 2.8
        assert draft.image_url == 'https://images.example/bread.png'
        assert draft.frontmatter['image'] == draft.image_url
        assert draft.frontmatter['imageUrl'] == draft.image_url
        assert draft.frontmatter['keywords'] == ['bread']

    def test_defaults_for_missing_metrics(self, llm_handler):
        llm_handler.generate_draft.return_value = {'content': CONTENT}

        draft = DraftGenerator(llm_handler).generate_draft('How to Bake Bread', make_website(), ['bread'], 1500)

        assert draft.title == 'How to Bake Bread'
        assert draft.readability_score == 75
        assert draft.keyword_density == 2.5
        assert draft.excerpt == ''

    def test_model_frontmatter_is_kept(self, llm_handler):
        llm_handler.generate_draft.return_value = {'content': CONTENT, 'frontmatter': {'title': 'Custom'}}

        draft = DraftGenerator(llm_handler).generate_draft('How to Bake Bread', make_website(), ['bread'], 1500)

        assert draft.frontmatter['title'] == 'Custom'

    def test_image_failure_is_not_fatal(self, llm_handler):
        llm_handler.generate_image.side_effect = LLMError('content policy')

        draft = DraftGenerator(llm_handler).generate_draft('How to Bake Bread', make_website(), ['bread'], 1500)

        assert draft.image_url is None
        assert 'image' not in draft.frontmatter
        assert draft.content == CONTENT

    @pytest.mark.parametrize('answer', [{}, {'content': ''}, {'content': 42}])
    def test_missing_content(self, llm_handler, answer):
        llm_handler.generate_draft.return_value = answer

        with pytest.raises(LLMResponseError):
            DraftGenerator(llm_handler).generate_draft('How to Bake Bread', make_website(), ['bread'], 1500)

    def test_text_failure_propagates_without_image_call(self, llm_handler):
        llm_handler.generate_draft.side_effect = LLMError('rate limited')

        with pytest.raises(LLMError):
            DraftGenerator(llm_handler).generate_draft('How to Bake Bread', make_website(), ['bread'], 1500)
        llm_handler.generate_image.assert_not_called()
