import json
import logging
import re

import openai
from openai import OpenAI

logger = logging.getLogger(__name__)

ANALYST_SYSTEM_PROMPT = (
    "You are an expert SEO content analyst who extracts valuable insights from website content "
    "to improve SEO and content strategy. Always respond with valid JSON."
)
STRATEGIST_SYSTEM_PROMPT = (
    "You are an expert SEO content strategist who generates high-quality article ideas optimized "
    "for search engines and user engagement. Always respond with valid JSON."
)
WRITER_SYSTEM_PROMPT = (
    "You are an expert SEO content writer who creates comprehensive, engaging blog posts "
    "optimized for search engines. Always respond with valid JSON."
)


class LLMError(Exception):
    """The model provider could not produce a usable answer"""


class LLMConfigurationError(LLMError):
    """No credential is configured for the model provider"""


class LLMResponseError(LLMError):
    """The model answered with something other than the expected JSON"""


def parse_json_object(text):
    """Strip markdown fences and parse a JSON object"""
    if not text:
        raise LLMResponseError("No content generated from OpenAI")
    cleaned = re.sub(r'```(?:json)?\s*', '', text).strip().rstrip('`').strip()
    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise LLMResponseError(f"Model returned invalid JSON: {str(e)}") from e
    if not isinstance(parsed, dict):
        raise LLMResponseError(f"Expected a JSON object, got {type(parsed).__name__}")
    return parsed


class LLMHandler:
    """Model-provider capability shared by the analyzer and both generators.

    The client is created only when a key is present; without one every call
    raises LLMConfigurationError instead of failing at import time.
    """

    def __init__(self, api_key=None, model="gpt-4o", image_model="dall-e-3", client=None):
        self.model = model
        self.image_model = image_model
        if client is not None:
            self.openai = client
        elif api_key:
            self.openai = OpenAI(api_key=api_key)
        else:
            self.openai = None
            logger.warning("OPENAI_API_KEY not set - OpenAI calls will fail")

    @property
    def configured(self):
        return self.openai is not None

    def _client(self):
        if self.openai is None:
            raise LLMConfigurationError(
                "OpenAI API key not configured. Set OPENAI_API_KEY to enable AI features."
            )
        return self.openai

    def _chat_json(self, system_prompt, prompt, temperature):
        client = self._client()
        logger.info(f"Making API call to {self.model}...")
        try:
            response = client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": prompt},
                ],
                response_format={"type": "json_object"},
                temperature=temperature,
            )
        except openai.OpenAIError as e:
            raise LLMError(f"OpenAI request failed: {str(e)}") from e

        usage = getattr(response, 'usage', None)
        logger.info(f"API call successful. Tokens used: {getattr(usage, 'total_tokens', 'unknown')}")
        return parse_json_object(response.choices[0].message.content)

    def analyze_content(self, prompt):
        return self._chat_json(ANALYST_SYSTEM_PROMPT, prompt, temperature=0.7)

    def generate_ideas(self, prompt):
        return self._chat_json(STRATEGIST_SYSTEM_PROMPT, prompt, temperature=0.8)

    def generate_draft(self, prompt):
        return self._chat_json(WRITER_SYSTEM_PROMPT, prompt, temperature=0.7)

    def generate_image(self, prompt, size="1792x1024"):
        """Generate one image and return its URL"""
        client = self._client()
        try:
            response = client.images.generate(
                model=self.image_model,
                prompt=prompt,
                n=1,
                size=size,
                quality="standard",
                response_format="url",
            )
        except openai.OpenAIError as e:
            raise LLMError(f"Image generation failed: {str(e)}") from e

        image_url = response.data[0].url if response.data else None
        if not image_url:
            raise LLMResponseError("No image URL returned from the image model")
        return image_url
