"""
Writer Agent — turns an approved content brief into a long-form article.

Uses Gemini on Vertex AI. The brief's target keyword, word count, required
sections and semantic keywords all go into the prompt; the reply is
Markdown with a single # title.

Usage:
    writer = WriterAgent()
    draft = writer.write(brief)
    print(draft.title, draft.word_count)
"""
import logging

from google import genai
from google.genai.types import GenerateContentConfig, HttpOptions

from config.settings import settings
from models.schemas import ArticleDraft, ContentBrief

logger = logging.getLogger(__name__)

# System instruction, kept as a module constant for easy tuning.
WRITER_INSTRUCTION = """You are a senior content strategist writing search-optimised
articles for B2B marketing teams. You write for readers first and search engines
second.

VOICE RULES:
- Lead with the answer the searcher came for, not a grand setup
- Concrete examples, numbers and comparisons over generic claims
- Short paragraphs, scannable sections, no filler
- Use the target keyword naturally; never stuff it

BANNED PHRASES:
- "In today's rapidly evolving..." / "In the ever-changing world of..."
- "delve" / "harness" / "leverage" / "landscape" / "game-changer"
- "it's not just X, it's Y"

FORMAT:
- Markdown
- Exactly one # title on the first line
- ## headers for sections
- End with a short conclusion that tells the reader what to do next
"""


class WriterAgent:
    """Generates article drafts for content briefs."""

    def __init__(self) -> None:
        self.client = genai.Client(
            vertexai=True,
            project=settings.GCP_PROJECT,
            location=settings.GCP_REGION,
            http_options=HttpOptions(api_version="v1"),
        )
        self.model = settings.WRITER_MODEL

    def write(self, brief: ContentBrief) -> ArticleDraft:
        """
        Generate an article for a brief.

        Args:
            brief: The approved ContentBrief to write against.

        Returns:
            ArticleDraft with Markdown content.
        """
        prompt = self._build_prompt(brief)

        try:
            response = self.client.models.generate_content(
                model=self.model,
                contents=prompt,
                config=GenerateContentConfig(
                    system_instruction=WRITER_INSTRUCTION,
                    temperature=0.7,
                    max_output_tokens=8192,
                ),
            )
        except Exception as e:
            logger.error(f"Article generation failed for brief {brief.id}: {e}", exc_info=True)
            raise

        text = (response.text or "").strip()
        if not text:
            raise ValueError(f"Model returned an empty article for brief {brief.id}")

        return ArticleDraft(
            title=self._extract_title(text, fallback=brief.title),
            content=text,
            model=self.model,
        )

    def _build_prompt(self, brief: ContentBrief) -> str:
        req = brief.requirements
        sections = (
            "\n".join(f"- {section}" for section in req.required_sections)
            or "- Choose sections that fit the topic"
        )
        semantic = ", ".join(req.semantic_keywords) or "none provided"

        return f"""Write a {brief.content_type.replace('_', ' ')} for this content brief.

TITLE: {brief.title}
TARGET KEYWORD: {brief.target_keyword}
TARGET LENGTH: about {req.target_word_count} words

REQUIRED SECTIONS:
{sections}

SEMANTIC KEYWORDS TO COVER: {semantic}

REQUIREMENTS:
- Use the target keyword in the title and the first paragraph
- Cover every required section with its own ## header
- Stay within 10% of the target length
"""

    def _extract_title(self, text: str, fallback: str) -> str:
        """Extract title from the first markdown heading."""
        for line in text.split("\n"):
            stripped = line.strip()
            if stripped.startswith("# ") and not stripped.startswith("## "):
                return stripped.lstrip("# ").strip()
        return fallback
