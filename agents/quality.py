"""
Quality Analyst Agent — scores generated content on six dimensions.

Overall, SEO, readability, authority (E-E-A-T), engagement and AEO (AI
search readiness), each 0-100, plus free-form feedback.
"""
import logging

from google import genai
from google.genai.types import GenerateContentConfig, HttpOptions

from agents.replies import parse_json_object
from config.settings import settings
from models.schemas import QualityScores

logger = logging.getLogger(__name__)

ANALYST_INSTRUCTION = """You are a content quality analyst who scores content
objectively and consistently across multiple dimensions. Always return valid
JSON with scores from 0 to 100."""

# Longer articles are truncated before scoring.
MAX_SCORED_CHARS = 8000


class QualityAnalystAgent:
    """Scores articles with Gemini."""

    def __init__(self) -> None:
        self.client = genai.Client(
            vertexai=True,
            project=settings.GCP_PROJECT,
            location=settings.GCP_REGION,
            http_options=HttpOptions(api_version="v1"),
        )
        self.model = settings.WRITER_MODEL

    def score(
        self,
        content: str,
        target_keyword: str,
        content_type: str = "blog_post",
        target_word_count: int = 1500,
        title: str = "",
    ) -> QualityScores:
        prompt = f"""Score the following content.

TITLE: {title or "Untitled"}
TARGET KEYWORD: {target_keyword}
CONTENT TYPE: {content_type}
TARGET WORD COUNT: {target_word_count}
ACTUAL WORD COUNT: {len(content.split())}

CONTENT:
{content[:MAX_SCORED_CHARS]}

Return a JSON object:
- overall_score, seo_score, readability_score, authority_score,
  engagement_score, aeo_score: numbers from 0 to 100
- detailed_feedback: object with "strengths" and "improvements" arrays and
  one short feedback string per dimension

Scoring guidelines:
- SEO: keyword usage, heading structure, internal linking
- Readability: sentence variety, paragraph structure, transitions, jargon
- Authority: E-E-A-T signals, data citations, specificity
- Engagement: hook quality, storytelling, calls to action
- AEO: clear definitions, factual statements, FAQ potential

Return ONLY the JSON object, no other text."""

        try:
            response = self.client.models.generate_content(
                model=self.model,
                contents=prompt,
                config=GenerateContentConfig(
                    system_instruction=ANALYST_INSTRUCTION,
                    temperature=0.2,
                    max_output_tokens=2048,
                ),
            )
        except Exception as e:
            logger.error(f"Quality scoring failed for '{target_keyword}': {e}", exc_info=True)
            raise

        return QualityScores.model_validate(parse_json_object(response.text))
