"""
Strategist Agent — plans a content brief from a client's competitive data.

Feeds Gemini the client profile, recent competitive analysis snapshots and
AI citation data for one target keyword, and asks for a JSON brief plan
(angle, audience, sections, semantic keywords, priority).

Usage:
    strategist = StrategistAgent()
    plan = strategist.plan(client, "crm software", "blog_post", snapshots, citations)
"""
import json
import logging
from typing import Any

from google import genai
from google.genai.types import GenerateContentConfig, HttpOptions

from agents.replies import parse_json_object
from config.settings import settings
from models.schemas import BriefPlan, ClientProfile

logger = logging.getLogger(__name__)

STRATEGIST_INSTRUCTION = """You are a strategic content intelligence analyst. You
analyse competitive landscapes and AI search citations and turn them into
data-driven content briefs. Always return valid JSON."""


class StrategistAgent:
    """Plans draft briefs with Gemini."""

    def __init__(self) -> None:
        self.client = genai.Client(
            vertexai=True,
            project=settings.GCP_PROJECT,
            location=settings.GCP_REGION,
            http_options=HttpOptions(api_version="v1"),
        )
        self.model = settings.WRITER_MODEL

    def plan(
        self,
        client: ClientProfile,
        target_keyword: str,
        content_type: str,
        competitive_data: list[Any],
        citation_data: list[Any],
    ) -> BriefPlan:
        """
        Plan a brief for one keyword.

        Args:
            client: The client the content is for.
            target_keyword: Primary keyword the brief targets.
            content_type: e.g. "blog_post".
            competitive_data: Unexpired competitive analysis snapshots.
            citation_data: Recent AI citation records.

        Returns:
            BriefPlan parsed from the model's JSON reply.

        Raises:
            ValueError: the reply held no usable JSON object.
        """
        prompt = self._build_prompt(
            client, target_keyword, content_type, competitive_data, citation_data
        )

        try:
            response = self.client.models.generate_content(
                model=self.model,
                contents=prompt,
                config=GenerateContentConfig(
                    system_instruction=STRATEGIST_INSTRUCTION,
                    temperature=0.4,
                    max_output_tokens=2048,
                ),
            )
        except Exception as e:
            logger.error(f"Brief planning failed for '{target_keyword}': {e}", exc_info=True)
            raise

        return BriefPlan.model_validate(parse_json_object(response.text))

    def _build_prompt(
        self,
        client: ClientProfile,
        target_keyword: str,
        content_type: str,
        competitive_data: list[Any],
        citation_data: list[Any],
    ) -> str:
        competitive = (
            json.dumps(competitive_data, indent=2, default=str)
            if competitive_data
            else "No competitive data available yet."
        )
        citations = (
            json.dumps(citation_data, indent=2, default=str)
            if citation_data
            else "No AI citation data available yet."
        )
        existing = ", ".join(client.target_keywords) or "none"

        return f"""Generate a content brief for this client and keyword.

CLIENT: {client.name} ({client.domain})
INDUSTRY: {client.industry or "Not specified"}
EXISTING TARGET KEYWORDS: {existing}

TARGET KEYWORD: {target_keyword}
CONTENT TYPE: {content_type}

COMPETITIVE INTELLIGENCE:
{competitive}

AI CITATION DATA:
{citations}

Return a JSON object with exactly these fields:
- title: compelling, search-optimised title
- target_audience: who this content is for
- unique_angle: what makes it different from competitors
- competitive_gap: gaps in competitor content we can exploit
- authority_signals: E-E-A-T signals to include
- ai_citation_opportunity: how to get cited by AI search
- target_word_count: integer
- required_sections: array of section headings
- semantic_keywords: array of related keywords
- priority_level: "high", "medium" or "low"

Return ONLY the JSON object, no other text."""
