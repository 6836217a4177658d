"""LLM fallback extractor for queries the regex pass cannot handle confidently."""
import asyncio
import json
import re
from typing import Dict, List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from community_search.config import PipelineConfig
from community_search.exceptions import ExtractionDegradation
from community_search.extraction.interfaces import EntityExtractor
from community_search.extraction.normalization import normalize_entities
from community_search.models.entities import EntitySet, Intent, LLMExtraction
from community_search.services.llm_client import CompletionClient
from community_search.utils.logging import get_logger

logger = get_logger(__name__)

EXTRACTION_PROMPT = """
IMPORTANT:
This is a FRESH, ISOLATED, SINGLE-TASK operation.
Use the previous conversation only to resolve references like "they" or "same batch".

ROLE:
You are the query parser of an alumni and business community directory.
Members are engineering graduates; many run businesses.

TASK:
Convert the member's question into a structured search intent.

INTENTS (pick exactly one):
- find_business: looking for companies, service providers or vendors
- find_peers: looking for batchmates / alumni by year, branch, degree or city
- find_specific_person: looking for one named person or their contact
- find_alumni_business: businesses run by alumni of a given batch or branch
- get_info: follow-up asking for more details about earlier results
- list_members: browse members with no specific constraint
- compare: compare members or businesses

ENTITIES:
- skills: technical skills (e.g. "python", "machine learning")
- services: business offerings (e.g. "web development", "packaging")
- location: one Indian city, canonical spelling (Bengaluru -> Bangalore, Madras -> Chennai)
- turnover_tier: "low" (below 2 crore), "medium" (2-10 crore), "high" (above 10 crore)
- graduation_years: four-digit years
- degree: e.g. "B.E", "B.Tech", "MBA"
- branch: e.g. "Mechanical", "ECE", "CSE", "Civil"
- name: a person's name, only when one is mentioned

OUTPUT FORMAT (JSON only, no prose, no markdown):
{
  "intent": "<one of the intents>",
  "confidence": <0.0-1.0>,
  "entities": {
    "skills": [], "services": [], "location": null, "turnover_tier": null,
    "graduation_years": [], "degree": [], "branch": [], "name": null
  }
}

EXAMPLES:
Query: "find web development company in chennai"
{"intent": "find_business", "confidence": 0.9, "entities": {"skills": [], "services": ["web development"], "location": "Chennai", "turnover_tier": null, "graduation_years": [], "degree": [], "branch": [], "name": null}}

Query: "my batchmates from 1998 mech working in bangalore"
{"intent": "find_peers", "confidence": 0.92, "entities": {"skills": [], "services": [], "location": "Bangalore", "turnover_tier": null, "graduation_years": [1998], "degree": [], "branch": ["Mechanical"], "name": null}}

Query: "is there anyone called suresh from civil"
{"intent": "find_specific_person", "confidence": 0.85, "entities": {"skills": [], "services": [], "location": null, "turnover_tier": null, "graduation_years": [], "degree": [], "branch": ["Civil"], "name": "Suresh"}}

Query: "big packaging businesses run by 2005 alumni"
{"intent": "find_alumni_business", "confidence": 0.88, "entities": {"skills": [], "services": ["packaging"], "location": null, "turnover_tier": "high", "graduation_years": [2005], "degree": [], "branch": [], "name": null}}

Query: "anyone who knows machine learning and can build apps"
{"intent": "find_business", "confidence": 0.7, "entities": {"skills": ["machine learning"], "services": ["app development"], "location": null, "turnover_tier": null, "graduation_years": [], "degree": [], "branch": [], "name": null}}
"""

REPAIR_PROMPT = """
Your previous answer was not valid. Return valid JSON only, exactly matching
the OUTPUT FORMAT above, with no extra keys and no surrounding text.
"""


class LLMEntityPayload(BaseModel):
    model_config = ConfigDict(extra="forbid")

    skills: List[str] = Field(default_factory=list)
    services: List[str] = Field(default_factory=list)
    location: Optional[str] = None
    turnover_tier: Optional[Literal["low", "medium", "high"]] = None
    graduation_years: List[int] = Field(default_factory=list)
    degree: List[str] = Field(default_factory=list)
    branch: List[str] = Field(default_factory=list)
    name: Optional[str] = None


class LLMResponsePayload(BaseModel):
    """Exact shape the model must answer with."""
    model_config = ConfigDict(extra="forbid")

    intent: Intent
    confidence: float = Field(..., ge=0.0, le=1.0)
    entities: LLMEntityPayload


class LLMEntityExtractor(EntityExtractor):
    """Asks the completion service for a structured reading of the query."""

    def __init__(self, client: CompletionClient, config: PipelineConfig):
        self.client = client
        self.config = config

    def build_prompt(self, query: str, context: str = "") -> str:
        parts = [EXTRACTION_PROMPT.strip()]
        if context:
            parts.append(context.strip())
        parts.append(f'Query: "{query}"')
        return "\n\n".join(parts)

    def _extract_json(self, text: str) -> Dict:
        """Extract the JSON object from raw model output."""
        if not text or not text.strip():
            raise ValueError("Empty response from LLM")

        cleaned_text = text.strip()
        cleaned_text = re.sub(r'```json\s*', '', cleaned_text)
        cleaned_text = re.sub(r'```\s*', '', cleaned_text)

        json_match = re.search(r'\{.*\}', cleaned_text, re.DOTALL)
        candidate = json_match.group() if json_match else cleaned_text
        parsed = json.loads(candidate)
        if not isinstance(parsed, dict):
            raise ValueError("LLM response is not a JSON object")
        return parsed

    def _parse(self, text: str) -> LLMResponsePayload:
        return LLMResponsePayload.model_validate(self._extract_json(text))

    async def _exchange(self, query: str, context: str) -> LLMResponsePayload:
        prompt = self.build_prompt(query, context)
        last_error: Optional[Exception] = None

        # One normal attempt plus one repair attempt
        for attempt in range(2):
            try:
                raw = await self.client.complete(prompt)
            except Exception as e:
                raise ExtractionDegradation("transport", str(e)) from e

            try:
                return self._parse(raw)
            except (ValueError, ValidationError) as e:
                # json.JSONDecodeError is a ValueError
                last_error = e
                logger.debug(
                    f"LLM response rejected (attempt {attempt + 1}): {e}",
                    extra={"attempt": attempt + 1, "response_preview": (raw or "")[:200]}
                )
                prompt = f"{prompt}\n\n{REPAIR_PROMPT.strip()}"

        raise ExtractionDegradation("invalid_response", str(last_error))

    async def extract(
        self,
        query: str,
        context: str = "",
        regex_entities: Optional[EntitySet] = None,
    ) -> Optional[LLMExtraction]:
        timeout = self.config.llm_timeout_seconds
        try:
            try:
                payload = await asyncio.wait_for(self._exchange(query, context), timeout=timeout)
            except asyncio.TimeoutError as e:
                raise ExtractionDegradation("timeout", f"no answer within {timeout}s") from e
        except ExtractionDegradation as e:
            logger.warning(
                f"LLM fallback degraded: {e}",
                extra={"reason": e.reason, "detail": e.detail, "query": query[:100]}
            )
            return None

        entities = normalize_entities(**payload.entities.model_dump())
        confidence = min(self.config.llm_confidence_cap, payload.confidence)
        regex_empty = regex_entities is None or regex_entities.is_empty()
        if entities.is_empty() and regex_empty:
            confidence *= self.config.llm_empty_entities_discount

        logger.info(
            f"LLM extraction: intent={payload.intent.value}, confidence={confidence:.2f}",
            extra={"intent": payload.intent.value, "confidence": confidence, "fields": entities.populated_fields()}
        )
        return LLMExtraction(intent=payload.intent, entities=entities, confidence=round(confidence, 3))
