"""Query understanding: regex fast path with an LLM fallback."""
import asyncio
from typing import List, Optional

from community_search.config import PipelineConfig
from community_search.extraction import patterns
from community_search.extraction.intent_classifier import IntentClassifier
from community_search.extraction.interfaces import ContextProvider, EntityExtractor
from community_search.extraction.normalization import normalize_query
from community_search.extraction.regex_extractor import RegexEntityExtractor
from community_search.models.entities import (
    ARRAY_FIELDS,
    INTENT_TEMPLATE_FIELDS,
    SCALAR_FIELDS,
    EntitySet,
    ExtractedQuery,
    ExtractionMethod,
    Intent,
    IntentResult,
    LLMExtraction,
    RegexExtraction,
)
from community_search.utils.logging import get_logger

logger = get_logger(__name__)


def is_followup(normalized_query: str) -> bool:
    return any(pattern.search(normalized_query) for pattern in patterns.FOLLOWUP_PATTERNS)


def is_next_page(normalized_query: str) -> bool:
    return any(pattern.search(normalized_query) for pattern in patterns.NEXT_PAGE_PATTERNS)


def merge_entities(
    regex_entities: EntitySet,
    regex_confidence: float,
    llm_entities: EntitySet,
    llm_confidence: float,
) -> EntitySet:
    """
    Field-by-field merge of the two extractions.

    Arrays are unioned with regex values first. Scalars present on both sides
    come from the more confident source, regex winning ties.
    """
    merged = {}
    for field in ARRAY_FIELDS:
        combined: List = list(getattr(regex_entities, field))
        for value in getattr(llm_entities, field):
            if value not in combined:
                combined.append(value)
        merged[field] = combined

    regex_preferred = regex_confidence >= llm_confidence
    for field in SCALAR_FIELDS:
        regex_value = getattr(regex_entities, field)
        llm_value = getattr(llm_entities, field)
        if regex_value is None:
            merged[field] = llm_value
        elif llm_value is None or regex_preferred:
            merged[field] = regex_value
        else:
            merged[field] = llm_value

    if merged["graduation_years"]:
        merged["graduation_years"] = sorted(merged["graduation_years"])
    return EntitySet(**merged)


class QueryUnderstanding:
    """
    Turns a raw query into an ExtractedQuery.

    The classifier and regex extractor run side by side in the default
    executor. Confident regex results take the fast path; otherwise the
    LLM extractor is consulted and its answer merged in. LLM failures never
    surface here: the regex-only result is used instead.
    """

    def __init__(
        self,
        config: PipelineConfig,
        classifier: IntentClassifier,
        regex_extractor: RegexEntityExtractor,
        llm_extractor: Optional[EntityExtractor] = None,
        context_provider: Optional[ContextProvider] = None,
    ):
        self.config = config
        self.classifier = classifier
        self.regex_extractor = regex_extractor
        self.llm_extractor = llm_extractor
        self.context_provider = context_provider

    def _finalize(
        self,
        intent: Intent,
        secondary: Optional[Intent],
        entities: EntitySet,
        confidence: float,
        method: ExtractionMethod,
        normalized: str,
    ) -> ExtractedQuery:
        if secondary == intent:
            secondary = None
        return ExtractedQuery(
            intent=intent,
            secondary_intent=secondary,
            entities=entities.project(INTENT_TEMPLATE_FIELDS[intent]),
            confidence=round(max(0.0, min(1.0, confidence)), 3),
            method=method,
            normalized_query_text=normalized,
        )

    async def _resolve_followup(self, caller_id: Optional[str], normalized: str) -> Optional[ExtractedQuery]:
        if not caller_id or self.context_provider is None or not is_followup(normalized):
            return None
        history = await self.context_provider.history_for(caller_id)
        if not history:
            return None
        previous = history[-1]
        logger.info(
            "Follow-up query resolved against previous turn",
            extra={"caller_id": caller_id, "previous_query": previous.query_text[:100]}
        )
        return self._finalize(
            Intent.GET_INFO,
            previous.intent,
            previous.entities,
            self.config.followup_confidence,
            ExtractionMethod.REGEX,
            normalized,
        )

    def _merge(
        self,
        intent_result: IntentResult,
        regex_result: RegexExtraction,
        llm_result: LLMExtraction,
        normalized: str,
    ) -> ExtractedQuery:
        entities = merge_entities(
            regex_result.entities,
            regex_result.confidence,
            llm_result.entities,
            llm_result.confidence,
        )

        confidence = max(regex_result.confidence, llm_result.confidence)
        disagree = intent_result.primary != llm_result.intent
        if disagree:
            confidence = max(0.0, confidence - self.config.intent_disagreement_penalty)

        if llm_result.confidence >= intent_result.confidence:
            intent = llm_result.intent
            secondary = intent_result.primary if disagree else intent_result.secondary
        else:
            intent = intent_result.primary
            secondary = llm_result.intent if disagree else intent_result.secondary

        regex_contributed = not regex_result.entities.is_empty()
        llm_contributed = not llm_result.entities.is_empty()
        if regex_contributed and llm_contributed:
            method = ExtractionMethod.HYBRID
        elif regex_contributed:
            method = ExtractionMethod.REGEX
        else:
            method = ExtractionMethod.LLM

        return self._finalize(intent, secondary, entities, confidence, method, normalized)

    async def understand(self, query: str, caller_id: Optional[str] = None) -> ExtractedQuery:
        normalized = normalize_query(query)

        loop = asyncio.get_running_loop()
        intent_result, regex_result = await asyncio.gather(
            loop.run_in_executor(None, self.classifier.classify, normalized),
            loop.run_in_executor(None, self.regex_extractor.extract, normalized),
        )

        if regex_result.entities.is_empty():
            followup = await self._resolve_followup(caller_id, normalized)
            if followup is not None:
                return followup

        if regex_result.confidence >= self.config.llm_fallback_threshold:
            logger.info(
                f"Fast path: intent={intent_result.primary.value}, confidence={regex_result.confidence:.2f}",
                extra={"intent": intent_result.primary.value, "patterns": regex_result.matched_patterns}
            )
            return self._finalize(
                intent_result.primary,
                intent_result.secondary,
                regex_result.entities,
                regex_result.confidence,
                ExtractionMethod.REGEX,
                normalized,
            )

        llm_result = None
        if self.llm_extractor is not None:
            # Context is copied out before the network call
            context = ""
            if caller_id and self.context_provider is not None:
                context = await self.context_provider.context_for(caller_id, self.config.llm_max_history_turns)
            llm_result = await self.llm_extractor.extract(query.strip(), context, regex_result.entities)

        if llm_result is None:
            logger.info(
                "LLM fallback unavailable, using regex-only extraction",
                extra={"confidence": regex_result.confidence, "query": normalized[:100]}
            )
            return self._finalize(
                intent_result.primary,
                intent_result.secondary,
                regex_result.entities,
                regex_result.confidence - self.config.llm_degradation_penalty,
                ExtractionMethod.REGEX,
                normalized,
            )

        result = self._merge(intent_result, regex_result, llm_result, normalized)
        logger.info(
            f"Hybrid extraction: intent={result.intent.value}, method={result.method.value}, "
            f"confidence={result.confidence:.2f}",
            extra={"intent": result.intent.value, "method": result.method.value, "confidence": result.confidence}
        )
        return result
