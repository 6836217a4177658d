"""Rule-based intent classification."""
from typing import List, Tuple

from community_search.config import PipelineConfig
from community_search.extraction import patterns
from community_search.extraction.normalization import normalize_query
from community_search.models.entities import Intent, IntentResult
from community_search.utils.logging import get_logger

logger = get_logger(__name__)


class IntentClassifier:
    """Counts rule-group hits per intent and picks the strongest group."""

    def __init__(self, config: PipelineConfig):
        self.config = config

    def _count_terms(self, query: str) -> List[Tuple[Intent, int]]:
        counts = []
        for intent, rules in patterns.COMPILED_INTENT_RULES:
            hits = sum(1 for rule in rules if rule.search(query))
            if hits:
                counts.append((intent, hits))
        return counts

    def classify(self, query: str) -> IntentResult:
        normalized = normalize_query(query)
        counts = self._count_terms(normalized)

        if not counts:
            return IntentResult(
                primary=Intent.LIST_MEMBERS,
                confidence=self.config.default_intent_confidence,
            )

        if len(counts) == 1:
            intent, hits = counts[0]
            confidence = min(
                self.config.single_intent_confidence_cap,
                self.config.single_intent_base_confidence
                + self.config.single_intent_term_bonus * (hits - 1),
            )
            return IntentResult(primary=intent, confidence=round(confidence, 3))

        # sorted() is stable, so equal counts keep rule-group order
        ranked = sorted(counts, key=lambda item: -item[1])
        logger.debug(
            f"Ambiguous intent: {[(intent.value, hits) for intent, hits in ranked]}",
            extra={"query": normalized[:100]}
        )
        return IntentResult(
            primary=ranked[0][0],
            secondary=ranked[1][0],
            confidence=self.config.ambiguous_intent_confidence,
        )
