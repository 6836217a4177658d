"""Interfaces the query-understanding orchestrator depends on."""
from abc import ABC, abstractmethod
from typing import List, Optional

from community_search.models.entities import ConversationTurn, EntitySet, LLMExtraction


class ContextProvider(ABC):
    """Read-only view of a caller's recent conversation."""

    @abstractmethod
    async def context_for(self, caller_id: str, max_turns: Optional[int] = None) -> str:
        """Recent turns rendered as plain text; empty when there is no live session."""
        pass

    @abstractmethod
    async def history_for(self, caller_id: str) -> List[ConversationTurn]:
        """Copy of the recent turns, oldest first."""
        pass


class EntityExtractor(ABC):
    """Slow-path extractor consulted when the regex pass is not confident enough."""

    @abstractmethod
    async def extract(
        self,
        query: str,
        context: str = "",
        regex_entities: Optional[EntitySet] = None,
    ) -> Optional[LLMExtraction]:
        """Return an extraction, or None when no usable answer was produced."""
        pass
