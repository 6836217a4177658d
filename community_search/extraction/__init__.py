"""Query understanding: intent classification and entity extraction."""
