"""Natural language search over community member profiles."""
