"""External collaborators: LLM, semantic filter and document sources."""
