"""Service layer: LLM access and the learning session engine."""
