"""API Schemas — Pydantic request models and response envelopes."""
