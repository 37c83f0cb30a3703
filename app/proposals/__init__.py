"""Proposal generation pipeline.

Turns a job posting into a drafted project proposal:
  - Template Registry (one prompt template per project category)
  - Prompt Builder (variable mapping and substitution)
  - Response Cache (fingerprint-keyed, TTL + FIFO bounded)
  - Response Normalizer (key points, budget and timeline extraction)
  - Proposal Service (orchestration over the LLM gateway)
"""
