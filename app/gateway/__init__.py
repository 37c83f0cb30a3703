"""LLM gateway layer.

Provides the infrastructure the proposal pipeline uses to reach the
language-model provider:
  - Narrow completion contract (LlmGateway) with an OpenAI adapter
  - Rolling-window rate limiter (requests/minute and tokens/minute)
  - Retry policy with exponential backoff and jitter
"""
