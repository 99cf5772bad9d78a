"""Providers: LLM contract and remote toolkit API clients."""
