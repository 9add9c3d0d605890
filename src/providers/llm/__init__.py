"""LLM provider adapters.

OpenAILLMProvider implements ILLMProvider (src/interfaces/llm_provider.py)
for gpt-4o and any OpenAI-compatible endpoint that supports ``json_schema``
response formats.  It is only used for LLM chunking.
"""

from src.providers.llm.openai_provider import OpenAILLMProvider, map_openai_error

__all__ = ["OpenAILLMProvider", "map_openai_error"]
