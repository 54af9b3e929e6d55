"""
PolicyQA LLM Module

LLM integration components:
- ChatCompletionClient: Async HTTP client for chat-completion APIs
- PromptTemplate: Policy QA prompt formatting
"""

from policyqa.llm.openai_client import ChatCompletionClient
from policyqa.llm.prompt_templates import PromptTemplate, format_context

__all__ = [
    "ChatCompletionClient",
    "PromptTemplate",
    "format_context",
]
