"""
Groq adapter (OpenAI-compatible API).
"""

from typing import List, Dict, Any

from .openai_adapter import OpenAIAdapter


GROQ_MODELS: List[Dict[str, Any]] = [
    {
        "id": "llama-3.3-70b-versatile",
        "context_window": 128000,
        "max_output_tokens": 32768,
        "capabilities": ["chat", "tools"],
    },
    {
        "id": "llama-3.1-8b-instant",
        "context_window": 128000,
        "max_output_tokens": 8192,
        "capabilities": ["chat", "tools"],
    },
    {
        "id": "llama-3.2-90b-vision-preview",
        "context_window": 128000,
        "max_output_tokens": 8192,
        "capabilities": ["chat", "vision"],
    },
    {
        "id": "mixtral-8x7b-32768",
        "context_window": 32768,
        "max_output_tokens": 32768,
        "capabilities": ["chat"],
    },
    {
        "id": "gemma2-9b-it",
        "context_window": 8192,
        "max_output_tokens": 8192,
        "capabilities": ["chat"],
    },
]


class GroqAdapter(OpenAIAdapter):
    """Groq's OpenAI-compatible endpoint."""

    PROVIDER_ID = "groq"
    PROVIDER_NAME = "Groq"
    BASE_URL = "https://api.groq.com/openai/v1"
    DEFAULT_MODELS = GROQ_MODELS

    default_error_message = "Unknown Groq error"
