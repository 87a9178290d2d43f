from .groq import GroqClientFactory, GroqProvider

__all__ = ["GroqClientFactory", "GroqProvider"]
