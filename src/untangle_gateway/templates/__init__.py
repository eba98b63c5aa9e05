"""
Templating for custom providers.
"""

from .engine import TemplateEngine, create_environment

__all__ = ["TemplateEngine", "create_environment"]
