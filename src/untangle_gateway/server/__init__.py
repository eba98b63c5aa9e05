"""
HTTP layer of the gateway.
"""

from .chat import ChatCompletionService
from .keys import EnvironmentKeyProvider, KeyProvider, env_var_name
from .main import build_registry, create_app
from .sse import EventDecoder
from .usage import UsageLog, UsageRecord, UsageSink

__all__ = [
    "ChatCompletionService",
    "EnvironmentKeyProvider",
    "KeyProvider",
    "env_var_name",
    "build_registry",
    "create_app",
    "EventDecoder",
    "UsageLog",
    "UsageRecord",
    "UsageSink",
]
