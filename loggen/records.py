"""
Log Records
===========

The value handed to a sink for every generated line, and the template
selector that picks its payload.
"""

import random
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Optional

from .exceptions import ConfigError

# Payloads of varying length so the generated traffic has realistic sizes
LOG_LINES = [
    "Log line",
    "Hello, world",
    "This is a bit longer",
    "And this one is a much longer log line that also includes some fixed numbers like 1,000,000",
]


@dataclass(frozen=True)
class LogRecord:
    """One generated log line."""
    sequence_number: int
    instance_id: str
    payload: str
    level: str = "INFO"

    def to_document(self, timestamp: Optional[datetime] = None) -> Dict[str, Any]:
        """Render the record as an ECS-style document for indexing."""
        timestamp = timestamp or datetime.now(timezone.utc)
        return {
            '@timestamp': timestamp.isoformat(),
            'level': self.level,
            'message': self.payload,
            'counter': self.sequence_number,
            'service': {
                'instance': {
                    'id': self.instance_id
                }
            }
        }


class TemplateSelector:
    """
    Picks payloads uniformly at random from a fixed set of templates.

    Pass a seed to get a reproducible sequence of payloads.
    """

    def __init__(self, templates: Optional[Iterable[str]] = None, seed: Optional[int] = None):
        self.templates = list(templates) if templates is not None else list(LOG_LINES)
        if not self.templates:
            raise ConfigError("At least one log line template is required")
        self._random = random.Random(seed)

    def choose(self) -> str:
        return self._random.choice(self.templates)
