"""
Stand-in for the AsyncOpenAI client.

Only ``client.chat.completions.create`` is used by the service, so the
fake exposes that as an AsyncMock returning chat-completion shaped objects.
"""

import json
from types import SimpleNamespace
from typing import Any, Optional
from unittest.mock import AsyncMock


def completion(content: Optional[str], prompt_tokens: int = 120, completion_tokens: int = 80) -> SimpleNamespace:
    """Chat completion response carrying ``content`` as its only choice."""
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))],
        usage=SimpleNamespace(prompt_tokens=prompt_tokens, completion_tokens=completion_tokens),
    )


def fake_client(content: Any = None, side_effect: Any = None) -> SimpleNamespace:
    """
    Client whose completions return ``content``.

    Non-string content is JSON-encoded. ``side_effect`` is passed straight
    to the AsyncMock, so an exception instance makes every call raise.
    """
    if content is not None and not isinstance(content, str):
        content = json.dumps(content)
    create = AsyncMock(return_value=completion(content), side_effect=side_effect)
    return SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))


GENERATED_INSIGHTS = [
    {
        "title": "Raise boiler service rate",
        "description": "Boiler services average £80/hr against a local £95/hr.",
        "action": "Quote £95/hr for new boiler services",
        "impact": "+£450/month",
        "priority": "high",
        "type": "pricing",
        "category": "Pricing",
    },
    {
        "title": "Prioritise Mrs Patel",
        "description": "Top customer by revenue this month.",
        "action": "Offer an annual service plan",
        "impact": "Repeat revenue",
        "priority": "medium",
        "type": "customer",
    },
]
