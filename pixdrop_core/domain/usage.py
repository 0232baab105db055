"""
Usage event model.

One event per tool invocation, recorded fire-and-forget for analytics.
Server-side operations record their OperationType value; tools that run
entirely in the browser report their own name through the usage endpoint.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field

TOOL_NAME_PATTERN = r"^[a-z][a-z0-9-]{0,39}$"


class UsageEvent(BaseModel):
    """A single tool invocation."""

    tool_name: str = Field(..., pattern=TOOL_NAME_PATTERN)
    user_id: Optional[str] = None
    session_id: Optional[str] = None
    user_agent: str = ""
    ip_address: str = ""
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
