"""
Rulebook Application DTOs
=========================
"""

from datetime import datetime
from typing import Dict, Optional

from pydantic import BaseModel, Field

from servicedesk.rulebook.domain import Rulebook


class RulebookStatusResponse(BaseModel):
    version: Optional[str] = None
    path: Optional[str] = None
    loaded_at: Optional[datetime] = None
    watching: bool = False
    last_error: Optional[str] = Field(None, description="Error of the last failed reload, if any")
    counts: Dict[str, int] = Field(default_factory=dict)


class RulebookResponse(BaseModel):
    status: RulebookStatusResponse
    rulebook: Rulebook
