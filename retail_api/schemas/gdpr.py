"""
GDPR schemas
"""

from datetime import datetime
from typing import List

from pydantic import Field

from retail_api.schemas.common import CamelModel, RequestModel


class DeleteRequest(RequestModel):
    confirmation: str = Field(default="")


class ConsentUpdate(RequestModel):
    # Plain string so an unknown type maps to invalid_consent_type
    consent_type: str = Field(..., min_length=1, max_length=50)
    granted: bool


class ConsentRead(CamelModel):
    consent_type: str
    granted: bool
    created_at: datetime


class ConsentListResponse(CamelModel):
    consents: List[ConsentRead]


class HasConsentResponse(CamelModel):
    consent_type: str
    granted: bool
