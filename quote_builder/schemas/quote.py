from typing import Any, Dict, Optional
from pydantic import BaseModel, ConfigDict

from quote_builder.models.quote import QuoteStatus, Signature


class QuoteWrite(BaseModel):
    """Body accepted by POST /quotes and PUT /quotes/{id}; unknown fields are kept."""

    model_config = ConfigDict(extra="allow")

    status: Optional[QuoteStatus] = None
    signature: Optional[Signature] = None
    categoryId: Optional[int] = None
    templateId: Optional[int] = None
    contactId: Optional[int] = None
    clientName: Optional[str] = None
    content: Optional[Dict[str, Any]] = None


class QuoteRecordSchema(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: int
    number: str
    status: QuoteStatus
    createdAt: str
    updatedAt: str
    content: Dict[str, Any] = {}
