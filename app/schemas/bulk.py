from pydantic import BaseModel, Field

from app.models.enums import BulkActionType
from app.schemas.listing import ListingCreate


class BulkOperation(BaseModel):
    unit_id: str
    action: BulkActionType
    listing_data: ListingCreate | None = None


class BulkRequest(BaseModel):
    operations: list[BulkOperation] = Field(default_factory=list)


class BulkFailure(BaseModel):
    unit_id: str
    error: str


class BulkSummary(BaseModel):
    total: int
    succeeded: int
    failed: int


class BulkResult(BaseModel):
    successful: list[str] = Field(default_factory=list)
    failed: list[BulkFailure] = Field(default_factory=list)
    summary: BulkSummary
