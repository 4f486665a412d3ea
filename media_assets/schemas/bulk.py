"""Schemas for bulk ingestion results."""

from pydantic import BaseModel, ConfigDict, Field

from .asset import Asset


class ItemError(BaseModel):
    """Failure of a single bulk item, addressed by its input position."""

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "examples": [
                {"index": 2, "code": "TooLarge", "message": "Upload of 6291456 bytes exceeds the 5242880 byte limit"},
                {"index": 4, "code": "Cancelled", "message": "Bulk upload cancelled before item was scheduled"}
            ]
        }
    )

    index: int = Field(..., ge=0, description="Position of the item in the input")
    code: str = Field(..., description="Error code, e.g. 'Undecodable'")
    message: str = Field(..., description="Human readable reason")


class BulkCreateResult(BaseModel):
    """Outcome of a bulk upload: successes and per-item failures.

    The two lists always account for every input item exactly once.
    """

    model_config = ConfigDict(frozen=True)

    created: list[Asset] = Field(default_factory=list, description="Created assets in input order")
    errors: list[ItemError] = Field(default_factory=list, description="Failures sorted by index")

    @property
    def total(self) -> int:
        return len(self.created) + len(self.errors)

    @property
    def ok(self) -> bool:
        return not self.errors
