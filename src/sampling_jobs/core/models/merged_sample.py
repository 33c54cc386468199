from math import ceil
from pydantic import AliasChoices, BaseModel, Field, field_validator
from typing import Any, Dict, List, Optional


class Pagination(BaseModel):
    model_config = {"populate_by_name": True, "frozen": True}

    page: int = Field(..., ge=1)
    page_size: int = Field(..., ge=1, validation_alias=AliasChoices("page_size", "pageSize"))
    total: int = Field(..., ge=0, validation_alias=AliasChoices("total", "total_items", "totalItems"))
    has_more: Optional[bool] = Field(
        None, validation_alias=AliasChoices("has_more", "hasMore", "has_next")
    )
    has_previous: Optional[bool] = Field(
        None, validation_alias=AliasChoices("has_previous", "hasPrevious", "has_prev")
    )
    total_pages: Optional[int] = None

    def expected_has_more(self) -> bool:
        return self.page * self.page_size < self.total

    def normalized(self) -> "Pagination":
        """Copy whose `has_more`/`has_previous`/`total_pages` agree with page, page_size and total."""
        return self.model_copy(
            update={
                "has_more": self.expected_has_more(),
                "has_previous": self.page > 1,
                "total_pages": ceil(self.total / self.page_size) if self.total else 0,
            }
        )


class MergedSamplePage(BaseModel):
    """One page of the merged sample produced by a completed job.

    The service calls the rows `data`; both spellings are accepted. Rows and
    pagination are required: a body without them is not an empty page.
    """

    model_config = {"populate_by_name": True, "frozen": True}

    rows: List[Dict[str, Any]] = Field(..., validation_alias=AliasChoices("rows", "data"))
    pagination: Pagination
    columns: List[str] = Field(default_factory=list)
    summary: Optional[Dict[str, Any]] = None
    file_path: Optional[str] = None
    job_id: Optional[str] = None

    @field_validator("job_id", mode="before")
    @classmethod
    def coerce_job_id(cls, value: Any) -> Any:
        return str(value) if isinstance(value, int) else value

    @property
    def has_more(self) -> bool:
        return bool(self.pagination.has_more)
