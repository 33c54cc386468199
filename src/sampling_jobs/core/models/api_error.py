from pydantic import BaseModel
from typing import Optional


class ApiErrorResponse(BaseModel):
    type: str = "about:blank"
    title: str
    status: int
    detail: str
    instance: Optional[str] = None

    def with_instance(self, instance: str) -> "ApiErrorResponse":
        """Return copy that points at the failing resource."""
        return self.model_copy(update={"instance": instance})
