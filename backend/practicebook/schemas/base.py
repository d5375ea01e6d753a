"""Shared pydantic bases for request and response DTOs."""

from pydantic import BaseModel, ConfigDict


class StrictRequestModel(BaseModel):
    """Request bodies reject unknown fields."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)


class ResponseModel(BaseModel):
    """Response DTOs are built straight from ORM rows."""

    model_config = ConfigDict(from_attributes=True)
