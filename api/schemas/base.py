"""Base Pydantic schemas with camelCase JSON aliases."""

from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict
from humps import camelize


def to_camel(string: str) -> str:
    return camelize(string)


class CamelModel(BaseModel):
    """
    Base for request and response bodies.

    Fields are snake_case in Python and camelCase on the wire
    (``candidate_name`` <-> ``candidateName``); either form is accepted on input.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


T = TypeVar("T")


class PaginationMeta(CamelModel):
    page: int
    per_page: int
    total: int
    total_pages: int


class PaginatedResponse(CamelModel, Generic[T]):
    """List page, e.g. ``PaginatedResponse[AssessmentListItem]``."""

    data: list[T]
    meta: PaginationMeta


class ErrorDetail(CamelModel):
    """Error body: a machine code, a user-facing message, optional details."""

    code: str
    message: str
    details: dict[str, Any] = {}


class ErrorResponse(CamelModel):
    error: ErrorDetail
