"""
Search Models - Typed request and response records for prompt search
"""

import re
from datetime import datetime
from typing import Any, Dict, List, Literal, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel
from pydantic_core import PydanticCustomError

from promptana.api_errors import ApiError, bad_request
from promptana.config.search_config import (
    DEFAULT_PAGE,
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    MAX_QUERY_LENGTH,
    MAX_TAG_IDS,
    SORT_OPTIONS,
    SORT_RELEVANCE,
)

UUID_PATTERN = re.compile(
    r"[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[1-5][0-9a-fA-F]{3}-[89abAB][0-9a-fA-F]{3}-[0-9a-fA-F]{12}"
)

SortOption = Literal["relevance", "updatedAtDesc"]


def is_uuid(value: str) -> bool:
    return isinstance(value, str) and UUID_PATTERN.fullmatch(value) is not None


def _parse_integer(value: Any) -> int:
    """Whole number from a query-string value; "2.0" counts, "2.5" and "two" do not"""
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return 0
        try:
            return int(value)
        except ValueError:
            try:
                value = float(value)
            except ValueError:
                raise ValueError("Must be an integer.") from None
    if isinstance(value, float) and value.is_integer():
        return int(value)
    raise ValueError("Must be an integer.")


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SearchPromptsParams(_CamelModel):
    """Validated search parameters for one user's prompt search"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    q: str
    tag_ids: Optional[List[str]] = None
    catalog_id: Optional[str] = None
    page: int = Field(default=DEFAULT_PAGE, ge=1)
    page_size: int = Field(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE)
    sort: SortOption = SORT_RELEVANCE

    @field_validator("q", mode="before")
    @classmethod
    def _check_query(cls, value: Any) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            raise ValueError("Field is required.")
        if isinstance(value, str):
            if len(value) > MAX_QUERY_LENGTH:
                raise ValueError(f"Must be at most {MAX_QUERY_LENGTH} characters long.")
            return value.strip()
        return value

    @field_validator("tag_ids")
    @classmethod
    def _check_tag_ids(cls, value: Optional[List[str]]) -> Optional[List[str]]:
        if not value:
            return None

        # Both problems are reported together
        messages = []
        if len(value) > MAX_TAG_IDS:
            messages.append(f"Must not contain more than {MAX_TAG_IDS} tag IDs.")
        if not all(is_uuid(tag_id) for tag_id in value):
            messages.append("All tagIds must be valid UUID strings.")
        if messages:
            raise PydanticCustomError("tag_ids", " ".join(messages), {"messages": messages})

        # De-duplicate, keeping first occurrence order
        return list(dict.fromkeys(value))

    @field_validator("catalog_id")
    @classmethod
    def _check_catalog_id(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not is_uuid(value):
            raise ValueError("Must be a valid UUID string.")
        return value

    @field_validator("page", mode="before")
    @classmethod
    def _check_page(cls, value: Any) -> Any:
        page = _parse_integer(value)
        if page < 1:
            raise ValueError("Must be greater than or equal to 1.")
        return page

    @field_validator("page_size", mode="before")
    @classmethod
    def _check_page_size(cls, value: Any) -> Any:
        page_size = _parse_integer(value)
        if not 1 <= page_size <= MAX_PAGE_SIZE:
            raise ValueError(f"Must be between 1 and {MAX_PAGE_SIZE}.")
        return page_size

    @field_validator("sort", mode="before")
    @classmethod
    def _check_sort(cls, value: Any) -> Any:
        if value not in SORT_OPTIONS:
            raise ValueError(f"Must be one of {' or '.join(SORT_OPTIONS)}.")
        return value

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size

    @classmethod
    def from_query_args(cls, args: Mapping[str, Any]) -> "SearchPromptsParams":
        """
        Build params from raw query-string values.

        Args:
            args: Mapping with q, tagIds (comma separated), catalogId, page, pageSize, sort

        Raises:
            ApiError: 400 BAD_REQUEST with per-field messages
        """
        raw: Dict[str, Any] = {"q": args.get("q")}

        raw_tag_ids = args.get("tagIds")
        if raw_tag_ids is not None and raw_tag_ids.strip():
            raw["tagIds"] = [part.strip() for part in raw_tag_ids.split(",") if part.strip()]

        for key in ("catalogId", "page", "pageSize", "sort"):
            if args.get(key) is not None:
                raw[key] = args[key]

        try:
            return cls.model_validate(raw)
        except ValidationError as exc:
            raise _to_api_error(exc) from exc


def _to_api_error(exc: ValidationError) -> ApiError:
    field_errors: Dict[str, List[str]] = {}
    for error in exc.errors():
        field = str(error["loc"][0]) if error["loc"] else "query"
        messages = (error.get("ctx") or {}).get("messages") or [error["msg"].removeprefix("Value error, ")]
        field_errors.setdefault(field, []).extend(messages)
    return bad_request("Query parameters are invalid.", field_errors)


class CatalogSummary(_CamelModel):
    id: str
    name: str


class TagSummary(_CamelModel):
    id: str
    name: str


class SearchResultItem(_CamelModel):
    id: str
    title: str
    snippet: str
    score: float
    catalog: Optional[CatalogSummary] = None
    tags: List[TagSummary] = Field(default_factory=list)
    updated_at: datetime


class SearchPromptsResponse(_CamelModel):
    items: List[SearchResultItem] = Field(default_factory=list)
    page: int
    page_size: int
    total: int

    @classmethod
    def empty(cls, params: SearchPromptsParams, total: int = 0) -> "SearchPromptsResponse":
        return cls(items=[], page=params.page, page_size=params.page_size, total=total)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready body with camelCase keys"""
        return self.model_dump(mode="json", by_alias=True)
