from fastapi import HTTPException
from pydantic import BaseModel
from typing import Optional


class ProblemDetail(BaseModel):
    """RFC 7807 compliant error response."""

    type: str = "about:blank"
    title: str
    detail: Optional[str] = None
    status: int
    instance: Optional[str] = None
    code: str


class DomainException(Exception):
    """Base class for domain-specific exceptions."""

    def __init__(
        self,
        status_code: int,
        title: str,
        *,
        code: str,
        detail: str | None = None,
        type_: str = "about:blank",
    ) -> None:
        super().__init__(detail or title)
        self.status_code = status_code
        self.title = title
        self.detail = detail
        self.type = type_
        self.code = code


class MatchNotFound(DomainException):
    def __init__(self, match_id: str) -> None:
        super().__init__(
            status_code=404,
            title="Match not found",
            detail=f"match '{match_id}' not found",
            code="match_not_found",
        )


class RallyNotFound(DomainException):
    def __init__(self, set_no: int, rally_no: int) -> None:
        super().__init__(
            status_code=404,
            title="Rally not found",
            detail=f"rally {rally_no} of set {set_no} not found",
            code="rally_not_found",
        )


class LineupMissing(DomainException):
    def __init__(self, set_no: int) -> None:
        super().__init__(
            status_code=409,
            title="Lineup missing",
            detail=f"both lineups of set {set_no} are required before recording",
            code="lineup_missing",
        )


class PersistenceError(DomainException):
    """The point log did not accept a write; the rally in progress is kept."""

    def __init__(self, detail: str = "rally could not be saved; try again") -> None:
        super().__init__(
            status_code=503,
            title="Rally not saved",
            detail=detail,
            code="rally_not_saved",
        )


def http_problem(
    status_code: int,
    detail: str,
    code: str,
    *,
    headers: Optional[dict[str, str]] = None,
) -> HTTPException:
    """Create an HTTPException with an attached problem code."""

    exc = HTTPException(status_code=status_code, detail=detail, headers=headers)
    setattr(exc, "code", code)
    return exc
