"""Declarative catalogue of the ClasseViva data endpoints.

Every data-retrieval method of the client is one :class:`Endpoint` entry:
a path template, the HTTP verb, the audience segment, which user identifier
goes into the URL, and which envelope field to unwrap. The client's generic
executor turns an entry into a request; nothing here performs I/O.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Literal

Audience = Literal["students", "parents", "users"]
IdKind = Literal["user_id", "user_ident"]

FORM_HEADERS = {"Content-Type": "application/x-www-form-urlencoded"}

# Agenda filter keyword -> event code expected by the API
AGENDA_FILTERS = {
    "all": "all",
    "homework": "AGHW",
    "other": "AGNT",
}


def format_date(day: date | None = None) -> str:
    """Format a date as ``YYYYMMDD`` using its local calendar fields.

    Args:
        day: Date or datetime to format (defaults to today). No timezone
            conversion is applied to datetimes.

    Returns:
        Zero-padded date digits without separators, e.g. ``"20240603"``.
    """
    day = day or date.today()
    return f"{day.year:04d}{day.month:02d}{day.day:02d}"


@dataclass(frozen=True)
class Endpoint:
    """One entry of the endpoint catalogue.

    Attributes:
        path: Path template relative to ``/{audience}/{id}``; placeholders are
            filled with :meth:`str.format`.
        key: Envelope field to return, or None to return the whole payload.
        default: Factory for the value returned when the call fails or the
            field is absent.
        method: HTTP verb.
        audience: Namespace segment of the URL.
        id_kind: Whether the numeric id or the full identifier is used.
        json: Decode the body as JSON (True) or return raw bytes (False).
        headers: Extra headers layered over the client defaults.
        fallback_keys: Alternative field names tried after ``key``.
    """

    path: str
    key: str | None = None
    default: Callable[[], Any] = dict
    method: str = "GET"
    audience: Audience = "students"
    id_kind: IdKind = "user_id"
    json: bool = True
    headers: dict[str, str] = field(default_factory=dict)
    fallback_keys: tuple[str, ...] = ()

    def format_path(self, **params: Any) -> str:
        return self.path.format(**params)

    def unwrap(self, data: Any) -> Any:
        """Extract the configured field from a decoded payload.

        Returns the default value when the payload is missing, is not an
        object (while a key is configured), or lacks every candidate field.
        """
        if data is None:
            return self.default()
        if self.key is None:
            return data
        if not isinstance(data, dict):
            return self.default()
        for key in (self.key, *self.fallback_keys):
            value = data.get(key)
            if value is not None:
                return value
        return self.default()


CARDS = Endpoint("/cards", key="cards", default=list)
CARD = Endpoint("/card", key="card")
GRADES = Endpoint("/grades2", key="grades", default=list)
ABSENCES = Endpoint("/absences/details", key="events", default=list)
AGENDA = Endpoint("/agenda/{code}/{start}/{end}", key="agenda", default=list)
DOCUMENTS = Endpoint("/documents", method="POST")
NOTICEBOARD = Endpoint("/noticeboard", key="items", default=list)
SCHOOL_BOOKS = Endpoint("/schoolbooks", key="schoolbooks", default=list)
CALENDAR = Endpoint("/calendar/all", key="calendar", default=list)
LESSONS_TODAY = Endpoint("/lessons/today", key="lessons", default=list)
LESSONS = Endpoint("/lessons/{start}/{end}", key="lessons", default=list)
NOTES = Endpoint("/notes/all")
PERIODS = Endpoint("/periods", key="periods", default=list)
SUBJECTS = Endpoint("/subjects", key="subjects", default=list)
# The API spells this field "didacticts"; some deployments fixed it.
DIDACTICS = Endpoint(
    "/didactics",
    key="didacticts",
    default=list,
    fallback_keys=("didactics",),
)
OVERVIEW = Endpoint("/overview/all/{start}/{end}")
CHECK_DOCUMENT = Endpoint("/documents/check/{hash}/", key="document", method="POST")
READ_DOCUMENT = Endpoint(
    "/documents/read/{hash}/",
    default=bytes,
    method="POST",
    json=False,
)
READ_NOTICE = Endpoint(
    "/noticeboard/read/{event_code}/{notice_id}/101",
    method="POST",
    headers=FORM_HEADERS,
)

# Parents namespace
PARENTS_OPTIONS = Endpoint("/_options", key="options", audience="parents")
OVERALL_TALKS = Endpoint(
    "/overalltalks/list",
    key="overallTalks",
    default=list,
    audience="parents",
)
TALKS = Endpoint(
    "/talks/teachersframes/{start}/{end}",
    key="teachers",
    default=list,
    audience="parents",
)
READ_TALK_MESSAGE = Endpoint(
    "/talks/teachermessage/{booking_id}",
    method="POST",
    audience="parents",
)
BOOK_TALK = Endpoint(
    "/talks/book/{teacher_id}/{talk_id}/{slot}",
    method="POST",
    audience="parents",
)

# Users namespace, addressed by the full identifier
TERMS_AGREEMENT = Endpoint(
    "/getTermsAgreement",
    audience="users",
    id_kind="user_ident",
)
SET_TERMS_AGREEMENT = Endpoint(
    "/setTermsAgreement",
    method="POST",
    audience="users",
    id_kind="user_ident",
)
