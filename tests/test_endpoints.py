"""Tests for the endpoint catalogue as exposed through the client methods.

Each method is exercised against the fake server to check the URL, verb and
unwrapped field, and once more with an envelope lacking that field to check
the default value.
"""

from datetime import date
from unittest.mock import MagicMock

import httpx
import pytest

from .fakes import FakeApi

STUDENTS = "/rest/v1/students/42"
PARENTS = "/rest/v1/parents/42"
USERS = "/rest/v1/users/S42"

DAY = date(2024, 6, 3)

# (method name, kwargs, verb, path, envelope field)
CATALOGUE = [
    ("get_grades", {}, "GET", f"{STUDENTS}/grades2", "grades"),
    ("get_absences", {}, "GET", f"{STUDENTS}/absences/details", "events"),
    (
        "get_agenda",
        {"filter": "homework", "start": DAY, "end": DAY},
        "GET",
        f"{STUDENTS}/agenda/AGHW/20240603/20240603",
        "agenda",
    ),
    ("get_noticeboard", {}, "GET", f"{STUDENTS}/noticeboard", "items"),
    ("get_school_books", {}, "GET", f"{STUDENTS}/schoolbooks", "schoolbooks"),
    ("get_calendar", {}, "GET", f"{STUDENTS}/calendar/all", "calendar"),
    ("get_lessons", {}, "GET", f"{STUDENTS}/lessons/today", "lessons"),
    (
        "get_lessons",
        {"today": False, "start": DAY, "end": date(2024, 6, 10)},
        "GET",
        f"{STUDENTS}/lessons/20240603/20240610",
        "lessons",
    ),
    ("get_periods", {}, "GET", f"{STUDENTS}/periods", "periods"),
    ("get_subjects", {}, "GET", f"{STUDENTS}/subjects", "subjects"),
    ("get_didactics", {}, "GET", f"{STUDENTS}/didactics", "didacticts"),
    (
        "check_document",
        {"hash": "abc"},
        "POST",
        f"{STUDENTS}/documents/check/abc/",
        "document",
    ),
    ("get_parents_options", {}, "GET", f"{PARENTS}/_options", "options"),
    ("get_overall_talks", {}, "GET", f"{PARENTS}/overalltalks/list", "overallTalks"),
    (
        "get_talks",
        {"start": DAY, "end": DAY},
        "GET",
        f"{PARENTS}/talks/teachersframes/20240603/20240603",
        "teachers",
    ),
]

WHOLE_PAYLOAD = [
    ("get_documents", {}, "POST", f"{STUDENTS}/documents"),
    ("get_notes", {}, "GET", f"{STUDENTS}/notes/all"),
    (
        "get_overview",
        {"start": DAY, "end": DAY},
        "GET",
        f"{STUDENTS}/overview/all/20240603/20240603",
    ),
    ("get_terms_agreement", {}, "GET", f"{USERS}/getTermsAgreement"),
]

LIST_DEFAULTS = {
    "get_grades",
    "get_absences",
    "get_agenda",
    "get_noticeboard",
    "get_school_books",
    "get_calendar",
    "get_lessons",
    "get_periods",
    "get_subjects",
    "get_didactics",
    "get_overall_talks",
    "get_talks",
}


# ---------------------------------------------------------------------------
# Unwrapping
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.parametrize(("name", "kwargs", "verb", "path", "key"), CATALOGUE)
async def test_method_unwraps_field(api: FakeApi, logged_in, name, kwargs, verb, path, key):
    """Each method requests its path and returns the named envelope field."""
    expected = [{"evtId": 1}] if name in LIST_DEFAULTS else {"id": 1}
    api.add_json(verb, path, {key: expected, "other": True})

    result = await getattr(logged_in, name)(**kwargs)

    assert result == expected
    (request,) = api.requests
    assert request.method == verb
    assert request.url.path == path


@pytest.mark.asyncio
@pytest.mark.parametrize(("name", "kwargs", "verb", "path", "key"), CATALOGUE)
async def test_method_default_when_field_missing(
    api: FakeApi,
    logged_in,
    name,
    kwargs,
    verb,
    path,
    key,
):
    """A missing envelope field yields [] or {}, never None."""
    api.add_json(verb, path, {"unrelated": 1})

    result = await getattr(logged_in, name)(**kwargs)

    assert result == ([] if name in LIST_DEFAULTS else {})


@pytest.mark.asyncio
@pytest.mark.parametrize(("name", "kwargs", "verb", "path"), WHOLE_PAYLOAD)
async def test_method_returns_whole_payload(api: FakeApi, logged_in, name, kwargs, verb, path):
    payload = {"documents": [], "schoolReports": [{"desc": "Pagella"}]}
    api.add_json(verb, path, payload)

    result = await getattr(logged_in, name)(**kwargs)

    assert result == payload
    assert api.requests[0].method == verb


@pytest.mark.asyncio
@pytest.mark.parametrize(("name", "kwargs", "verb", "path"), WHOLE_PAYLOAD)
async def test_method_returns_empty_object_on_failure(
    api: FakeApi,
    logged_in,
    name,
    kwargs,
    verb,
    path,
):
    api.add_json(verb, path, {}, status=500)

    result = await getattr(logged_in, name)(**kwargs)

    assert result == {}


@pytest.mark.asyncio
async def test_didactics_accepts_corrected_field_name(api: FakeApi, logged_in):
    items = [{"teacherId": "D1", "folders": []}]
    api.add_json("GET", f"{STUDENTS}/didactics", {"didactics": items})

    assert await logged_in.get_didactics() == items


# ---------------------------------------------------------------------------
# Agenda and dates
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_agenda_invalid_filter(api: FakeApi, logged_in, log: MagicMock):
    """An unknown filter keyword is rejected before any request."""
    result = await logged_in.get_agenda("exams")

    assert result == []
    assert api.requests == []
    log.warning.assert_called_once_with("Invalid filter", filter="exams")


@pytest.mark.asyncio
async def test_agenda_defaults_to_today(api: FakeApi, logged_in):
    today = date.today().strftime("%Y%m%d")
    path = f"{STUDENTS}/agenda/all/{today}/{today}"
    api.add_json("GET", path, {"agenda": []})

    await logged_in.get_agenda()

    assert api.requests[0].url.path == path


# ---------------------------------------------------------------------------
# Bodies and headers
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_set_terms_agreement_body(api: FakeApi, logged_in):
    """Terms are addressed by the full identifier and carry a bitmask body."""
    api.add_json("POST", f"{USERS}/setTermsAgreement", {"msg": "ok"})

    result = await logged_in.set_terms_agreement(third_party=True)

    assert result == {"msg": "ok"}
    assert FakeApi.body(api.requests[0]) == {"bitmask": "1"}


@pytest.mark.asyncio
async def test_read_talk_message_body(api: FakeApi, logged_in):
    api.add_json("POST", f"{PARENTS}/talks/teachermessage/77", {"ok": True})

    await logged_in.read_talk_message(77)

    assert FakeApi.body(api.requests[0]) == {"messageRead": True}


@pytest.mark.asyncio
async def test_book_talk(api: FakeApi, logged_in):
    api.add_json("POST", f"{PARENTS}/talks/book/9/3/2", {"booked": True})
    options = {"cell": "333", "email": "a@b.it"}

    result = await logged_in.book_talk(9, 3, 2, options)

    assert result == {"booked": True}
    assert FakeApi.body(api.requests[0]) == options


@pytest.mark.asyncio
async def test_book_talk_sends_empty_options(api: FakeApi, logged_in):
    """An empty options object is still serialized as the request body."""
    api.add_json("POST", f"{PARENTS}/talks/book/9/3/2", {"booked": True})

    await logged_in.book_talk(9, 3, 2, {})

    assert api.requests[0].content == b"{}"


@pytest.mark.asyncio
async def test_read_notice_without_options_sends_empty_object(api: FakeApi, logged_in):
    api.add_json("POST", f"{STUDENTS}/noticeboard/read/CF/1234/101", {"item": {}})

    await logged_in.read_notice("CF", 1234)

    assert api.requests[0].content == b"{}"


@pytest.mark.asyncio
async def test_read_notice_uses_form_content_type(api: FakeApi, logged_in):
    path = f"{STUDENTS}/noticeboard/read/CF/1234/101"
    api.add_json("POST", path, {"item": {"title": "Sciopero"}})

    result = await logged_in.read_notice("CF", 1234, {"sign": True})

    assert result == {"item": {"title": "Sciopero"}}
    request = api.requests[0]
    assert request.headers["Content-Type"] == "application/x-www-form-urlencoded"
    assert request.headers["Z-Auth-Token"] == "t"
    assert FakeApi.body(request) == {"sign": True}


@pytest.mark.asyncio
async def test_read_document_returns_bytes(api: FakeApi, logged_in):
    path = f"{STUDENTS}/documents/read/abc/"
    api.add("POST", path, httpx.Response(200, content=b"%PDF-1.4"))

    assert await logged_in.read_document("abc") == b"%PDF-1.4"


@pytest.mark.asyncio
async def test_read_document_failure_returns_empty_bytes(api: FakeApi, logged_in):
    path = f"{STUDENTS}/documents/read/abc/"
    api.add("POST", path, httpx.Response(404, content=b"missing"))

    assert await logged_in.read_document("abc") == b""


# ---------------------------------------------------------------------------
# Cards and profile
# ---------------------------------------------------------------------------

CARD = {
    "ident": "S42",
    "usrType": "G",
    "schName": "Liceo Scientifico",
    "schDedication": "G. Galilei",
    "schCity": "Roma",
    "schProv": "RM",
    "schCode": "RMPS0001",
}


@pytest.mark.asyncio
async def test_get_card_updates_profile(api: FakeApi, logged_in):
    """A card fetch fills the school descriptor and the user type."""
    assert logged_in.user.school.code is None
    api.add_json("GET", f"{STUDENTS}/card", {"card": CARD})

    result = await logged_in.get_card()

    assert result == CARD
    assert logged_in.user.type == "Parent"
    assert logged_in.user.school.name == "Liceo Scientifico"
    assert logged_in.user.school.dedication == "G. Galilei"
    assert logged_in.user.school.city == "Roma"
    assert logged_in.user.school.province == "RM"
    assert logged_in.user.school.code == "RMPS0001"


@pytest.mark.asyncio
async def test_get_cards_updates_profile_from_first(api: FakeApi, logged_in):
    second = {**CARD, "schCode": "OTHER"}
    api.add_json("GET", f"{STUDENTS}/cards", {"cards": [CARD, second]})

    result = await logged_in.get_cards()

    assert result == [CARD, second]
    assert logged_in.user.school.code == "RMPS0001"


@pytest.mark.asyncio
async def test_get_cards_empty_leaves_profile(api: FakeApi, logged_in):
    api.add_json("GET", f"{STUDENTS}/cards", {"cards": []})

    assert await logged_in.get_cards() == []
    assert logged_in.user.school.code is None
    assert logged_in.user.type is None


@pytest.mark.asyncio
async def test_get_card_missing_returns_empty_object(api: FakeApi, logged_in):
    api.add_json("GET", f"{STUDENTS}/card", {})

    assert await logged_in.get_card() == {}
    assert logged_in.user.school.code is None


@pytest.mark.asyncio
async def test_get_methods_lists_public_api(api_client):
    methods = api_client.get_methods()

    assert "login" in methods
    assert "get_grades" in methods
    assert "get_notice_document_url" in methods
    assert "authorized" not in methods
    assert all(not name.startswith("_") for name in methods)
