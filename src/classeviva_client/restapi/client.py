"""ClasseViva REST API client.

Provides an async HTTP client with credential login, a durable session
cache, automatic session renewal and the fixed catalogue of data endpoints.
Every public call degrades to a logged message and a default value instead
of raising.
"""

import asyncio
import json
import re
from datetime import date, datetime
from pathlib import Path
from typing import Any

import httpx
import pydantic
import structlog
from structlog.typing import FilteringBoundLogger

from .. import enums
from ..cache import SessionCache, is_future
from . import endpoints
from .endpoints import Audience, Endpoint, IdKind, format_date
from .types import Card, LoginResponse, UserProfile

logger = structlog.get_logger(__name__)

DEFAULT_TIMEOUT = 30.0

# Sessions are renewed well before the server-side expiry.
RENEWAL_INTERVAL = 90 * 60.0

API_KEY = "Tg1NWEwNGIgIC0K"


def remove_letters(value: str) -> str:
    """Strip every non-digit character from ``value``."""
    return re.sub(r"\D", "", value)


def describe_error(data: dict[str, Any]) -> str:
    """Build a short description of an error envelope.

    Prefers the human readable ``message`` and falls back to the last path
    segment of ``error`` (e.g. ``"auth/authentication failed"``).
    """
    if data.get("message"):
        return str(data["message"])
    return str(data.get("error", "")).split("/")[-1]


class ClassevivaClient:
    """HTTP client for the ClasseViva REST API.

    Owns one set of credentials, one bearer token and one user profile.
    Calls are expected to be awaited one at a time; the only background
    activity is the renewal task started by a successful login.

    Can be used as an async context manager for automatic cleanup.
    """

    def __init__(  # noqa: PLR0913
        self,
        username: str = "",
        password: str = "",
        region: enums.Region | str = enums.Region.ITALY,
        app: enums.App | str = enums.App.STUDENTS,
        cache_file: str | Path | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        renewal_interval: float = RENEWAL_INTERVAL,
        transport: httpx.AsyncBaseTransport | None = None,
        log: FilteringBoundLogger | None = None,
    ):
        """Initialize the client.

        Args:
            username: Default ClasseViva username.
            password: Default ClasseViva password.
            region: Country instance to talk to (default: Italy).
            app: Application identifier sent in the User-Agent header.
            cache_file: Path of the session cache (default: ``cvv.json`` in
                the package directory).
            timeout: Request timeout in seconds (default: 30.0).
            renewal_interval: Seconds between automatic session renewals.
            transport: Optional httpx transport, mainly for tests.
            log: structlog logger receiving every status message (default:
                the module logger).

        Raises:
            ValueError: If region is unknown or timeout is not positive.
        """
        try:
            self.region = enums.Region(region)
        except ValueError:
            msg = f"Unknown region: {region}"
            raise ValueError(msg) from None
        if timeout <= 0:
            msg = "timeout must be positive"
            raise ValueError(msg)

        self.username = username
        self._password = password
        self._credentials: tuple[str, str] | None = None
        self._token = ""

        self.host = enums.HOSTS[self.region]
        self.base_url = f"https://{self.host}/rest/v1"
        self.app = app.value if isinstance(app, enums.App) else app
        self._log = log if log is not None else logger
        self._cache = SessionCache(cache_file, log=self._log)
        self._timeout = timeout
        self._renewal_interval = renewal_interval
        self._transport = transport
        self._http: httpx.AsyncClient | None = None

        self.expiration: datetime | None = None
        self.user = UserProfile()
        self.renewal_task: asyncio.Task | None = None

        self._headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": f"{self.app} iOS/15.4",
            "Z-Dev-Apikey": API_KEY,
            "Z-If-None-Match": "",
        }

    @property
    def authorized(self) -> bool:
        """True while a token is held and its expiration lies in the future."""
        return bool(self._token) and is_future(self.expiration)

    @property
    def cache_file(self) -> Path:
        return self._cache.path

    @property
    def client(self) -> httpx.AsyncClient:
        """Get or create the underlying httpx client."""
        if self._http is None or self._http.is_closed:
            self._http = httpx.AsyncClient(
                timeout=self._timeout,
                transport=self._transport,
            )
        return self._http

    async def __aenter__(self):
        """Enter async context manager."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Exit async context manager and cleanup resources."""
        await self.aclose()

    async def aclose(self) -> None:
        """Cancel the pending renewal and close the HTTP client if open."""
        self._cancel_renewal()
        if self._http is not None and not self._http.is_closed:
            await self._http.aclose()

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    async def login(
        self,
        username: str | None = None,
        password: str | None = None,
    ) -> UserProfile | None:
        """Log in to ClasseViva.

        Reuses a still-valid cached session when available, otherwise posts
        the credentials to the authentication endpoint. A successful login
        schedules the automatic renewal.

        Args:
            username: ClasseViva username (defaults to the constructor's).
            password: ClasseViva password (defaults to the constructor's).

        Returns:
            The user profile, or None if already logged in or login failed.
        """
        if self.authorized:
            self._log.warning("Already logged in")
            return None

        username = username or self.username
        password = password or self._password
        if not username or not password:
            self._log.warning("Username or password not set")
            return None

        cached = self._cache.load()
        if cached is not None:
            self._log.debug("Using cached session", path=str(self._cache.path))
            self._update_session(cached)
        else:
            result = await self._request_login(username, password)
            if result is None:
                self._clear_session()
                return None
            payload, session = result
            self._update_session(session)
            self._cache.save(payload)

        if not self.authorized:
            self._log.error("Failed to login")
            return None

        self._credentials = (username, password)
        self._log.info(
            "Successfully logged in",
            name=self.user.name,
            surname=self.user.surname,
        )
        self._schedule_renewal()
        return self.user

    def logout(self) -> bool:
        """Log out and forget the session.

        Returns:
            True if a session was cleared, False if already logged out.
        """
        self._cancel_renewal()
        if not self.authorized:
            self._log.warning("Already logged out")
            return False

        self._clear_session()
        self._log.info("Successfully logged out")
        return True

    async def _request_login(
        self,
        username: str,
        password: str,
    ) -> tuple[dict[str, Any], LoginResponse] | None:
        """Post credentials and return the raw and parsed response on success.

        Never raises; every failure is logged and yields None.
        """
        try:
            response = await self.client.post(
                f"{self.base_url}/auth/login/",
                headers=self._headers,
                json={"uid": username, "pass": password},
            )
            data = response.json()
        except httpx.HTTPError:
            self._log.exception("Login request failed")
            return None
        except ValueError:
            self._log.error(
                "Could not parse JSON while logging in",
                status_code=response.status_code,
            )
            return None

        if isinstance(data, dict) and data.get("error"):
            self._log.error(
                "An error happened",
                error=describe_error(data),
                status_code=data.get("statusCode"),
            )
            return None

        if response.status_code != 200:  # noqa: PLR2004
            self._log.error(
                "The server returned a status code other than 200",
                status_code=response.status_code,
            )
            return None

        try:
            return data, LoginResponse.model_validate(data)
        except pydantic.ValidationError:
            self._log.error("Unexpected login response")
            return None

    def _update_session(self, data: LoginResponse | None) -> None:
        """Adopt a login response into the session and the profile."""
        if data is None:
            self.logout()
            return

        self._token = data.token
        self.expiration = data.expire
        if self.user.ident != data.ident:
            self.user = UserProfile()
        # Same account: school and type from an earlier card fetch stay put
        self.user.name = data.first_name
        self.user.surname = data.last_name
        self.user.id = remove_letters(data.ident)
        self.user.ident = data.ident

    def _clear_session(self) -> None:
        self._token = ""
        self.expiration: datetime | None = None
        self.user = UserProfile()

    def _schedule_renewal(self) -> None:
        self._cancel_renewal()
        self.renewal_task = asyncio.create_task(self._renew_after(self._renewal_interval))

    def _cancel_renewal(self) -> None:
        task, self.renewal_task = self.renewal_task, None
        if task is not None and not task.done():
            task.cancel()

    async def _renew_after(self, delay: float) -> None:
        """Sleep, then log in again with the stored credentials.

        Bypasses both the already-logged-in check and the session cache. A
        failed renewal is logged and leaves the current session untouched.
        """
        await asyncio.sleep(delay)
        if self._credentials is None:
            return

        result = await self._request_login(*self._credentials)
        if result is None:
            self._log.error("Session renewal failed")
            return

        payload, session = result
        if not is_future(session.expire):
            self._log.error("Session renewal failed", reason="expired token received")
            return

        self._update_session(session)
        self._cache.save(payload)
        self._log.info("Session renewed", expire=str(self.expiration))
        self.renewal_task = None
        self._schedule_renewal()

    # ------------------------------------------------------------------
    # Request helpers
    # ------------------------------------------------------------------

    def _auth_headers(
        self,
        token: str | None = None,
        extra: dict[str, str] | None = None,
    ) -> dict[str, str]:
        headers = dict(self._headers)
        headers["Z-Auth-Token"] = token if token is not None else self._token
        headers.update(extra or {})
        return headers

    async def _fetch(  # noqa: PLR0913
        self,
        path: str = "/",
        method: str = "GET",
        audience: Audience = "students",
        body: Any = None,
        as_json: bool = True,
        id_kind: IdKind = "user_id",
        headers: dict[str, str] | None = None,
    ) -> Any:
        """Make an authenticated request to a user-scoped endpoint.

        Args:
            path: Path below ``/{audience}/{id}`` (e.g. "/grades2").
            method: HTTP method.
            audience: URL namespace: students, parents or users.
            body: Request body; dicts are sent as JSON text. Ignored for GET.
            as_json: Decode the response as JSON, otherwise return raw bytes.
            id_kind: Interpolate the numeric id or the full identifier.
            headers: Extra headers layered over the defaults.

        Returns:
            Decoded payload, or None on any failure (already logged).
        """
        if not self.authorized:
            self._log.warning("Not logged in")
            return None

        user_id = self.user.id if id_kind == "user_id" else self.user.ident
        url = f"{self.base_url}/{audience}/{user_id}{path}"
        method = method.upper()

        content = None
        if body is not None and method != "GET":
            content = body if isinstance(body, str | bytes) else json.dumps(body)

        self._log.debug("Making API request", method=method, path=path, audience=audience)
        try:
            response = await self.client.request(
                method,
                url,
                headers=self._auth_headers(extra=headers),
                content=content,
            )
            data = response.json() if as_json else response.content
        except httpx.HTTPError:
            self._log.exception("API request failed", method=method, path=path)
            return None
        except ValueError:
            self._log.error(
                "Could not parse JSON response",
                path=path,
                status_code=response.status_code,
            )
            return None

        if isinstance(data, dict) and data.get("error"):
            self._log.error(
                "An error happened",
                error=describe_error(data),
                status_code=data.get("statusCode"),
            )
            return None

        if response.status_code != 200:  # noqa: PLR2004
            self._log.error(
                "The server returned a status different from 200",
                path=path,
                status_code=response.status_code,
            )
            return None

        return data

    async def _call(self, endpoint: Endpoint, body: Any = None, **params: Any) -> Any:
        """Run a catalogue entry through :meth:`_fetch` and unwrap its payload."""
        data = await self._fetch(
            endpoint.format_path(**params),
            method=endpoint.method,
            audience=endpoint.audience,
            body=body,
            as_json=endpoint.json,
            id_kind=endpoint.id_kind,
            headers=endpoint.headers,
        )
        return endpoint.unwrap(data)

    async def _get_json(self, url: str, what: str, token: str | None = None) -> Any:
        """GET an absolute URL with the auth header and decode JSON.

        Used by the calls that live outside the user-scoped namespace.
        """
        try:
            response = await self.client.get(url, headers=self._auth_headers(token))
            return response.json()
        except httpx.HTTPError:
            self._log.exception("API request failed", url=url)
        except ValueError:
            self._log.error("Could not parse JSON response", resource=what)
        return None

    # ------------------------------------------------------------------
    # Cards and profile
    # ------------------------------------------------------------------

    async def get_cards(self) -> list[dict[str, Any]]:
        """Get the student's cards and refresh the profile from the first one."""
        cards = await self._call(endpoints.CARDS)
        if cards:
            self._apply_card(cards[0])
        return cards

    async def get_card(self) -> dict[str, Any]:
        """Get the student's card and refresh the profile from it."""
        card = await self._call(endpoints.CARD)
        if card:
            self._apply_card(card)
        return card

    def _apply_card(self, raw: dict[str, Any]) -> None:
        try:
            card = Card.model_validate(raw)
        except pydantic.ValidationError:
            self._log.warning("Ignoring malformed card")
            return
        self.user.apply_card(card)

    # ------------------------------------------------------------------
    # Students endpoints
    # ------------------------------------------------------------------

    async def get_grades(self) -> list[dict[str, Any]]:
        return await self._call(endpoints.GRADES)

    async def get_absences(self) -> list[dict[str, Any]]:
        return await self._call(endpoints.ABSENCES)

    async def get_agenda(
        self,
        filter: str = "all",  # noqa: A002
        start: date | None = None,
        end: date | None = None,
    ) -> list[dict[str, Any]]:
        """Get agenda events between two dates.

        Args:
            filter: "all", "homework" or "other".
            start: First day (defaults to today).
            end: Last day (defaults to today).

        Returns:
            Agenda events, or an empty list for an invalid filter.
        """
        code = endpoints.AGENDA_FILTERS.get(filter)
        if code is None:
            self._log.warning("Invalid filter", filter=filter)
            return []
        return await self._call(
            endpoints.AGENDA,
            code=code,
            start=format_date(start),
            end=format_date(end),
        )

    async def get_documents(self) -> dict[str, Any]:
        return await self._call(endpoints.DOCUMENTS)

    async def get_noticeboard(self) -> list[dict[str, Any]]:
        return await self._call(endpoints.NOTICEBOARD)

    async def get_school_books(self) -> list[dict[str, Any]]:
        return await self._call(endpoints.SCHOOL_BOOKS)

    async def get_calendar(self) -> list[dict[str, Any]]:
        return await self._call(endpoints.CALENDAR)

    async def get_lessons(
        self,
        today: bool = True,
        start: date | None = None,
        end: date | None = None,
    ) -> list[dict[str, Any]]:
        """Get today's lessons, or the lessons between two dates if today is False."""
        if today:
            return await self._call(endpoints.LESSONS_TODAY)
        return await self._call(
            endpoints.LESSONS,
            start=format_date(start),
            end=format_date(end),
        )

    async def get_notes(self) -> dict[str, Any]:
        return await self._call(endpoints.NOTES)

    async def get_periods(self) -> list[dict[str, Any]]:
        return await self._call(endpoints.PERIODS)

    async def get_subjects(self) -> list[dict[str, Any]]:
        return await self._call(endpoints.SUBJECTS)

    async def get_didactics(self) -> list[dict[str, Any]]:
        return await self._call(endpoints.DIDACTICS)

    async def get_overview(
        self,
        start: date | None = None,
        end: date | None = None,
    ) -> dict[str, Any]:
        """Get the overview (lessons, events, grades, notes) of a date range."""
        return await self._call(
            endpoints.OVERVIEW,
            start=format_date(start),
            end=format_date(end),
        )

    async def check_document(self, hash: str | int) -> dict[str, Any]:  # noqa: A002
        """Check whether a document is available for download."""
        return await self._call(endpoints.CHECK_DOCUMENT, hash=hash)

    async def read_document(self, hash: str) -> bytes:  # noqa: A002
        """Download a document as raw bytes."""
        return await self._call(endpoints.READ_DOCUMENT, hash=hash)

    async def read_notice(
        self,
        event_code: str,
        notice_id: str | int,
        options: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Mark a noticeboard item as read.

        Args:
            event_code: Event code of the notice.
            notice_id: Id of the notice.
            options: Optional ``sign``, ``join`` and ``text`` flags; an
                empty object is sent when omitted.
        """
        return await self._call(
            endpoints.READ_NOTICE,
            body=options if options is not None else {},
            event_code=event_code,
            notice_id=notice_id,
        )

    # ------------------------------------------------------------------
    # Parents endpoints
    # ------------------------------------------------------------------

    async def get_parents_options(self) -> dict[str, Any]:
        return await self._call(endpoints.PARENTS_OPTIONS)

    async def get_overall_talks(self) -> list[dict[str, Any]]:
        return await self._call(endpoints.OVERALL_TALKS)

    async def get_talks(
        self,
        start: date | None = None,
        end: date | None = None,
    ) -> list[dict[str, Any]]:
        """Get the teachers' talk frames between two dates."""
        return await self._call(
            endpoints.TALKS,
            start=format_date(start),
            end=format_date(end),
        )

    async def read_talk_message(self, booking_id: str | int) -> dict[str, Any]:
        return await self._call(
            endpoints.READ_TALK_MESSAGE,
            body={"messageRead": True},
            booking_id=booking_id,
        )

    async def book_talk(
        self,
        teacher_id: str | int,
        talk_id: str | int,
        slot: str | int,
        options: dict[str, Any],
    ) -> dict[str, Any]:
        """Book a talk with a teacher.

        Args:
            teacher_id: Id of the teacher.
            talk_id: Id of the talk.
            slot: Slot number of the talk.
            options: Contact options sent as the request body.
        """
        return await self._call(
            endpoints.BOOK_TALK,
            body=options,
            teacher_id=teacher_id,
            talk_id=talk_id,
            slot=slot,
        )

    # ------------------------------------------------------------------
    # Users endpoints
    # ------------------------------------------------------------------

    async def get_terms_agreement(self) -> dict[str, Any]:
        """Get the terms agreement; empty if it has never been accepted."""
        return await self._call(endpoints.TERMS_AGREEMENT)

    async def set_terms_agreement(self, third_party: bool = False) -> dict[str, Any]:
        """Accept or refuse the third-party data collection terms."""
        return await self._call(
            endpoints.SET_TERMS_AGREEMENT,
            body={"bitmask": "1" if third_party else "0"},
        )

    # ------------------------------------------------------------------
    # Direct calls outside the user namespace
    # ------------------------------------------------------------------

    async def get_ticket(self) -> dict[str, Any] | None:
        """Get an authentication ticket."""
        if not self.authorized:
            self._log.warning("Not authorized")
            return None
        data = await self._get_json(f"{self.base_url}/auth/ticket", "ticket")
        return data if data is not None else {}

    async def get_avatar(self) -> Any:
        """Get the user avatar."""
        if not self.authorized:
            self._log.warning("Not authorized")
            return None
        data = await self._get_json(f"{self.base_url}/auth/avatar", "avatar")
        return data if data is not None else {}

    async def get_token_status(self, token: str | None = None) -> dict[str, Any] | None:
        """Get the status of a token (defaults to the session token)."""
        token = token or self._token
        if not self.authorized or not token:
            self._log.warning("Not authorized")
            return None
        data = await self._get_json(
            f"{self.base_url}/auth/status/",
            "token status",
            token=token,
        )
        return data if data is not None else {}

    async def get_contents(self, common: bool = True) -> list[dict[str, Any]] | None:
        """Get the extra contents shown in the app.

        Requires the school code, which is discovered by :meth:`get_card` or
        :meth:`get_cards`.
        """
        if not self.authorized:
            self._log.warning("Not authorized")
            return None
        if not self.user.school.code:
            self._log.warning(
                "No school code, please update using get_card() or get_cards()",
            )
            return []

        url = (
            f"https://{self.host}/gek/api/v1/{self.user.school.code}"
            f"/2021/students/contents?common={str(common).lower()}"
        )
        data = await self._get_json(url, "content")
        return data if data is not None else []

    async def get_notice_document_url(
        self,
        event_code: str,
        notice_id: str | int,
    ) -> str | None:
        """Get the download URL of a notice attachment.

        The API answers with a redirect; the target is read from the
        ``Location`` header rather than followed.
        """
        if not self.authorized:
            self._log.warning("Not authorized")
            return None

        url = (
            f"{self.base_url}/students/{self.user.ident}"
            f"/noticeboard/attach/{event_code}/{notice_id}/"
        )
        try:
            response = await self.client.get(
                url,
                headers=self._auth_headers(),
                follow_redirects=False,
            )
        except httpx.HTTPError:
            self._log.exception("API request failed", url=url)
            return ""
        return response.headers.get("Location", "")

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def get_methods(self) -> list[str]:
        """List the public methods of the client."""
        return [
            name
            for name, value in vars(type(self)).items()
            if not name.startswith("_") and callable(value)
        ]
