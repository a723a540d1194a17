"""Raw API response types for the ClasseViva REST API.

Pydantic models for the few payloads the client inspects itself (the login
response and card records). Catalogue endpoints return the decoded JSON
unchanged, so they have no model here.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from ..enums import UserType, user_type_from_code


class LoginResponse(BaseModel):
    """Body of a successful ``POST /auth/login/``.

    This is also the shape of the cached session record. Unknown fields are
    kept so the record can be written back to disk unchanged.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    token: str = ""
    expire: datetime | None = None
    first_name: str | None = Field(None, alias="firstName")
    last_name: str | None = Field(None, alias="lastName")
    ident: str = ""


class Card(BaseModel):
    """Student card record from ``/card`` or ``/cards``."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    ident: str | None = None
    usr_type: str | None = Field(None, alias="usrType")
    first_name: str | None = Field(None, alias="firstName")
    last_name: str | None = Field(None, alias="lastName")

    # School descriptor
    sch_name: str | None = Field(None, alias="schName")
    sch_dedication: str | None = Field(None, alias="schDedication")
    sch_city: str | None = Field(None, alias="schCity")
    sch_prov: str | None = Field(None, alias="schProv")
    sch_code: str | None = Field(None, alias="schCode")


class School(BaseModel):
    name: str | None = None
    dedication: str | None = None
    city: str | None = None
    province: str | None = None
    code: str | None = None


class UserProfile(BaseModel):
    """Profile of the logged in account.

    Login fills the identity fields; ``type`` and ``school`` stay empty until
    a card has been fetched.
    """

    name: str | None = None
    surname: str | None = None
    id: str | None = None
    ident: str | None = None
    type: UserType | None = None
    school: School = Field(default_factory=School)

    def apply_card(self, card: Card) -> None:
        """Copy the school descriptor and the account type from a card."""
        self.type = user_type_from_code(card.usr_type)
        self.school = School(
            name=card.sch_name,
            dedication=card.sch_dedication,
            city=card.sch_city,
            province=card.sch_prov,
            code=card.sch_code,
        )

