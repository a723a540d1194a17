"""ClasseViva client.

Async client for the ClasseViva (Spaggiari) school-management REST API that
caches the login session on disk, renews it automatically and exposes
grades, absences, agenda, documents and the other data endpoints.
"""

from .enums import App, Region, UserType
from .restapi import ClassevivaClient

__version__ = "0.1.0"

__all__ = ["App", "ClassevivaClient", "Region", "UserType"]
