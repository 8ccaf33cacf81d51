from __future__ import annotations

from typing import Protocol, Union

from .errors import CredentialMissing
from .settings import PipelineSettings
from .types import Credentials


class CredentialStore(Protocol):
    def course_credentials(self, course_id: int, user_id: int) -> Union[dict, None]: ...


def resolve_credentials(
    store: Union[CredentialStore, None],
    site: PipelineSettings,
    course_id: Union[int, None] = None,
    user_id: Union[int, None] = None,
) -> Union[Credentials, None]:
    """First non-empty secret wins: this user's course setting, then the site default.

    The two tiers are never merged for the secret. The model is resolved
    the same way on its own, ending at the provider default.
    """
    course = None
    if store is not None and course_id is not None and user_id is not None:
        course = store.course_credentials(course_id, user_id) or {}

    course_model = (course or {}).get("model") or ""
    model = course_model or site.resolved_model

    if course and course.get("secret"):
        return Credentials(secret=course["secret"], model=model, scope_level="course")
    if site.secret:
        return Credentials(secret=site.secret, model=model, scope_level="site")
    return None


def resolve_settings(
    store: Union[CredentialStore, None],
    site: PipelineSettings,
    course_id: Union[int, None] = None,
    user_id: Union[int, None] = None,
) -> PipelineSettings:
    """Site settings with the resolved credentials applied.

    Raises ``CredentialMissing`` before anything touches the network.
    """
    if site.provider == "mock":
        return site
    creds = resolve_credentials(store, site, course_id, user_id)
    if creds is None:
        raise CredentialMissing(course_id)
    return site.with_overrides(secret=creds.secret, model=creds.model, scope_level=creds.scope_level)
