from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Mapping

import firebase_admin
from firebase_admin import auth, exceptions

from .errors import InvalidCredential, MissingCredential, UpstreamUnavailable
from .utils.logging import get_logger

logger = get_logger(__name__)

BEARER_PREFIX = "Bearer "


@dataclass(frozen=True)
class Principal:
    """The verified caller. Keyed everywhere by ``uid``, never by token."""

    uid: str
    claims: Mapping[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @property
    def email(self) -> str | None:
        return self.claims.get("email")


def extract_bearer_token(authorization: str | None) -> str:
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        raise MissingCredential()
    token = authorization[len(BEARER_PREFIX):].strip()
    if not token:
        raise MissingCredential()
    return token


class IdentityVerifier(ABC):
    @abstractmethod
    def verify(self, token: str) -> Principal:
        """Return the Principal for ``token`` or raise InvalidCredential."""


class FirebaseIdentityVerifier(IdentityVerifier):
    """Verifies Firebase ID tokens with the Admin SDK. Blocking."""

    def __init__(self, app: firebase_admin.App | None = None, check_revoked: bool = False):
        self._app = app
        self._check_revoked = check_revoked

    def verify(self, token: str) -> Principal:
        try:
            decoded = auth.verify_id_token(token, app=self._app, check_revoked=self._check_revoked)
        except auth.CertificateFetchError as exc:
            raise UpstreamUnavailable("identity provider", "could not fetch signing certificates") from exc
        except (auth.InvalidIdTokenError, auth.UserDisabledError, ValueError) as exc:
            logger.info("Token verification failed", error=str(exc))
            raise InvalidCredential() from exc
        except exceptions.FirebaseError as exc:
            raise UpstreamUnavailable("identity provider", str(exc)) from exc
        return Principal(uid=decoded["uid"], claims=decoded)
