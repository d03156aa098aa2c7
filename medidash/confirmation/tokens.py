"""
Extraction et contrôle de forme des tokens de confirmation
"""

import re
import base64
import binascii
from typing import Optional, Union
from urllib.parse import urlsplit, parse_qsl

from .models import FragmentTokenPair, OneTimeToken, ProviderRedirectError


_BASE64URL_SEGMENT = re.compile(r"^[A-Za-z0-9_-]+$")

ExtractedToken = Union[FragmentTokenPair, OneTimeToken, ProviderRedirectError]


def _params(raw: str) -> dict:
    return dict(parse_qsl(raw, keep_blank_values=False))


def extract_token(url: str) -> Optional[ExtractedToken]:
    """Extraire le token d'un lien de confirmation.

    Le fragment (convention du fournisseur d'identité) est prioritaire sur
    la query string. Une erreur renvoyée dans le fragment est remontée telle
    quelle pour être classée par le contrôleur.
    """
    parts = urlsplit(url)
    fragment = _params(parts.fragment)
    query = _params(parts.query)

    if "error" in fragment or "error_code" in fragment:
        return ProviderRedirectError(
            error=fragment.get("error", ""),
            error_code=fragment.get("error_code"),
            description=fragment.get("error_description")
        )

    access_token = fragment.get("access_token")
    refresh_token = fragment.get("refresh_token")
    if access_token and refresh_token:
        return FragmentTokenPair(
            access_token=access_token,
            refresh_token=refresh_token,
            token_type=fragment.get("type")
        )

    token = query.get("token")
    if token:
        kind = "signup" if query.get("type") == "signup" else "email"
        return OneTimeToken(token=token, kind=kind)

    return None


def _is_base64url(segment: str) -> bool:
    # Une longueur ≡ 1 (mod 4) ne peut pas être du base64
    if not _BASE64URL_SEGMENT.match(segment) or len(segment) % 4 == 1:
        return False
    try:
        base64.urlsafe_b64decode(segment + "=" * (-len(segment) % 4))
    except (binascii.Error, ValueError):
        return False
    return True


def is_valid_token_format(token: Optional[str]) -> bool:
    """Contrôle structurel d'un JWT : trois segments base64url.

    Ne vérifie ni la signature ni l'authenticité du token.
    """
    if not token:
        return False
    segments = token.split(".")
    if len(segments) != 3:
        return False
    return all(_is_base64url(segment) for segment in segments)


def is_valid_token_length(token: str, min_length: int = 100, max_length: int = 2000) -> bool:
    """Longueur strictement comprise entre les bornes"""
    return min_length < len(token) < max_length


def strip_token(url: str, path: str) -> str:
    """URL visible après confirmation : chemin nu, sans query ni fragment"""
    parts = urlsplit(url)
    if parts.scheme and parts.netloc:
        return f"{parts.scheme}://{parts.netloc}{path}"
    return path
