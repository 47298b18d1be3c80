"""
identity.py
-----------
Extracts one canonical e-mail from the identity objects that the different
login providers leave behind. Each known provider shape is one entry in
IDENTITY_SHAPES; the first shape that yields a value wins.
"""
from typing import Callable, List, Mapping, Optional, Tuple


def _field(obj, name):
    if isinstance(obj, Mapping):
        return obj.get(name)
    return getattr(obj, name, None)


def _clean(value) -> Optional[str]:
    if not isinstance(value, str):
        return None
    value = value.strip().lower()
    return value or None


def _oidc_profile(identity):
    # Hydra / generic OIDC: {'profile': {'email': ...}}
    profile = _field(identity, 'profile')
    return _field(profile, 'email') if profile is not None else None


def _direct_email(identity):
    # GitLab, GitHub with a public email, bearer token claims
    return _field(identity, 'email')


def _username(identity):
    # Providers without an email claim
    return _field(identity, 'username')


IDENTITY_SHAPES: List[Tuple[str, Callable]] = [
    ('oidc_profile', _oidc_profile),
    ('email', _direct_email),
    ('username', _username),
]


def extract_email(identity, session_email=None) -> Optional[str]:
    """
    Returns the lower-cased email for `identity`, falling back to `session_email`.
    Returns None when nothing usable is found.
    """
    if identity is not None:
        for _name, extract in IDENTITY_SHAPES:
            email = _clean(extract(identity))
            if email is not None:
                return email
    return _clean(session_email)
