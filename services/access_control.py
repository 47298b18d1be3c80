"""
access_control.py
-----------------
Centralized access control for the file explorer.
Every route goes through AccessGate.check() before touching the file system.
"""
import logging
from dataclasses import dataclass
from typing import Optional

import jwt

from models import ACTIONS, Permissions, Root
from services.identity import extract_email

logger = logging.getLogger(__name__)

ALLOW = 'allow'
UNAUTHENTICATED = 'unauthenticated'
FORBIDDEN = 'forbidden'


@dataclass
class AccessDecision:
    outcome: str
    email: Optional[str] = None
    root: Optional[Root] = None
    permissions: Optional[Permissions] = None
    reason: Optional[str] = None

    @property
    def allowed(self):
        return self.outcome == ALLOW


def decode_bearer_token(auth_header, secret, algorithms=('HS256',), issuer=None):
    """
    Decodes 'Bearer <jwt>' into its claims.
    Returns (claims, None), (None, None) when there is no bearer token,
    or (None, reason) when the token is present but invalid.
    """
    if not auth_header or not auth_header.startswith('Bearer '):
        return None, None
    if not secret:
        return None, None

    token = auth_header[len('Bearer '):].strip()
    options = {'require': ['exp']}
    try:
        claims = jwt.decode(token, secret, algorithms=list(algorithms),
                            issuer=issuer, options=options)
    except jwt.InvalidTokenError as e:
        logger.warning(f"Rejected bearer token: {e}")
        return None, 'invalid_token'
    return claims, None


class AccessGate:
    """
    Two sequential gates: authentication (is there an email?) then
    authorization (does the email's level on the root allow the action?).
    """

    def __init__(self, store, resolver, no_auth_required=False):
        self.store = store
        self.resolver = resolver
        self.no_auth_required = no_auth_required

    def _select_root(self, root_id, session_root_id):
        """Returns (root, reason). Explicit ids must exist; remembered ids may be stale."""
        if root_id:
            root = self.store.root_by_id(root_id)
            return (root, None) if root else (None, 'unknown_root')
        if session_root_id:
            root = self.store.root_by_id(session_root_id)
            if root is not None:
                return root, None
        root = self.store.default_root()
        return (root, None) if root else (None, 'no_root')

    def authenticate(self, identity, session_email=None):
        """Returns the normalized email or None."""
        return extract_email(identity, session_email)

    def check(self, identity, action, root_id=None, session_email=None,
              session_root_id=None, token_error=None) -> AccessDecision:
        if token_error and not self.no_auth_required:
            return AccessDecision(UNAUTHENTICATED, reason=token_error)
        email = self.authenticate(identity, session_email)
        if email is None and not self.no_auth_required:
            return AccessDecision(UNAUTHENTICATED, reason='no_identity')

        root, reason = self._select_root(root_id, session_root_id)
        if root is None:
            logger.warning(f"Access denied for {email}: {reason} ({root_id!r})")
            return AccessDecision(FORBIDDEN, email=email, reason=reason)

        if self.no_auth_required:
            perms = Permissions(level=None, root_id=root.id, can_view=True,
                                can_download=True, can_upload=True, can_delete=True)
            if action not in ACTIONS:
                return AccessDecision(FORBIDDEN, email, root, perms, 'action_denied')
            return AccessDecision(ALLOW, email, root, perms)

        perms = self.resolver.permissions(email, root.id)
        if not perms.allows(action):
            logger.warning(f"Access denied: {email} may not {action} on {root.id} (level={perms.level})")
            return AccessDecision(FORBIDDEN, email, root, perms, 'action_denied')

        return AccessDecision(ALLOW, email, root, perms)
