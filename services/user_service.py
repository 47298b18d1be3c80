"""
user_service.py
---------------
Business logic for managing users' permission rules.
Routes should call these functions instead of mutating the store directly.
"""
import re

EMAIL_RE = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')


def is_admin(email, admin_emails):
    return bool(email) and email.lower() in admin_emails


def set_root_permission(store, email, root_id, level, description=None):
    """
    Validates and stores a per-root permission for a user.
    Raises ValueError for a malformed email, unknown root or unknown level.
    Returns True if the change was written to disk.
    """
    email = (email or '').strip()
    if not EMAIL_RE.match(email):
        raise ValueError(f'Invalid email address: {email!r}')

    if store.root_by_id(root_id) is None:
        raise ValueError(f'Unknown root path: {root_id!r}')

    if store.permission_level(level) is None:
        raise ValueError(f'Invalid permission level: {level!r}')

    return store.upsert_root_permission(email, root_id, level, description)


def remove_user(store, email, current_admin_email):
    """
    Removes a user's rule entirely.
    Raises ValueError if an admin tries to remove their own rule.
    Returns True if a rule existed.
    """
    if (email or '').strip().lower() == (current_admin_email or '').lower():
        raise ValueError('You cannot remove your own permission rule.')
    return store.remove_rule(email)
