"""
permission_resolver.py
----------------------
Turns (email, root id) into an effective permission level and capability set.
Anything not explicitly granted resolves to the configured default level.
"""
import logging
from typing import List

from models import ACTIONS, DENIED, AccessibleRoot, Permissions

logger = logging.getLogger(__name__)


class PermissionResolver:

    def __init__(self, store):
        self.store = store

    def permission_level(self, email, root_id):
        """The rule's level for root_id if it names a defined level, else the default."""
        rule = self.store.find_rule(email)
        if rule is not None and root_id in rule.root_permissions:
            level_name = rule.root_permissions[root_id]
            if self.store.permission_level(level_name) is not None:
                return level_name
            logger.warning(f"Undefined permission level {level_name!r} for {email} on {root_id}; "
                           f"using the default level")
        return self.store.default_permission_level

    def permissions(self, email, root_id=None) -> Permissions:
        """
        Expands the level for (email, root_id) into capabilities.
        With no root_id the default root is used; with no roots at all,
        everything is denied.
        """
        if root_id is None:
            root = self.store.default_root()
            if root is None:
                return Permissions(level=DENIED, root_id=None)
            root_id = root.id

        level_name = self.permission_level(email, root_id)
        level = self.store.permission_level(level_name)
        if level is None:
            logger.warning(f"Undefined permission level {level_name!r} for {email} on {root_id}; denying")
            return Permissions(level=level_name, root_id=root_id)

        return Permissions(
            level=level_name,
            root_id=root_id,
            can_view=level.can_view,
            can_download=level.can_download,
            can_upload=level.can_upload,
            can_delete=level.can_delete,
        )

    def can_perform(self, email, action, root_id=None):
        if action not in ACTIONS:
            logger.warning(f"Unknown action requested: {action!r}")
            return False
        allowed = self.permissions(email, root_id).allows(action)
        logger.debug(f"{email} {action} on {root_id or '<default>'}: {allowed}")
        return allowed

    def can_access(self, email, root_id=None):
        return self.can_perform(email, 'view', root_id)

    def accessible_roots(self, email) -> List[AccessibleRoot]:
        """
        Roots the email's rule explicitly grants a viewable level on.
        The default level never adds roots; no rule means no roots.
        """
        rule = self.store.find_rule(email)
        if rule is None:
            return []
        result = []
        for root in self.store.list_roots():
            level_name = rule.root_permissions.get(root.id)
            level = self.store.permission_level(level_name) if level_name else None
            if level is None or level_name == DENIED or not level.can_view:
                continue
            result.append(AccessibleRoot(root, level_name))
        return result
