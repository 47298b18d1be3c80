"""
authorization_store.py
----------------------
Owns the authorization aggregate (root paths, rules, permission levels) and
its JSON file. Loading never raises: an unusable file installs the built-in
deny-by-default aggregate instead.
"""
import json
import logging
import os
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from models import (AuthorizationConfig, PermissionLevel, Root, Rule,
                    default_authorization_config)

logger = logging.getLogger(__name__)


class ConfigUnavailable(Exception):
    """The authorization file could not be read or parsed."""


def normalize_email(email):
    return str(email).strip().lower()


def parse_config(data) -> AuthorizationConfig:
    """
    Builds an AuthorizationConfig from the decoded JSON document.
    Raises ConfigUnavailable on structural problems.
    """
    if not isinstance(data, dict):
        raise ConfigUnavailable('top-level JSON value must be an object')
    auth = data.get('authorization')
    if not isinstance(auth, dict):
        raise ConfigUnavailable("missing 'authorization' block")

    try:
        roots = [Root.from_dict(r) for r in data.get('rootPaths') or []]
        levels = {name: PermissionLevel.from_dict(name, values)
                  for name, values in (auth.get('permissions') or {}).items()}
    except (KeyError, TypeError, AttributeError) as e:
        raise ConfigUnavailable(f'malformed root path or permission entry: {e}')

    seen = set()
    for root in roots:
        if root.id in seen:
            raise ConfigUnavailable(f'duplicate root path id: {root.id}')
        seen.add(root.id)

    default_level = auth.get('defaultPermission') or 'denied'
    if default_level not in levels:
        raise ConfigUnavailable(f'defaultPermission {default_level!r} is not a defined level')

    rules = []
    emails = set()
    for raw in auth.get('rules') or []:
        if not isinstance(raw, dict) or not raw.get('email'):
            logger.warning(f"Skipping rule without email: {raw!r}")
            continue
        email = normalize_email(raw['email'])
        if email in emails:
            logger.warning(f"Duplicate rule for {email}; keeping the first one")
            continue
        emails.add(email)

        perms = raw.get('rootPathPermissions')
        if perms is None and raw.get('permission'):
            # Legacy flat rule: one level for every root
            perms = {root.id: raw['permission'] for root in roots}
        perms = {str(k): str(v) for k, v in (perms or {}).items()}
        for root_id, level in list(perms.items()):
            if level not in levels:
                # Treated as absent so the default level applies
                logger.warning(f"Rule {email} references unknown level {level!r} on {root_id}; ignoring it")
                del perms[root_id]
        rules.append(Rule(email, perms, str(raw.get('description') or '')))

    metadata = data.get('metadata') if isinstance(data.get('metadata'), dict) else {}
    return AuthorizationConfig(roots=roots, rules=rules, permission_levels=levels,
                               default_permission_level=default_level, metadata=dict(metadata))


def read_config(path) -> Tuple[Optional[AuthorizationConfig], Optional[ConfigUnavailable]]:
    """Returns (config, None) on success or (None, error)."""
    if not os.path.exists(path):
        return None, ConfigUnavailable(f'authorization config not found: {path}')
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        return parse_config(data), None
    except (OSError, ValueError) as e:
        return None, ConfigUnavailable(f'cannot read {path}: {e}')
    except ConfigUnavailable as e:
        return None, e


class AuthorizationStore:
    """Single owner of the authorization aggregate for one application."""

    def __init__(self, config_path, fallback_root_path='./data'):
        self.config_path = config_path
        self.fallback_root_path = fallback_root_path
        self._config: Optional[AuthorizationConfig] = None

    # ── loading ──────────────────────────────────

    def load(self):
        config, error = read_config(self.config_path)
        if error is not None:
            logger.warning(f"{error}; using built-in default authorization config")
            config = default_authorization_config(self.fallback_root_path)
        else:
            logger.info(f"Authorization config loaded from {self.config_path} "
                        f"({len(config.rules)} rules, {len(config.roots)} root paths)")
        # Single assignment so readers never see a half-built aggregate
        self._config = config
        return config

    reload = load

    @property
    def config(self) -> AuthorizationConfig:
        if self._config is None:
            self.load()
        return self._config

    # ── roots ────────────────────────────────────

    def list_roots(self) -> List[Root]:
        return list(self.config.roots)

    def default_root(self) -> Optional[Root]:
        roots = self.config.roots
        for root in roots:
            if root.is_default:
                return root
        return roots[0] if roots else None

    def root_by_id(self, root_id) -> Optional[Root]:
        for root in self.config.roots:
            if root.id == root_id:
                return root
        return None

    # ── levels ───────────────────────────────────

    @property
    def default_permission_level(self):
        return self.config.default_permission_level

    def permission_level(self, name) -> Optional[PermissionLevel]:
        return self.config.permission_levels.get(name)

    # ── rules ────────────────────────────────────

    def find_rule(self, email) -> Optional[Rule]:
        if not email:
            return None
        wanted = normalize_email(email)
        for rule in self.config.rules:
            if rule.email == wanted:
                return rule
        return None

    def all_rules(self) -> List[Rule]:
        return list(self.config.rules)

    def upsert_root_permission(self, email, root_id, level, description=None):
        """
        Grants `level` on `root_id` to `email`, creating the rule if needed.
        Returns True if the file was written. The in-memory change is kept either way.
        """
        rule = self.find_rule(email)
        if rule is None:
            rule = Rule(normalize_email(email))
            self.config.rules.append(rule)
            logger.info(f"Permission added: {rule.email} -> {root_id}={level}")
        else:
            logger.info(f"Permission updated: {rule.email} -> {root_id}={level}")
        rule.root_permissions[root_id] = level
        if description is not None:
            rule.description = description
        return self.save()

    def remove_rule(self, email):
        """Returns True if a rule was removed (whether or not it was persisted)."""
        wanted = normalize_email(email)
        rules = self.config.rules
        remaining = [r for r in rules if r.email != wanted]
        if len(remaining) == len(rules):
            return False
        self.config.rules = remaining
        logger.info(f"Permission rule removed: {wanted}")
        self.save()
        return True

    # ── persistence ──────────────────────────────

    def save(self):
        config = self.config
        config.metadata['lastUpdated'] = datetime.now(timezone.utc).isoformat()
        try:
            directory = os.path.dirname(os.path.abspath(self.config_path))
            os.makedirs(directory, exist_ok=True)
            with open(self.config_path, 'w', encoding='utf-8') as f:
                json.dump(config.to_dict(), f, indent=2, ensure_ascii=False)
        except OSError as e:
            logger.error(f"Failed to save authorization config to {self.config_path}: {e}")
            return False
        logger.info(f"Authorization config saved to {self.config_path}")
        return True
