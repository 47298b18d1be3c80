from dataclasses import dataclass, field
from typing import Dict, List, Optional

DENIED = 'denied'

ACTIONS = ('view', 'download', 'upload', 'delete')


@dataclass
class Root:
    """A named storage location that file operations are confined to."""
    id: str
    name: str
    path: str  # absolute or relative to the working directory
    description: str = ''
    is_default: bool = False

    @classmethod
    def from_dict(cls, data):
        root_id = str(data['id'])
        return cls(
            id=root_id,
            name=str(data.get('name') or root_id),
            path=str(data['path']),
            description=str(data.get('description') or ''),
            is_default=bool(data.get('isDefault', False)),
        )

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'path': self.path,
            'description': self.description,
            'isDefault': self.is_default,
        }


@dataclass
class PermissionLevel:
    """A named bundle of the four file capabilities."""
    name: str
    description: str = ''
    can_view: bool = False
    can_download: bool = False
    can_upload: bool = False
    can_delete: bool = False

    @classmethod
    def from_dict(cls, name, data):
        return cls(
            name=name,
            description=str(data.get('description') or ''),
            can_view=bool(data.get('canView', False)),
            can_download=bool(data.get('canDownload', False)),
            can_upload=bool(data.get('canUpload', False)),
            can_delete=bool(data.get('canDelete', False)),
        )

    def to_dict(self):
        return {
            'description': self.description,
            'canView': self.can_view,
            'canDownload': self.can_download,
            'canUpload': self.can_upload,
            'canDelete': self.can_delete,
        }


@dataclass
class Rule:
    """Per-email mapping from root id to permission level name."""
    email: str  # always stored lower-cased
    root_permissions: Dict[str, str] = field(default_factory=dict)
    description: str = ''

    def to_dict(self):
        return {
            'email': self.email,
            'rootPathPermissions': dict(self.root_permissions),
            'description': self.description,
        }


@dataclass
class AuthorizationConfig:
    roots: List[Root] = field(default_factory=list)
    rules: List[Rule] = field(default_factory=list)
    permission_levels: Dict[str, PermissionLevel] = field(default_factory=dict)
    default_permission_level: str = DENIED
    metadata: Dict[str, str] = field(default_factory=dict)

    def to_dict(self):
        return {
            'rootPaths': [r.to_dict() for r in self.roots],
            'authorization': {
                'rules': [r.to_dict() for r in self.rules],
                'defaultPermission': self.default_permission_level,
                'permissions': {name: level.to_dict()
                                for name, level in self.permission_levels.items()},
            },
            'metadata': dict(self.metadata),
        }


@dataclass
class Permissions:
    """Effective capabilities of one email on one root."""
    level: Optional[str]
    root_id: Optional[str]
    can_view: bool = False
    can_download: bool = False
    can_upload: bool = False
    can_delete: bool = False

    def allows(self, action):
        """Returns False for any action name outside ACTIONS."""
        if action not in ACTIONS:
            return False
        return getattr(self, f'can_{action}')

    def to_dict(self):
        return {
            'level': self.level,
            'rootId': self.root_id,
            'canView': self.can_view,
            'canDownload': self.can_download,
            'canUpload': self.can_upload,
            'canDelete': self.can_delete,
        }


@dataclass
class AccessibleRoot:
    root: Root
    permission: str

    def to_dict(self):
        data = self.root.to_dict()
        data['permission'] = self.permission
        return data


def default_permission_levels() -> Dict[str, PermissionLevel]:
    # 'readonly' grants upload and only withholds delete
    return {
        'full': PermissionLevel('full', 'Full access', True, True, True, True),
        'readonly': PermissionLevel('readonly', 'No delete', True, True, True, False),
        DENIED: PermissionLevel(DENIED, 'No access', False, False, False, False),
    }


def default_authorization_config(root_path='./data') -> AuthorizationConfig:
    """
    The aggregate installed when the authorization file is missing or unreadable.
    Unknown emails resolve to 'denied'.
    """
    return AuthorizationConfig(
        roots=[Root(id='main', name='main', path=root_path,
                    description='Default storage', is_default=True)],
        rules=[
            Rule('admin@example.com', {'main': 'full'}, 'System administrator'),
            Rule('testuser@example.com', {'main': 'full'}, 'Test user'),
        ],
        permission_levels=default_permission_levels(),
        default_permission_level=DENIED,
    )
