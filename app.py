import logging
from functools import wraps

from flask import (Blueprint, Flask, current_app, g, jsonify, request,
                   send_file, session)

from config import Config
from services import file_service
from services.access_control import (FORBIDDEN, UNAUTHENTICATED, AccessGate,
                                     decode_bearer_token)
from services.authorization_store import AuthorizationStore
from services.file_service import FileOperationError
from services.initialization import ensure_storage_structure
from services.permission_resolver import PermissionResolver
from services.user_service import is_admin, remove_user, set_root_permission
from utils import OutOfBoundsPath, get_disk_usage

logger = logging.getLogger(__name__)

api = Blueprint('api', __name__)


def create_app(config_object=Config, store=None):
    app = Flask(__name__)
    app.config.from_object(config_object)

    if store is None:
        store = AuthorizationStore(app.config['AUTHORIZATION_CONFIG_PATH'],
                                   app.config['ROOT_PATH'])
        store.load()
    ensure_storage_structure(store)

    resolver = PermissionResolver(store)
    app.extensions['authorization'] = AccessGate(
        store, resolver, no_auth_required=app.config.get('NO_AUTH_REQUIRED', False))

    app.register_blueprint(api)
    app.register_error_handler(OutOfBoundsPath, _out_of_bounds)
    app.register_error_handler(FileOperationError, _file_operation_error)
    return app


# ─────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────

def _gate() -> AccessGate:
    return current_app.extensions['authorization']


def _error(status, message, code):
    return jsonify({'error': message, 'code': code}), status


def _out_of_bounds(e):
    return _error(400, 'Invalid path.', 'PATH_OUT_OF_BOUNDS')


def _file_operation_error(e):
    return _error(e.status, str(e), 'FILE_OPERATION_ERROR')


def _request_data():
    return request.get_json(silent=True) or request.form


def _requested_root_id():
    return (request.args.get('rootPathId')
            or request.form.get('rootPathId')
            or (request.get_json(silent=True) or {}).get('rootPathId'))


def _request_identity():
    """Returns (identity, token_error). Bearer claims take precedence over the session."""
    cfg = current_app.config
    claims, token_error = decode_bearer_token(
        request.headers.get('Authorization'), cfg.get('JWT_SECRET'),
        cfg.get('JWT_ALGORITHMS', ['HS256']), cfg.get('JWT_ISSUER'))
    if claims is not None:
        return claims, None
    return session.get('user'), token_error


def _current_email():
    identity, token_error = _request_identity()
    if token_error:
        return None
    return _gate().authenticate(identity, session.get('email'))


# ─────────────────────────────────────────────
# Decorators
# ─────────────────────────────────────────────

def action_required(action):
    """Runs the access gate for `action` and exposes the decision as g.access."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            identity, token_error = _request_identity()
            decision = _gate().check(
                identity, action,
                root_id=_requested_root_id(),
                session_email=session.get('email'),
                session_root_id=session.get('selected_root_id'),
                token_error=token_error,
            )
            if decision.outcome == UNAUTHENTICATED:
                return _error(401, 'Authentication required. Please log in.', 'UNAUTHENTICATED')
            if decision.outcome == FORBIDDEN:
                if decision.reason == 'action_denied':
                    message = f'Access denied: {decision.email} may not {action} here.'
                else:
                    message = 'You do not have access to the requested root path.'
                return _error(403, message, 'FORBIDDEN')
            g.access = decision
            return f(*args, **kwargs)
        return decorated_function
    return decorator


def admin_required(f):
    @wraps(f)
    def decorated_function(*args, **kwargs):
        email = _current_email()
        if email is None:
            return _error(401, 'Authentication required. Please log in.', 'UNAUTHENTICATED')
        if not is_admin(email, current_app.config.get('ADMIN_EMAILS', [])):
            logger.warning(f"Admin access denied for {email}")
            return _error(403, 'Administrator privileges required.', 'FORBIDDEN')
        g.email = email
        return f(*args, **kwargs)
    return decorated_function


# ─────────────────────────────────────────────
# Root paths & permissions
# ─────────────────────────────────────────────

def _root_payload(data, physical_path):
    data['diskSpace'] = get_disk_usage(physical_path)
    return data


def _accessible_roots(email):
    gate = _gate()
    if gate.no_auth_required and email is None:
        return [_root_payload(dict(r.to_dict(), permission=None), r.path)
                for r in gate.store.list_roots()]
    return [_root_payload(a.to_dict(), a.root.path)
            for a in gate.resolver.accessible_roots(email)]


@api.route('/api/rootpaths')
def root_paths():
    email = _current_email()
    if email is None and not _gate().no_auth_required:
        return _error(401, 'Could not determine the current user.', 'USER_NOT_FOUND')
    default = _gate().store.default_root()
    return jsonify({
        'rootPaths': _accessible_roots(email),
        'defaultRootPath': default.to_dict() if default else None,
        'userEmail': email,
    })


@api.route('/api/rootpaths/<root_id>')
def root_path_detail(root_id):
    email = _current_email()
    if email is None and not _gate().no_auth_required:
        return _error(401, 'Could not determine the current user.', 'USER_NOT_FOUND')
    target = next((rp for rp in _accessible_roots(email) if rp['id'] == root_id), None)
    if target is None:
        return _error(403, 'You do not have access to the requested root path.', 'ROOTPATH_ACCESS_DENIED')
    return jsonify({'rootPath': target, 'userEmail': email})


@api.route('/api/rootpaths/select', methods=['POST'])
def select_root_path():
    email = _current_email()
    if email is None and not _gate().no_auth_required:
        return _error(401, 'Could not determine the current user.', 'USER_NOT_FOUND')
    root_id = _request_data().get('rootPathId')
    if not root_id:
        return _error(400, 'rootPathId is required.', 'ROOTPATH_ID_REQUIRED')
    target = next((rp for rp in _accessible_roots(email) if rp['id'] == root_id), None)
    if target is None:
        return _error(403, 'You do not have access to the requested root path.', 'ROOTPATH_ACCESS_DENIED')
    session['selected_root_id'] = root_id
    logger.info(f"{email} selected root path {root_id}")
    return jsonify({'success': True, 'selectedRootPath': target, 'userEmail': email})


@api.route('/api/permissions')
@action_required('view')
def permissions():
    return jsonify({'permissions': g.access.permissions.to_dict()})


# ─────────────────────────────────────────────
# File Actions
# ─────────────────────────────────────────────

@api.route('/api/list')
@action_required('view')
def list_files():
    listing = file_service.list_directory(g.access.root.path, request.args.get('path', ''))
    listing['rootPathId'] = g.access.root.id
    listing['permissions'] = g.access.permissions.to_dict()
    return jsonify(listing)


@api.route('/api/download/file')
@action_required('download')
def download_file():
    abs_path = file_service.resolve_file(g.access.root.path, request.args.get('path'))
    return send_file(abs_path, as_attachment=True, mimetype='application/octet-stream')


@api.route('/api/download/folder')
@action_required('download')
def download_folder():
    name, archive = file_service.zip_folder(g.access.root.path, request.args.get('path'))
    return send_file(archive, as_attachment=True, download_name=name, mimetype='application/zip')


@api.route('/api/upload', methods=['POST'])
@action_required('upload')
def upload():
    saved = file_service.save_uploads(g.access.root.path, request.form.get('path', ''),
                                      request.files.getlist('files'))
    return jsonify({'success': True, 'uploaded': saved})


@api.route('/api/folder', methods=['POST'])
@action_required('upload')
def create_folder():
    data = _request_data()
    file_service.create_folder(g.access.root.path, data.get('path', ''), data.get('name'))
    return jsonify({'success': True})


@api.route('/api/rename', methods=['POST'])
@action_required('upload')
def rename():
    data = _request_data()
    file_service.rename_entry(g.access.root.path, data.get('path'), data.get('newName'))
    return jsonify({'ok': True})


@api.route('/api/delete/file', methods=['DELETE'])
@action_required('delete')
def delete_file():
    file_service.delete_file(g.access.root.path, _request_data().get('path'))
    return jsonify({'success': True})


@api.route('/api/delete/folder', methods=['DELETE'])
@action_required('delete')
def delete_folder():
    file_service.delete_folder(g.access.root.path, _request_data().get('path'))
    return jsonify({'success': True})


# ─────────────────────────────────────────────
# Admin – Permission Rules
# ─────────────────────────────────────────────

@api.route('/api/admin/permissions')
@admin_required
def admin_list_rules():
    store = _gate().store
    return jsonify({
        'rules': [r.to_dict() for r in store.all_rules()],
        'defaultPermission': store.default_permission_level,
        'permissions': {name: lvl.to_dict() for name, lvl in store.config.permission_levels.items()},
    })


@api.route('/api/admin/permissions', methods=['PUT'])
@admin_required
def admin_set_permission():
    data = _request_data()
    try:
        persisted = set_root_permission(_gate().store, data.get('email'), data.get('rootPathId'),
                                        data.get('permission'), data.get('description'))
    except ValueError as e:
        return _error(400, str(e), 'INVALID_PERMISSION')
    logger.info(f"{g.email} set {data.get('email')} on {data.get('rootPathId')} to {data.get('permission')}")
    return jsonify({'success': True, 'persisted': persisted})


@api.route('/api/admin/permissions/<email>', methods=['DELETE'])
@admin_required
def admin_remove_rule(email):
    try:
        removed = remove_user(_gate().store, email, g.email)
    except ValueError as e:
        return _error(400, str(e), 'INVALID_REQUEST')
    if not removed:
        return _error(404, f'No rule for {email}.', 'RULE_NOT_FOUND')
    return jsonify({'success': True})


@api.route('/api/admin/reload', methods=['POST'])
@admin_required
def admin_reload():
    config = _gate().store.reload()
    ensure_storage_structure(_gate().store)
    return jsonify({'success': True, 'rules': len(config.rules), 'rootPaths': len(config.roots)})


if __name__ == '__main__':
    logging.basicConfig(level=Config.LOG_LEVEL,
                        format='%(asctime)s %(levelname)s %(name)s: %(message)s')
    create_app().run(host='0.0.0.0', port=5000, debug=True)
