import os


def _env_flag(name, default=False):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def _no_auth_default():
    # Authentication is only enforced when at least one provider is switched on
    providers = ('GITHUB', 'GITLAB', 'HYDRA')
    return not any(os.environ.get(p) == 'TRUE' for p in providers)


class Config:
    # Secret key for session management
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'dev_key_very_secret_12345'

    BASE_DIR = os.path.abspath(os.getcwd())

    # Authorization file holding root paths, rules and permission levels
    AUTHORIZATION_CONFIG_PATH = (os.environ.get('AUTHORIZATION_CONFIG_PATH')
                                 or os.path.join(BASE_DIR, 'conf', 'authorization-config.json'))

    # Physical directory of the 'main' root used when the authorization file is unusable
    ROOT_PATH = os.environ.get('ROOT_PATH') or './data'

    NO_AUTH_REQUIRED = _env_flag('NO_AUTH_REQUIRED', _no_auth_default())

    # Emails allowed to manage permission rules
    ADMIN_EMAILS = [e.strip().lower() for e in
                    (os.environ.get('ADMIN_EMAILS') or 'admin@example.com,admin@localhost').split(',')
                    if e.strip()]

    # Bearer token verification; tokens are ignored when no secret is configured
    JWT_SECRET = os.environ.get('JWT_SECRET')
    JWT_ALGORITHMS = [a.strip() for a in (os.environ.get('JWT_ALGORITHMS') or 'HS256').split(',')]
    JWT_ISSUER = os.environ.get('JWT_ISSUER')

    # Max upload size (e.g., 1GB)
    MAX_CONTENT_LENGTH = 1024 * 1024 * 1024

    LOG_LEVEL = os.environ.get('LOG_LEVEL') or 'INFO'
