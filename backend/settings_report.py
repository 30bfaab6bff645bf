"""
Deployment settings report for /api/health
Says whether each setting is present; values never leave this module.
"""
import os

# (env var, what it controls, needed on hosted deployments)
SETTINGS = (
    ('DATABASE_URL', 'primary database; local SQLite file when unset', False),
    ('SECRET_KEY', 'Flask secret key', True),
    ('REDIS_URL', 'shared rate-limit storage', False),
    ('GEO_API_KEY', 'city geocoding', False),
    ('FRONTEND_URL', 'CORS origin', False),
)


def is_present(name, environ=None):
    environ = os.environ if environ is None else environ
    return bool((environ.get(name) or '').strip())


def settings_report(storage_mode, environ=None):
    """
    Summarize configuration for the health endpoint.

    Hosted deployments are recognised by DATABASE_URL, the same rule the CORS
    allowlist uses; only they get warnings for missing production settings.
    """
    environ = os.environ if environ is None else environ
    hosted = is_present('DATABASE_URL', environ)

    settings = {}
    warnings = []
    for name, purpose, needed_when_hosted in SETTINGS:
        present = is_present(name, environ)
        settings[name] = 'set' if present else 'unset'
        if hosted and needed_when_hosted and not present:
            warnings.append(f"{name} is unset ({purpose})")

    if hosted and storage_mode == 'memory':
        warnings.append('DATABASE_URL is unreachable; data lives in memory until restart')

    return {
        'storage_mode': storage_mode,
        'hosted': hosted,
        'settings': settings,
        'warnings': warnings,
    }
