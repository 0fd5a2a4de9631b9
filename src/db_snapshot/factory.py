"""Database client factory.

Resolves a connection URL from ``--url``, a named profile, or the
``DB_SNAPSHOT_PROFILE`` environment variable, and builds the adapter that
matches the URL scheme.
"""

import logging
import os
from urllib.parse import quote

from db_snapshot.adapters import DatabaseClient, MySQLAdapter, PostgresAdapter
from db_snapshot.config.loader import load_config
from db_snapshot.config.models import DatabaseProfile, SnapshotConfig
from db_snapshot.exceptions import ConfigError, DatabaseConnectionError

logger = logging.getLogger(__name__)

PROFILE_ENV_VAR = "DB_SNAPSHOT_PROFILE"

_ADAPTERS = (PostgresAdapter, MySQLAdapter)


# ============================================================================
# Profiles
# ============================================================================


def resolve_url(profile: DatabaseProfile) -> str:
    """Resolve profile URL with password substitution.

    Args:
        profile: Database profile from config

    Returns:
        Connection URL with password substituted

    Example:
        >>> p = DatabaseProfile(url="postgresql://u:[YOUR-PASSWORD]@h/db", db_password="p@ss")
        >>> resolve_url(p)
        'postgresql://u:p%40ss@h/db'
    """
    url = profile.url
    if profile.db_password and "[YOUR-PASSWORD]" in url:
        url = url.replace("[YOUR-PASSWORD]", quote(profile.db_password, safe=""))
    return url


def get_active_profile_name(profile_name: str | None = None) -> str | None:
    """Explicit profile name, else ``DB_SNAPSHOT_PROFILE``, else ``None``."""
    return profile_name or os.environ.get(PROFILE_ENV_VAR) or None


def get_profile(
    profile_name: str,
    config: SnapshotConfig | None = None,
) -> DatabaseProfile:
    """Look up a profile by name.

    Raises:
        FileNotFoundError: If no config file exists
        ConfigError: If the profile is not defined
    """
    if config is None:
        config = load_config()
    if profile_name not in config.profiles:
        available = ", ".join(config.profiles) or "(none)"
        raise ConfigError(
            f"Profile '{profile_name}' not found.\nAvailable profiles: {available}"
        )
    return config.profiles[profile_name]


# ============================================================================
# Client Factory
# ============================================================================


def _url_scheme(url: str) -> str:
    if "://" not in url:
        return ""
    return url.split("://", 1)[0].lower()


def get_adapter_class(url: str) -> type[PostgresAdapter] | type[MySQLAdapter] | None:
    """Adapter class selected by the URL scheme, or ``None`` if unsupported."""
    scheme = _url_scheme(url)
    for adapter_cls in _ADAPTERS:
        if scheme == adapter_cls.url_scheme or scheme in adapter_cls.url_aliases:
            return adapter_cls
    return None


def engine_for_url(url: str) -> str | None:
    """Engine name (``postgres`` or ``mysql``) a URL connects to."""
    adapter_cls = get_adapter_class(url)
    return adapter_cls.engine if adapter_cls else None


def get_client(url: str, namespace: str | None = None) -> DatabaseClient:
    """Build the adapter for a connection URL.

    ``postgres://``, ``postgresql://`` and ``postgresql+psycopg://`` select
    ``PostgresAdapter``; ``mysql://`` and ``mysql+pymysql://`` select
    ``MySQLAdapter``.  No connection is opened until first use.

    Raises:
        DatabaseConnectionError: If the scheme is not supported
    """
    adapter_cls = get_adapter_class(url)
    if adapter_cls is not None:
        logger.debug("Using %s for %s", adapter_cls.__name__, _url_scheme(url))
        return adapter_cls(database_url=url, namespace=namespace)

    scheme = _url_scheme(url)
    raise DatabaseConnectionError(
        f"Unsupported database URL scheme: '{scheme or url}'. "
        "Use postgres://, postgresql:// or mysql://"
    )


def connect(
    url: str | None = None,
    profile_name: str | None = None,
    config: SnapshotConfig | None = None,
) -> DatabaseClient:
    """Client for an explicit URL or a profile.

    Args:
        url: Connection URL; wins over any profile.
        profile_name: Profile in snapshot.toml; falls back to
            ``DB_SNAPSHOT_PROFILE``.
        config: Already-loaded config (loaded on demand otherwise).

    Raises:
        ConfigError: If neither a URL nor a profile is given, or the profile
            is unknown
        DatabaseConnectionError: If the URL scheme is not supported
    """
    if url:
        return get_client(url)

    name = get_active_profile_name(profile_name)
    if name is None:
        raise ConfigError(
            "No database selected.\n"
            f"Pass --url or --profile, or set {PROFILE_ENV_VAR}=<name>."
        )
    profile = get_profile(name, config)
    return get_client(resolve_url(profile), namespace=profile.namespace)
