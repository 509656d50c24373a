"""Locate the per-user directories pkgtap operates in.

Every directory function creates its directory before returning it. Failing
to create one is logged and the path is still returned so the caller's own
I/O surfaces the real error. Failing to determine the user's home or config
directory at all raises PathResolutionError, which nothing in pkgtap catches.
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

from platformdirs import user_cache_dir, user_config_dir, user_data_dir

from pkgtap.errors import PathResolutionError
from pkgtap.settings import CACHE_ENV, HOME_ENV

logger = logging.getLogger(__name__)

APP_NAME = "pkgtap"
LOCKFILE_NAME = "pkgtap-lock.json"
REGISTRY_FILE_NAME = "zana-registry.json"
REGISTRY_CACHE_NAME = "registry-cache.json.zip"


def _ensure_dir(path: Path) -> Path:
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        logger.warning("Could not create directory %s: %s", path, exc)
    return path


def _home() -> Path:
    try:
        return Path.home()
    except (RuntimeError, KeyError) as exc:
        raise PathResolutionError(f"Cannot determine the user home directory: {exc}") from exc


def _config_root() -> Path:
    try:
        root = user_config_dir(APP_NAME, appauthor=False, roaming=True)
    except (RuntimeError, KeyError, OSError) as exc:
        raise PathResolutionError(f"Cannot determine the user config directory: {exc}") from exc
    if not root:
        raise PathResolutionError("Cannot determine the user config directory")
    return Path(root)


def _override(name: str) -> Path | None:
    value = os.environ.get(name, "").strip()
    return Path(value) if value else None


# ─── Roots ──────────────────────────────────────────────────────


def app_data_path() -> Path:
    """Config/data root: ``$PKGTAP_HOME`` or the OS per-user config dir."""
    return _ensure_dir(_override(HOME_ENV) or _config_root())


def app_share_path() -> Path:
    """Root for installed binaries and packages.

    Linux keeps these under the XDG data home; other platforms already
    merge config and data, so the config directory is reused.
    """
    override = _override(HOME_ENV)
    if override is not None:
        return _ensure_dir(override)
    if sys.platform.startswith("linux"):
        _home()
        return _ensure_dir(Path(user_data_dir(APP_NAME, appauthor=False)))
    return _ensure_dir(_config_root())


def cache_path() -> Path:
    """Cache root: ``$PKGTAP_CACHE`` or the OS cache convention."""
    override = _override(CACHE_ENV)
    if override is not None:
        return _ensure_dir(override)

    match sys.platform:
        case "win32":
            local = os.environ.get("LOCALAPPDATA", "")
            roaming = os.environ.get("APPDATA", "")
            if local:
                root = Path(local) / APP_NAME / "cache"
            elif roaming:
                root = Path(roaming) / APP_NAME / "cache"
            else:
                root = _home() / f".{APP_NAME}" / "cache"
        case _:
            _home()
            root = Path(user_cache_dir(APP_NAME, appauthor=False))
    return _ensure_dir(root)


# ─── Derived paths ──────────────────────────────────────────────


def bin_path() -> Path:
    return _ensure_dir(app_share_path() / "bin")


def packages_path() -> Path:
    return _ensure_dir(app_share_path() / "packages")


def lockfile_path() -> Path:
    return app_data_path() / LOCKFILE_NAME


def registry_file_path() -> Path:
    return cache_path() / REGISTRY_FILE_NAME


def registry_cache_path() -> Path:
    return cache_path() / REGISTRY_CACHE_NAME
