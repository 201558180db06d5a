"""Where idflow keeps its files, and which profile a command runs against.

Layout on Linux and the BSDs follows the XDG base directories::

    $XDG_CONFIG_HOME/idflow/config.json          GlobalConfig
    $XDG_CONFIG_HOME/idflow/profiles/<name>.json  one Profile per tenant app
    $XDG_DATA_HOME/idflow/verifiers/              PKCE verifiers in flight
    $XDG_DATA_HOME/idflow/logs/                   crash logs

Other platforms use ``~/.idflow`` for configuration and ``~/.idflow/data``
for the rest. A repository may pin its tenant with an ``idflow.json`` file
in the working directory.

Every write goes through :func:`atomic_write`.
"""

from __future__ import annotations

import contextlib
import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel

from idflow.exceptions import ConfigError
from idflow.models import GlobalConfig, OutputConfig, Profile

_APP_NAME = "idflow"
_CONFIG_FILENAME = "config.json"
_PROJECT_CONFIG_FILENAME = "idflow.json"

# (environment variable, default below $HOME, fallback below ~/.idflow)
_BASE_DIRS: dict[str, tuple[str, tuple[str, ...], tuple[str, ...]]] = {
    "config": ("XDG_CONFIG_HOME", (".config",), ()),
    "data": ("XDG_DATA_HOME", (".local", "share"), ("data",)),
}

# Environment variables that patch the selected profile for one run.
_PROFILE_ENV_OVERRIDES = {
    "IDFLOW_DOMAIN": "domain",
    "IDFLOW_CLIENT_ID": "client_id",
}


# --- Directories ---


def _is_xdg_platform() -> bool:
    system = platform.system()
    return system == "Linux" or system.endswith("BSD")


def _app_dir(kind: str) -> Path:
    env_var, xdg_default, fallback = _BASE_DIRS[kind]
    if _is_xdg_platform():
        root = Path(os.environ.get(env_var) or Path.home().joinpath(*xdg_default))
        path = root / _APP_NAME
    else:
        path = Path.home().joinpath(f".{_APP_NAME}", *fallback)
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_config_dir() -> Path:
    """Directory holding ``config.json`` and ``profiles/``. Created on demand."""
    return _app_dir("config")


def get_data_dir() -> Path:
    """Directory for state that is not configuration: verifiers and crash logs."""
    return _app_dir("data")


def get_profiles_dir() -> Path:
    path = get_config_dir() / "profiles"
    path.mkdir(exist_ok=True)
    return path


# --- File primitives ---


def atomic_write(path: Path, data: str, mode: Optional[int] = None) -> None:
    """Replace *path* with *data* so a reader never sees a half-written file.

    The content goes to a sibling temp file which is synced and then renamed
    over *path*. *mode* is applied to the temp file before anything is
    written to it, which matters for PKCE verifiers (``0o600``).
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            if mode is not None:
                os.chmod(tmp_name, mode)
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        with contextlib.suppress(OSError):
            os.unlink(tmp_name)
        raise


def _read_json(path: Path, label: str) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except ValueError as exc:
        raise ConfigError(f"Invalid {label} at {path}: {exc}") from exc


def _write_model(path: Path, model: BaseModel) -> None:
    atomic_write(path, json.dumps(model.model_dump(mode="json"), indent=2) + "\n")


# --- Global config ---


def _global_config_path() -> Path:
    return get_config_dir() / _CONFIG_FILENAME


def load_global_config() -> GlobalConfig:
    """Read ``config.json``, or return defaults when it has never been written.

    Raises:
        ConfigError: The file is not JSON or does not match
            :class:`~idflow.models.GlobalConfig`.
    """
    path = _global_config_path()
    if not path.is_file():
        return GlobalConfig()
    raw = _read_json(path, "global config")
    try:
        return GlobalConfig.model_validate(raw)
    except ValueError as exc:
        raise ConfigError(f"Invalid global config at {path}: {exc}") from exc


def save_global_config(config: GlobalConfig) -> None:
    _write_model(_global_config_path(), config)


# --- Profiles ---


def _profile_path(name: str) -> Path:
    return get_profiles_dir() / f"{name}.json"


def _existing_profile_path(name: str) -> Path:
    path = _profile_path(name)
    if not path.is_file():
        raise ConfigError(f"Profile '{name}' not found at {path}")
    return path


def list_profiles() -> list[str]:
    """Names of all saved profiles, alphabetically."""
    return sorted(p.stem for p in get_profiles_dir().glob("*.json") if p.is_file())


def profile_exists(name: str) -> bool:
    return _profile_path(name).is_file()


def load_profile(name: str) -> Profile:
    """Read ``profiles/<name>.json``.

    Raises:
        ConfigError: No such profile, or its file is invalid.
    """
    path = _existing_profile_path(name)
    raw = _read_json(path, f"profile '{name}'")
    try:
        return Profile.model_validate(raw)
    except ValueError as exc:
        raise ConfigError(f"Invalid profile '{name}' at {path}: {exc}") from exc


def save_profile(profile: Profile) -> None:
    _write_model(_profile_path(profile.name), profile)


def delete_profile(name: str) -> None:
    _existing_profile_path(name).unlink()


# --- Project config ---


def load_project_config() -> Optional[dict[str, Any]]:
    """Read ``./idflow.json`` if the working directory has one.

    Only ``default_profile`` is consulted today; it lets an application
    repository pin the tenant its developers log in to.
    """
    path = Path.cwd() / _PROJECT_CONFIG_FILENAME
    if not path.is_file():
        return None
    return _read_json(path, "project config")


# --- Resolution ---


def _select_profile_name(global_cfg: GlobalConfig, cli_profile: Optional[str]) -> Optional[str]:
    project = load_project_config() or {}
    for candidate in (
        cli_profile,
        os.environ.get("IDFLOW_PROFILE") or None,
        project.get("default_profile"),
        global_cfg.default_profile,
    ):
        if candidate is not None:
            return candidate

    if global_cfg.auto_select_single_profile:
        names = list_profiles()
        if len(names) == 1:
            return names[0]
    return None


def _with_env_overrides(profile: Profile) -> Profile:
    updates = {
        field: os.environ[var]
        for var, field in _PROFILE_ENV_OVERRIDES.items()
        if os.environ.get(var)
    }
    return profile.model_copy(update=updates) if updates else profile


def resolve_config(
    cli_profile: Optional[str] = None,
    cli_format: Optional[str] = None,
) -> tuple[GlobalConfig, Optional[Profile]]:
    """Work out the effective configuration for one command.

    The profile name is taken from the first of: ``--profile``,
    ``IDFLOW_PROFILE``, ``./idflow.json``, ``config.json``. When none names
    one and exactly one profile exists, that profile is used (unless
    ``auto_select_single_profile`` is off). ``IDFLOW_DOMAIN`` and
    ``IDFLOW_CLIENT_ID`` then override the loaded profile in memory only.

    Returns:
        ``(global_config, profile)``; ``profile`` is ``None`` when nothing
        could be selected.

    Raises:
        ConfigError: The selected profile does not exist or is invalid.
    """
    global_cfg = load_global_config()
    if cli_format is not None:
        global_cfg = global_cfg.model_copy(update={"output": OutputConfig(format=cli_format)})

    name = _select_profile_name(global_cfg, cli_profile)
    if name is None:
        return global_cfg, None
    return global_cfg, _with_env_overrides(load_profile(name))
