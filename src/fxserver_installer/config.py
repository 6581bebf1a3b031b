"""Configuration utilities for the FXServer installer."""

from __future__ import annotations

import dataclasses
import os
import pathlib
from typing import Any, Dict, Mapping, Optional

import yaml

from .errors import ConfigurationError

ENV_PREFIX = "FXSERVER_"

SERVER_TYPES = ("vanilla", "ox_core")

DEFAULT_CHANGELOG_URL = "https://changelogs-live.fivem.net/api/changelog/versions/linux/server"
DEFAULT_RECIPE_URL = "https://raw.githubusercontent.com/overextended/txAdminRecipe/main/recipe.yaml"
DEFAULT_VANILLA_DATA_URL = "https://github.com/citizenfx/cfx-server-data.git"


@dataclasses.dataclass(slots=True)
class InstallerSettings:
    """Every input the installation flow needs."""

    server_dir: pathlib.Path = dataclasses.field(
        default_factory=lambda: pathlib.Path("~/FXServer").expanduser()
    )
    server_type: str = "vanilla"
    license_key: str = ""
    server_name: str = "My FX Server"
    max_clients: int = 48
    txadmin: bool = False
    txadmin_port: int = 40121
    changelog_url: str = DEFAULT_CHANGELOG_URL
    recipe_url: str = DEFAULT_RECIPE_URL
    vanilla_data_url: str = DEFAULT_VANILLA_DATA_URL
    db_host: str = "localhost"
    db_port: int = 3306
    db_name: str = "fxserver"
    db_user: str = "fxserver"
    db_root_attempts: int = 3
    continue_on_error: bool = False
    timeout: Optional[float] = 300.0

    def __post_init__(self) -> None:
        self.validate()

    @property
    def uses_txadmin(self) -> bool:
        # Recipe based servers are managed through txAdmin.
        return self.txadmin or self.server_type == "ox_core"

    @property
    def artifacts_dir(self) -> pathlib.Path:
        return self.server_dir / "server"

    @property
    def data_dir(self) -> pathlib.Path:
        return self.server_dir / "server-data"

    def validate(self) -> None:
        if self.server_type not in SERVER_TYPES:
            raise ConfigurationError(
                f"Unsupported server type '{self.server_type}' (expected one of {', '.join(SERVER_TYPES)})"
            )
        if self.max_clients <= 0:
            raise ConfigurationError("max_clients must be greater than zero")
        if self.db_root_attempts <= 0:
            raise ConfigurationError("db_root_attempts must be greater than zero")
        for name in ("txadmin_port", "db_port"):
            port = getattr(self, name)
            if not 0 < port < 65536:
                raise ConfigurationError(f"{name} must be a valid TCP port, got {port}")
        if self.timeout is not None and self.timeout <= 0:
            raise ConfigurationError("timeout must be greater than zero")

    def with_overrides(self, overrides: Mapping[str, object]) -> "InstallerSettings":
        """Return a copy with non-``None`` overrides applied."""

        values = self.as_dict()
        for key, value in overrides.items():
            if value is not None:
                values[key] = value
        return _from_values(values, source="overrides")

    def as_dict(self) -> Dict[str, Any]:
        return {field.name: getattr(self, field.name) for field in dataclasses.fields(self)}

    @classmethod
    def load(
        cls,
        path: Optional[pathlib.Path] = None,
        *,
        environ: Optional[Mapping[str, str]] = None,
    ) -> "InstallerSettings":
        """Build settings from defaults, an optional YAML file and the environment."""

        values: Dict[str, object] = {}
        if path is not None:
            values.update(_read_file(path))
        values.update(_read_environment(os.environ if environ is None else environ))
        return _from_values(values, source=str(path) if path else "environment")


def _read_file(path: pathlib.Path) -> Dict[str, object]:
    if not path.exists():
        raise ConfigurationError(f"Settings file does not exist: {path}")

    with path.open("r", encoding="utf-8") as handle:
        try:
            payload = yaml.safe_load(handle)
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Settings file {path} is not valid YAML: {exc}") from exc

    if payload is None:
        return {}
    if not isinstance(payload, Mapping):
        raise ConfigurationError("Settings file must define a mapping at the top level")
    return {str(key): value for key, value in payload.items()}


def _read_environment(environ: Mapping[str, str]) -> Dict[str, object]:
    names = {field.name for field in dataclasses.fields(InstallerSettings)}
    values: Dict[str, object] = {}
    for key, value in environ.items():
        if not key.startswith(ENV_PREFIX):
            continue
        name = key[len(ENV_PREFIX):].lower()
        if name in names:
            values[name] = value
    return values


def _from_values(values: Mapping[str, object], *, source: str) -> InstallerSettings:
    fields = {field.name: field for field in dataclasses.fields(InstallerSettings)}
    unknown = sorted(set(values) - set(fields))
    if unknown:
        raise ConfigurationError(f"Unknown setting(s) in {source}: {', '.join(unknown)}")

    kwargs: Dict[str, object] = {}
    for name, raw in values.items():
        kwargs[name] = _coerce(name, raw, fields[name].type)
    return InstallerSettings(**kwargs)  # type: ignore[arg-type]


def _coerce(name: str, raw: object, annotation: object) -> object:
    kind = str(annotation)
    try:
        if kind.startswith("pathlib.Path"):
            return pathlib.Path(os.path.expanduser(str(raw)))
        if kind == "bool":
            return _as_bool(raw)
        if kind == "int":
            return int(raw)  # type: ignore[arg-type]
        if kind.startswith("Optional[float]"):
            if raw in (None, "", "none", "None"):
                return None
            return float(raw)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Setting '{name}' has an invalid value: {raw!r}") from exc
    return "" if raw is None else str(raw)


def _as_bool(value: object) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ("1", "true", "yes", "on"):
        return True
    if text in ("0", "false", "no", "off", ""):
        return False
    raise ValueError(f"not a boolean: {value!r}")


__all__ = [
    "DEFAULT_CHANGELOG_URL",
    "DEFAULT_RECIPE_URL",
    "DEFAULT_VANILLA_DATA_URL",
    "ENV_PREFIX",
    "InstallerSettings",
    "SERVER_TYPES",
]
