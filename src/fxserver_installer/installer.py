"""Core installer routines."""

from __future__ import annotations

import dataclasses
import logging
import pathlib
import shutil
import subprocess
import threading
from typing import Callable, Iterable, List, Mapping, Optional

from .config import InstallerSettings
from .errors import ConfigurationError, InstallerError, MalformedRecipe
from .execution.report import ExecutionReport
from .executor import RecipeExecutor
from .logging_utils import log_event
from .models import Recipe
from .providers import Providers
from .provisioning import DatabaseCredentials, DatabaseProvisioner, PasswordSource
from .recipe import recipe_from_text
from .variables import VariableContext

logger = logging.getLogger(__name__)

BUILD_ARCHIVE_NAME = "fx.tar.xz"
SERVER_PROFILE = "FXServer"
SCREEN_SESSION = "FXServer"
GAME_PORT = 30120
BASE_PREREQUISITES = ("git",)

# ox_core recipes expect this database and account name.
OX_CORE_DATABASE = "overextended"

VANILLA_CONFIG_TEMPLATE = """\
{{serverEndpoints}}

ensure mapmanager
ensure chat
ensure spawnmanager
ensure sessionmanager
ensure basic-gamemode
ensure hardcap
ensure rconlog

sv_scriptHookAllowed 0
sets tags "default"
sets locale "en-US"

sv_hostname "{{serverName}}"
sets sv_projectName "{{serverName}}"
sets sv_projectDesc "{{recipeDescription}}"

set onesync on
sv_maxclients {{maxClients}}
set steam_webApiKey ""
sv_licenseKey "{{svLicense}}"
"""

VANILLA_DATABASE_TEMPLATE = """
# Database Configuration
set mysql_connection_string "{{dbConnectionString}}"
"""

ExecutorFactory = Callable[..., RecipeExecutor]


@dataclasses.dataclass(slots=True)
class InstallResult:
    """Represents the result of an installer run."""

    build_url: str
    data_dir: pathlib.Path
    launch_command: List[str]
    report: Optional[ExecutionReport] = None
    credentials: Optional[DatabaseCredentials] = None

    @property
    def succeeded(self) -> bool:
        return self.report is None or self.report.status.successful

    def as_dict(self) -> dict:
        payload: dict = {
            "build_url": self.build_url,
            "data_dir": str(self.data_dir),
            "launch_command": list(self.launch_command),
            "succeeded": self.succeeded,
        }
        if self.report is not None:
            payload["recipe"] = self.report.as_dict()
        if self.credentials is not None:
            payload["database"] = {
                "name": self.credentials.name,
                "user": self.credentials.user,
                "host": self.credentials.host,
                "port": self.credentials.port,
            }
        return payload


def check_prerequisites(
    commands: Iterable[str],
    *,
    which: Callable[[str], Optional[str]] = shutil.which,
) -> None:
    missing = [command for command in commands if which(command) is None]
    if missing:
        raise ConfigurationError(
            "Required tools are not installed: " + ", ".join(missing)
        )


def required_tools(settings: InstallerSettings, *, launching: bool = False) -> List[str]:
    tools = list(BASE_PREREQUISITES)
    if launching and settings.uses_txadmin:
        tools.append("screen")
    return tools


def fetch_latest_build_url(downloader, url: str, *, timeout: float | None = None) -> str:
    """Return the ``latest_download`` URL advertised by the FiveM changelog API."""

    payload = downloader.get_json(url, timeout=timeout)
    build_url = payload.get("latest_download") if isinstance(payload, Mapping) else None
    if not isinstance(build_url, str) or not build_url or build_url == "null":
        raise InstallerError("Could not retrieve the latest FXServer download URL")
    return build_url


def _make_dirs(directory: pathlib.Path) -> None:
    try:
        directory.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise InstallerError(f"Failed to create {directory}: {exc}") from exc


def install_artifacts(
    build_url: str,
    directory: pathlib.Path,
    providers: Providers,
    *,
    timeout: float | None = None,
) -> pathlib.Path:
    """Download the server build into ``directory`` and unpack it there."""

    _make_dirs(directory)
    archive = directory / BUILD_ARCHIVE_NAME
    log_event(logger, logging.INFO, "artifacts.download", url=build_url, path=archive)
    providers.downloader.download_to(build_url, archive, timeout=timeout)
    log_event(logger, logging.INFO, "artifacts.extract", path=directory)
    providers.archives.extract(archive, directory)
    return archive


def build_variables(
    settings: InstallerSettings,
    *,
    credentials: Optional[DatabaseCredentials] = None,
    recipe: Optional[Recipe] = None,
) -> VariableContext:
    """Variables available to recipe tasks and configuration templates."""

    recipe_name = recipe.name if recipe and recipe.name else settings.server_type
    description = (
        recipe.description
        if recipe and recipe.description
        else f"FXServer running {recipe_name}"
    )
    variables = VariableContext(
        {
            "serverName": settings.server_name,
            "maxClients": settings.max_clients,
            "svLicense": settings.license_key,
            "recipeName": recipe_name,
            "recipeDescription": description,
            "serverEndpoints": "\n".join(
                (
                    f'endpoint_add_tcp "0.0.0.0:{GAME_PORT}"',
                    f'endpoint_add_udp "0.0.0.0:{GAME_PORT}"',
                )
            ),
            "txAdminPort": settings.txadmin_port,
        }
    )
    if recipe and recipe.author:
        variables.set("recipeAuthor", recipe.author)
    if credentials is not None:
        info = credentials.connection_info()
        variables.update(
            {
                "dbName": credentials.name,
                "dbUsername": credentials.user,
                "dbPassword": credentials.password,
                "dbHost": credentials.host,
                "dbPort": credentials.port,
                "dbConnectionString": info.connection_string(),
            }
        )
    return variables


def render_vanilla_config(variables: VariableContext) -> str:
    text = VANILLA_CONFIG_TEMPLATE
    if "dbConnectionString" in variables:
        text += VANILLA_DATABASE_TEMPLATE
    return variables.resolve(text)


def write_vanilla_config(path: pathlib.Path, variables: VariableContext) -> None:
    _make_dirs(path.parent)
    try:
        path.write_text(render_vanilla_config(variables), encoding="utf-8")
    except OSError as exc:
        raise InstallerError(f"Failed to write {path}: {exc}") from exc


def build_launch_command(settings: InstallerSettings) -> List[str]:
    run_script = str(settings.artifacts_dir / "run.sh")
    if settings.uses_txadmin:
        return [
            "screen",
            "-dmS",
            SCREEN_SESSION,
            run_script,
            "+set",
            "serverProfile",
            SERVER_PROFILE,
            "+set",
            "txAdminPort",
            str(settings.txadmin_port),
        ]
    return ["bash", run_script, "+exec", "server.cfg"]


def launch(
    settings: InstallerSettings,
    *,
    runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
) -> int:
    """Start the server from its data directory and return the exit status."""

    command = build_launch_command(settings)
    log_event(logger, logging.INFO, "server.launch", command=" ".join(command))
    try:
        result = runner(command, cwd=str(settings.data_dir), check=False)
    except OSError as exc:
        raise InstallerError(f"Failed to start FXServer: {exc}") from exc
    return result.returncode


def provision_database(
    settings: InstallerSettings,
    password_source: PasswordSource,
    *,
    provisioner: Optional[DatabaseProvisioner] = None,
) -> DatabaseCredentials:
    """Authenticate as root, create the server database and verify access."""

    if settings.server_type == "ox_core":
        name = user = OX_CORE_DATABASE
    else:
        name, user = settings.db_name, settings.db_user
    provisioner = provisioner or DatabaseProvisioner(
        host=settings.db_host,
        port=settings.db_port,
        max_attempts=settings.db_root_attempts,
        timeout=settings.timeout,
    )
    root = provisioner.authenticate_root(password_source)
    credentials = provisioner.provision(root, name=name, user=user)
    provisioner.verify(credentials)
    return credentials


class FXServerInstaller:
    """High level coordinator that turns settings into an installed server."""

    def __init__(
        self,
        settings: InstallerSettings,
        *,
        providers: Optional[Providers] = None,
        executor_factory: Optional[ExecutorFactory] = None,
    ) -> None:
        self._settings = settings
        self._providers = providers or Providers()
        self._executor_factory = executor_factory or RecipeExecutor

    @property
    def settings(self) -> InstallerSettings:
        return self._settings

    def plan(self) -> List[str]:
        """Return a human readable summary of what :meth:`install` will do."""

        settings = self._settings
        lines = [
            f"Server type:      {settings.server_type}",
            f"Server directory: {settings.server_dir}",
            f"Build source:     {settings.changelog_url}",
            f"License key:      {'set' if settings.license_key else 'not set'}",
            f"Run txAdmin:      {'yes' if settings.uses_txadmin else 'no'}",
        ]
        if settings.server_type == "ox_core":
            lines.append(f"Recipe:           {settings.recipe_url}")
        else:
            lines.append(f"Server data:      {settings.vanilla_data_url}")
        return lines

    def install(
        self,
        *,
        credentials: Optional[DatabaseCredentials] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> InstallResult:
        settings = self._settings
        timeout = settings.timeout

        build_url = fetch_latest_build_url(
            self._providers.downloader, settings.changelog_url, timeout=timeout
        )
        _make_dirs(settings.server_dir)
        install_artifacts(build_url, settings.artifacts_dir, self._providers, timeout=timeout)

        report: Optional[ExecutionReport] = None
        if settings.server_type == "ox_core":
            report = self._install_recipe(credentials, cancel_event)
        else:
            self._install_vanilla(credentials)

        return InstallResult(
            build_url=build_url,
            data_dir=settings.data_dir,
            launch_command=build_launch_command(settings),
            report=report,
            credentials=credentials,
        )

    def _install_vanilla(self, credentials: Optional[DatabaseCredentials]) -> None:
        settings = self._settings
        log_event(logger, logging.INFO, "vanilla.clone", url=settings.vanilla_data_url)
        self._providers.sources.clone_shallow(
            settings.vanilla_data_url, "", settings.data_dir, timeout=settings.timeout
        )
        variables = build_variables(settings, credentials=credentials)
        write_vanilla_config(settings.data_dir / "server.cfg", variables)

    def _install_recipe(
        self,
        credentials: Optional[DatabaseCredentials],
        cancel_event: Optional[threading.Event],
    ) -> ExecutionReport:
        settings = self._settings
        log_event(logger, logging.INFO, "recipe.fetch", url=settings.recipe_url)
        payload = self._providers.downloader.download(settings.recipe_url, timeout=settings.timeout)
        try:
            text = payload.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise MalformedRecipe(f"Recipe at {settings.recipe_url} is not valid UTF-8: {exc}") from exc
        recipe = recipe_from_text(text, source=settings.recipe_url)

        variables = build_variables(settings, credentials=credentials, recipe=recipe)
        scratch = settings.data_dir / "tmp"
        _make_dirs(scratch)
        executor = self._executor_factory(
            providers=self._providers,
            base_dir=settings.data_dir,
            continue_on_error=settings.continue_on_error,
            timeout=settings.timeout,
            cancel_event=cancel_event,
        )
        try:
            return executor.run(recipe, variables)
        finally:
            shutil.rmtree(scratch, ignore_errors=True)


__all__ = [
    "FXServerInstaller",
    "InstallResult",
    "build_launch_command",
    "build_variables",
    "check_prerequisites",
    "fetch_latest_build_url",
    "install_artifacts",
    "launch",
    "provision_database",
    "render_vanilla_config",
    "required_tools",
    "write_vanilla_config",
]
