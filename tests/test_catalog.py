import io
import pathlib
import tarfile
import zipfile

import pytest

from fxserver_installer.execution.report import RunStatus, TaskOutcome
from fxserver_installer.executor import RecipeExecutor
from fxserver_installer.models import ActionKind
from fxserver_installer.recipe import recipe_from_mapping
from fxserver_installer.tasks import registry
from fxserver_installer.variables import VariableContext


def _run(providers, tmp_path, tasks, variables=None, **kwargs):
    executor = RecipeExecutor(providers=providers, base_dir=tmp_path, **kwargs)
    return executor.run(recipe_from_mapping({"tasks": tasks}), VariableContext(variables or {}))


def test_every_action_has_a_handler():
    assert {definition.kind for definition in registry} == set(ActionKind)


def test_download_source_tree_clones_without_subpath(providers, fake_sources, tmp_path: pathlib.Path):
    report = _run(
        providers,
        tmp_path,
        [{"action": "download_github", "src": "overextended/ox_lib", "ref": "v3", "dest": "./resources/ox_lib"}],
        timeout=30,
    )

    assert report.status is RunStatus.COMPLETED
    assert fake_sources.calls == [("clone", "overextended/ox_lib", "v3", tmp_path / "resources/ox_lib", 30)]
    assert (tmp_path / "resources" / "ox_lib" / "README.md").exists()


def test_download_source_tree_exports_subpath(providers, fake_sources, tmp_path: pathlib.Path):
    report = _run(
        providers,
        tmp_path,
        [
            {
                "action": "download_source_tree",
                "src": "https://github.com/citizenfx/cfx-server-data",
                "subpath": "resources",
                "dest": "./resources/[cfx-default]",
            }
        ],
    )

    assert report.status is RunStatus.COMPLETED
    kind, remote, ref, subpath, dest, _timeout = fake_sources.calls[0]
    assert (kind, ref, subpath) == ("export", "", "resources")
    assert dest == tmp_path / "resources" / "[cfx-default]"
    assert not (dest / ".git").exists()


def test_download_source_tree_failure_is_reported(providers, fake_sources, tmp_path: pathlib.Path):
    fake_sources.fail = True

    report = _run(providers, tmp_path, [{"action": "download_github", "src": "a/b", "dest": "b"}])

    assert report.status is RunStatus.FAILED
    assert "could not reach a/b" in report.tasks[0].message


def test_download_file_creates_parent_directories(providers, fake_downloader, tmp_path: pathlib.Path):
    fake_downloader.files["https://example.invalid/ox_lib.zip"] = b"PK-data"

    report = _run(
        providers,
        tmp_path,
        [{"action": "download_file", "url": "https://example.invalid/ox_lib.zip", "path": "tmp/deep/ox_lib.zip"}],
    )

    assert report.status is RunStatus.COMPLETED
    assert (tmp_path / "tmp" / "deep" / "ox_lib.zip").read_bytes() == b"PK-data"
    assert "7 bytes" in report.tasks[0].message


def _zip_bytes(files):
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as bundle:
        for name, content in files.items():
            bundle.writestr(name, content)
    return buffer.getvalue()


def test_download_unzip_and_move_resource(providers, fake_downloader, tmp_path: pathlib.Path):
    fake_downloader.files["https://example.invalid/ox_lib.zip"] = _zip_bytes(
        {"ox_lib/fxmanifest.lua": "fx_version 'cerulean'\n", "ox_lib/init.lua": "-- init\n"}
    )
    (tmp_path / "resources").mkdir()

    report = _run(
        providers,
        tmp_path,
        [
            {"action": "download_file", "url": "https://example.invalid/ox_lib.zip", "path": "tmp/ox_lib.zip"},
            {"action": "unzip", "src": "tmp/ox_lib.zip", "dest": "tmp/extracted"},
            {"action": "move_path", "src": "tmp/extracted/ox_lib", "dest": "resources/ox_lib"},
            {"action": "remove_path", "path": "tmp"},
        ],
    )

    assert report.status is RunStatus.COMPLETED
    assert (tmp_path / "resources" / "ox_lib" / "fxmanifest.lua").exists()
    assert not (tmp_path / "tmp").exists()


def test_unzip_extracts_tarballs(providers, tmp_path: pathlib.Path):
    archive = tmp_path / "fx.tar.gz"
    payload = b"#!/bin/sh\n"
    with tarfile.open(archive, "w:gz") as bundle:
        info = tarfile.TarInfo("run.sh")
        info.size = len(payload)
        bundle.addfile(info, io.BytesIO(payload))

    report = _run(providers, tmp_path, [{"action": "unzip", "src": "fx.tar.gz", "dest": "server"}])

    assert report.status is RunStatus.COMPLETED
    assert (tmp_path / "server" / "run.sh").read_bytes() == payload


def test_unzip_rejects_unknown_format(providers, tmp_path: pathlib.Path):
    (tmp_path / "notes.txt").write_text("plain text", encoding="utf-8")

    report = _run(providers, tmp_path, [{"action": "unzip", "src": "notes.txt", "dest": "out"}])

    assert report.status is RunStatus.FAILED
    assert "Unsupported archive format" in report.tasks[0].message


def test_move_path_requires_existing_source(providers, tmp_path: pathlib.Path):
    report = _run(providers, tmp_path, [{"action": "move_path", "src": "absent", "dest": "elsewhere"}])

    assert report.tasks[0].outcome is TaskOutcome.FAILED
    assert "Source path does not exist" in report.tasks[0].message


def test_move_path_requires_existing_destination_parent(providers, tmp_path: pathlib.Path):
    (tmp_path / "a").write_text("x", encoding="utf-8")

    report = _run(providers, tmp_path, [{"action": "move_path", "src": "a", "dest": "no/such/dir/a"}])

    assert report.status is RunStatus.FAILED
    assert (tmp_path / "a").exists()


def test_remove_path_of_missing_path_succeeds(providers, tmp_path: pathlib.Path):
    report = _run(providers, tmp_path, [{"action": "remove_path", "path": "never-created"}])

    assert report.status is RunStatus.COMPLETED
    assert "did not exist" in report.tasks[0].message


def test_replace_string_all_vars_is_idempotent(providers, tmp_path: pathlib.Path):
    config = tmp_path / "server.cfg"
    config.write_text(
        'sv_hostname "{{serverName}}"\nsv_licenseKey "{{svLicense}}"\nsv_maxclients {{maxClients}}\n',
        encoding="utf-8",
    )
    task = {"action": "replace_string", "file": "server.cfg", "mode": "all_vars"}
    variables = {"serverName": "Los Santos", "maxClients": 32}

    first = _run(providers, tmp_path, [task], variables)
    once = config.read_text(encoding="utf-8")
    second = _run(providers, tmp_path, [task], variables)

    assert first.status is second.status is RunStatus.COMPLETED
    assert once == 'sv_hostname "Los Santos"\nsv_licenseKey "{{svLicense}}"\nsv_maxclients 32\n'
    assert config.read_text(encoding="utf-8") == once
    assert second.tasks[0].message.startswith("No variables to replace")


def test_replace_string_literal_search_and_replace(providers, tmp_path: pathlib.Path):
    config = tmp_path / "server.cfg"
    config.write_text("set onesync off\nset onesync off\n", encoding="utf-8")

    report = _run(
        providers,
        tmp_path,
        [{"action": "replace_string", "file": "server.cfg", "search": "onesync off", "replace": "onesync on"}],
    )

    assert report.status is RunStatus.COMPLETED
    assert config.read_text(encoding="utf-8") == "set onesync on\nset onesync on\n"


def test_replace_string_search_value_comes_from_variables(providers, tmp_path: pathlib.Path):
    config = tmp_path / "server.cfg"
    config.write_text("sv_hostname placeholder\n", encoding="utf-8")

    _run(
        providers,
        tmp_path,
        [{"action": "replace_string", "file": "server.cfg", "search": "placeholder", "replace": "{{serverName}}"}],
        {"serverName": "My Server"},
    )

    assert config.read_text(encoding="utf-8") == "sv_hostname My Server\n"


def test_replace_string_without_mode_or_pair_leaves_file(providers, tmp_path: pathlib.Path):
    config = tmp_path / "server.cfg"
    config.write_text("{{serverName}}\n", encoding="utf-8")

    report = _run(
        providers,
        tmp_path,
        [{"action": "replace_string", "file": "server.cfg", "search": "only-search"}],
        {"serverName": "x"},
    )

    assert report.status is RunStatus.COMPLETED
    assert config.read_text(encoding="utf-8") == "{{serverName}}\n"


def test_replace_string_missing_file_fails(providers, tmp_path: pathlib.Path):
    report = _run(providers, tmp_path, [{"action": "replace_string", "file": "nope.cfg", "mode": "all_vars"}])

    assert report.status is RunStatus.FAILED
    assert "Failed to read" in report.tasks[0].message


DB_VARIABLES = {"dbUsername": "overextended", "dbPassword": "pw", "dbName": "overextended"}


def test_query_database_runs_script_with_context_credentials(providers, fake_database, tmp_path: pathlib.Path):
    sql = tmp_path / "install.sql"
    sql.write_text("CREATE TABLE a (id INT);\nCREATE TABLE b (id INT);\n", encoding="utf-8")

    report = _run(
        providers,
        tmp_path,
        [{"action": "query_database", "file": "install.sql"}],
        dict(DB_VARIABLES, dbPort="3307"),
    )

    assert report.status is RunStatus.COMPLETED
    info, script = fake_database.scripts[0]
    assert (info.user, info.password, info.database, info.host, info.port) == (
        "overextended",
        "pw",
        "overextended",
        "localhost",
        3307,
    )
    assert script.startswith("CREATE TABLE a")
    assert "2 statement(s)" in report.tasks[0].message


def test_query_database_without_credentials_fails(providers, fake_database, tmp_path: pathlib.Path):
    (tmp_path / "install.sql").write_text("SELECT 1;", encoding="utf-8")

    report = _run(providers, tmp_path, [{"action": "query_database", "file": "install.sql"}])

    assert report.status is RunStatus.FAILED
    assert "'dbUsername' is not set" in report.tasks[0].message
    assert fake_database.scripts == []


def test_query_database_server_error_is_a_task_failure(providers, fake_database, tmp_path: pathlib.Path):
    fake_database.fail = True
    (tmp_path / "install.sql").write_text("SELEC 1;", encoding="utf-8")

    report = _run(
        providers,
        tmp_path,
        [{"action": "query_database", "file": "install.sql"}],
        DB_VARIABLES,
        continue_on_error=True,
    )

    assert report.status is RunStatus.COMPLETED_WITH_ERRORS
    assert "syntax error" in report.tasks[0].message


@pytest.mark.parametrize("action", [kind.value for kind in ActionKind])
def test_every_action_reports_missing_parameters(providers, tmp_path: pathlib.Path, action):
    report = _run(providers, tmp_path, [{"action": action}])

    assert report.tasks[0].outcome is TaskOutcome.FAILED
    assert "missing required parameter" in report.tasks[0].message
