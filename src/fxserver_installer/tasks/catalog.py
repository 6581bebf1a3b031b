"""Built-in task implementations shipped with the installer."""

from __future__ import annotations

from ..errors import HandlerFailure
from ..execution.context import DB_NAME_VARIABLE, DB_USER_VARIABLE, ExecutionContext
from ..models import (
    ActionKind,
    DownloadFileParams,
    DownloadSourceTreeParams,
    MovePathParams,
    QueryDatabaseParams,
    RemovePathParams,
    ReplaceStringParams,
    UnzipParams,
)
from .registry import registry


@registry.register(
    ActionKind.DOWNLOAD_SOURCE_TREE,
    summary="Download a remote source tree",
    tags=("network", "git"),
)
def download_source_tree(params: DownloadSourceTreeParams, context: ExecutionContext) -> str:
    dest = context.path(params.dest)
    sources = context.providers.sources
    if params.subpath:
        sources.fetch_tree(params.src, params.ref, params.subpath, dest, timeout=context.timeout)
        return f"Exported '{params.subpath}' of {params.src} into {dest}"
    sources.clone_shallow(params.src, params.ref, dest, timeout=context.timeout)
    return f"Cloned {params.src} ({params.ref or 'default branch'}) into {dest}"


@registry.register(ActionKind.DOWNLOAD_FILE, summary="Download a file", tags=("network",))
def download_file(params: DownloadFileParams, context: ExecutionContext) -> str:
    path = context.path(params.path)
    size = context.providers.downloader.download_to(params.url, path, timeout=context.timeout)
    return f"Downloaded {params.url} to {path} ({size} bytes)"


@registry.register(ActionKind.UNZIP, summary="Extract an archive", tags=("filesystem",))
def unzip(params: UnzipParams, context: ExecutionContext) -> str:
    src = context.path(params.src)
    dest = context.path(params.dest)
    context.providers.filesystem.ensure_dir(dest)
    context.providers.archives.extract(src, dest)
    return f"Extracted {src} into {dest}"


@registry.register(ActionKind.MOVE_PATH, summary="Move a path", tags=("filesystem",))
def move_path(params: MovePathParams, context: ExecutionContext) -> str:
    src = context.path(params.src)
    dest = context.path(params.dest)
    context.providers.filesystem.move(src, dest)
    return f"Moved {src} to {dest}"


@registry.register(ActionKind.QUERY_DATABASE, summary="Run an SQL file", tags=("database",))
def query_database(params: QueryDatabaseParams, context: ExecutionContext) -> str:
    info = context.connection_info()
    for name, value in ((DB_USER_VARIABLE, info.user), (DB_NAME_VARIABLE, info.database)):
        if not value:
            raise HandlerFailure(
                ActionKind.QUERY_DATABASE.value,
                f"database variable '{name}' is not set",
            )
    path = context.path(params.file)
    script = context.providers.filesystem.read_text(path)
    count = context.providers.database.exec_script(info, script, timeout=context.timeout)
    return f"Executed {path} on {info.describe()} ({count} statement(s))"


@registry.register(ActionKind.REPLACE_STRING, summary="Replace text in a file", tags=("configuration",))
def replace_string(params: ReplaceStringParams, context: ExecutionContext) -> str:
    path = context.path(params.file)
    if params.all_variables:
        filesystem = context.providers.filesystem
        original = filesystem.read_text(path)
        updated = context.variables.substitute_known(original)
        detail = "variables"
    elif params.literal:
        filesystem = context.providers.filesystem
        original = filesystem.read_text(path)
        updated = original.replace(params.search, params.replace)
        detail = f"'{params.search}'"
    else:
        return f"Nothing to replace in {path}"

    if updated != original:
        filesystem.write_text(path, updated)
        return f"Replaced {detail} in {path}"
    return f"No {detail} to replace in {path}"


@registry.register(ActionKind.REMOVE_PATH, summary="Remove a path", tags=("filesystem",))
def remove_path(params: RemovePathParams, context: ExecutionContext) -> str:
    path = context.path(params.path)
    if context.providers.filesystem.remove_recursive(path):
        return f"Removed {path}"
    return f"{path} did not exist"
