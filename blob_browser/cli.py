"""Command line front end for the blob browser."""

from dataclasses import replace
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table
from rich.tree import Tree

from .controller import BlobBrowserController
from .credentials import (
    DEFAULT_CONTAINER,
    DEFAULT_ENDPOINT_SUFFIX,
    DEFAULT_PROTOCOL,
    SecretKey,
    load_connection_settings,
)
from .errors import BlobBrowserError, ConfigurationError, NotFoundError
from .presenter import format_error
from .profiles import ConnectionProfile
from .settings import AppSettings, SettingsStorage
from .tree import FolderNode, NamespaceProjector
from .ui_utils import format_last_modified, format_size, load_package_info, suggest_download_filename

app = typer.Typer(
    name="pyblob",
    help="Browse and manage blobs in a storage container",
    add_completion=False,
)
profile_app = typer.Typer(help="Manage saved connection profiles")
app.add_typer(profile_app, name="profile")
console = Console()

EXIT_ERROR = 1
EXIT_NOT_FOUND = 2


def open_profiles(settings: AppSettings | None = None) -> BlobBrowserController:
    """Create an unconnected controller backed by the saved profiles."""

    return BlobBrowserController(settings=settings or SettingsStorage().load())


def build_controller(options: dict | None = None) -> BlobBrowserController:
    """Create a connected controller.

    ``--profile`` wins, then the environment, then the last profile used.
    """

    options = options or {}
    settings_storage = SettingsStorage()
    settings = settings_storage.load()
    controller = open_profiles(settings)
    profile = options.get("profile")
    container = options.get("container")
    if not profile:
        try:
            connection = load_connection_settings()
        except ConfigurationError:
            if not settings.last_connection:
                raise
            profile = settings.last_connection
        else:
            controller.connect(
                connection_string=connection.connection_string,
                container=container or connection.container,
            )
            return controller
    controller.connect_with_profile(profile, container=container)
    if settings.last_connection != profile:
        settings_storage.save(replace(settings, last_connection=profile))
    return controller


def _fail(exc: Exception) -> None:
    console.print(f"[red]{format_error(exc)}[/red]")
    code = EXIT_NOT_FOUND if isinstance(exc, NotFoundError) else EXIT_ERROR
    raise typer.Exit(code)


def _print_version(value: bool) -> None:
    if not value:
        return
    info = load_package_info()
    console.print(f"{info.name} {info.version}".strip())
    raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    profile: Optional[str] = typer.Option(None, "--profile", "-p", help="Saved connection profile"),
    container: Optional[str] = typer.Option(None, "--container", "-c", help="Container name"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
    version: bool = typer.Option(
        False, "--version", callback=_print_version, is_eager=True, help="Show the version and exit"
    ),
):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.obj = {"profile": profile, "container": container}


@app.command()
def upload(
    ctx: typer.Context,
    source: Path = typer.Argument(..., exists=True, dir_okay=False, help="Local file to upload"),
    prefix: str = typer.Option("", "--prefix", help="Folder to upload into"),
    name: Optional[str] = typer.Option(None, "--name", "-n", help="Blob name, defaults to the file name"),
    content_type: Optional[str] = typer.Option(None, "--content-type", help="Content type override"),
):
    """Upload a local file."""
    try:
        controller = build_controller(ctx.obj)
        record = controller.upload_file(
            source_path=source,
            prefix=prefix,
            name=name,
            content_type=content_type,
        )
    except (BlobBrowserError, ValueError) as exc:
        _fail(exc)
    console.print(f"[green]Uploaded[/green] {record.name} ({format_size(record.size)}, etag {record.etag})")


@app.command()
def download(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Blob name"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Destination path"),
):
    """Download a blob to a local file."""
    destination = output or Path(suggest_download_filename(name))
    try:
        controller = build_controller(ctx.obj)
        record = controller.download_object(name=name, destination=destination)
    except BlobBrowserError as exc:
        _fail(exc)
    console.print(f"[green]Downloaded[/green] {record.name} -> {destination} ({format_size(record.size)})")


@app.command()
def delete(ctx: typer.Context, name: str = typer.Argument(..., help="Blob name")):
    """Delete a blob."""
    try:
        controller = build_controller(ctx.obj)
        controller.delete_object(name=name)
    except BlobBrowserError as exc:
        _fail(exc)
    console.print(f"[green]Deleted[/green] {name}")


@app.command("ls")
def list_objects(ctx: typer.Context, prefix: str = typer.Argument("", help="Only list names starting with this prefix")):
    """List blobs in the container."""
    try:
        controller = build_controller(ctx.obj)
        records = controller.list_objects(prefix=prefix)
    except BlobBrowserError as exc:
        _fail(exc)

    if not records:
        console.print("[dim]No blobs found[/dim]")
        return
    table = Table(show_header=True, header_style="bold")
    table.add_column("Name")
    table.add_column("Size", justify="right")
    table.add_column("Type")
    table.add_column("Modified")
    for record in records:
        table.add_row(
            record.name,
            format_size(record.size),
            record.content_type or "-",
            format_last_modified(record.last_modified),
        )
    console.print(table)
    console.print(f"{len(records)} blob(s)")


def _render_folder(node: FolderNode, branch: Tree) -> None:
    for child in node.child_folders():
        _render_folder(child, branch.add(f"[bold blue]{child.name}/[/bold blue]"))
    for record in node.records:
        if record.is_folder_marker:
            continue
        branch.add(f"{record.basename} [dim]({format_size(record.size)})[/dim]")


@app.command()
def tree(ctx: typer.Context, prefix: str = typer.Argument("", help="Folder to show")):
    """Show blobs grouped into folders."""
    folder = prefix.strip("/")
    try:
        controller = build_controller(ctx.obj)
        records = controller.list_objects(prefix=f"{folder}/" if folder else "")
    except BlobBrowserError as exc:
        _fail(exc)

    projector = NamespaceProjector(records)
    node = projector.folder(folder)
    if node is None:
        console.print("[dim]No blobs found[/dim]")
        return
    root = Tree(f"[bold]{controller.container}/{folder}[/bold]")
    _render_folder(node, root)
    console.print(root)



@profile_app.command("add")
def add_profile(
    name: str = typer.Argument(..., help="Profile name"),
    account_name: str = typer.Option(..., "--account-name", "-a", help="Storage account name"),
    account_key: str = typer.Option(
        ..., "--account-key", prompt=True, hide_input=True, help="Base64 account key, stored in the OS keychain"
    ),
    container: str = typer.Option(DEFAULT_CONTAINER, "--container", "-c", help="Container name"),
    endpoint_suffix: str = typer.Option(DEFAULT_ENDPOINT_SUFFIX, "--endpoint-suffix", help="Endpoint suffix"),
    protocol: str = typer.Option(DEFAULT_PROTOCOL, "--protocol", help="http or https"),
    blob_endpoint: str = typer.Option("", "--blob-endpoint", help="Explicit blob endpoint, e.g. an emulator"),
):
    """Save a connection profile, replacing one with the same name."""
    profile = ConnectionProfile(
        name=name,
        account_name=account_name,
        account_key=account_key.strip(),
        container=container,
        endpoint_suffix=endpoint_suffix,
        protocol=protocol,
        blob_endpoint=blob_endpoint.rstrip("/"),
    )
    try:
        SecretKey(profile.account_key).to_bytes()
        open_profiles().save_profile(profile)
    except BlobBrowserError as exc:
        _fail(exc)
    console.print(f"[green]Saved profile[/green] {name} ({profile.endpoint})")


@profile_app.command("ls")
def list_profiles():
    """List saved connection profiles."""
    settings = SettingsStorage().load()
    profiles = open_profiles(settings).list_profiles()
    if not profiles:
        console.print("[dim]No saved profiles[/dim]")
        return
    table = Table(show_header=True, header_style="bold")
    table.add_column("Name")
    table.add_column("Account")
    table.add_column("Container")
    table.add_column("Endpoint")
    for profile in profiles:
        marker = " *" if profile.name == settings.last_connection else ""
        table.add_row(f"{profile.name}{marker}", profile.account_name, profile.container, profile.endpoint)
    console.print(table)


@profile_app.command("rm")
def remove_profile(name: str = typer.Argument(..., help="Profile name")):
    """Delete a saved profile and its keychain entry."""
    settings_storage = SettingsStorage()
    settings = settings_storage.load()
    try:
        open_profiles(settings).delete_profile(name)
    except ValueError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(EXIT_NOT_FOUND)
    if settings.last_connection == name:
        settings_storage.save(replace(settings, last_connection=""))
    console.print(f"[green]Deleted profile[/green] {name}")
