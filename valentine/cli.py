"""
Command line interface for the Valentine snapshot service and client.
"""

import asyncio
import logging
import mimetypes
from pathlib import Path
from typing import Annotated, Optional

import cyclopts
from dotenv import load_dotenv
from rich.console import Console

from valentine.config import ClientSettings
from valentine.content.models import SLOT_COUNT, MediaPayload
from valentine.local_progress import LocalProgressStore
from valentine.remote.client import SyncClient
from valentine.remote.http_backend import HttpSnapshotBackend
from valentine.remote.share import build_shareable_link, set_save_id_in_url
from valentine.remote.tokens import WriteTokenStore, default_token_backend
from valentine.remote.watcher import ConflictWatcher, WatchTarget
from valentine.session import EditorSession

console = Console()

app = cyclopts.App(name="valentine", help="Save, restore and share Valentine cards")


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def _build_client(settings: ClientSettings) -> SyncClient:
    backend = HttpSnapshotBackend(
        base_url=settings.base_url,
        token=settings.api_token,
        timeout=settings.timeout,
    )
    token_store = WriteTokenStore(
        default_token_backend(settings.token_dir, use_keyring=settings.use_keyring)
    )
    return SyncClient(backend, token_store=token_store)


def _read_video(value: str) -> tuple[MediaPayload, Optional[str]]:
    """Parse PATH[=HEADING] and read the file."""
    path_str, _, heading = value.partition("=")
    path = Path(path_str).expanduser()
    mime_type, _ = mimetypes.guess_type(path.name)
    media = MediaPayload(
        data=path.read_bytes(),
        mime_type=mime_type or "video/mp4",
        name=path.name,
    )
    return media, heading or None


@app.command
def serve(
    host: Annotated[str, cyclopts.Parameter(help="Host to bind to")] = "0.0.0.0",
    port: Annotated[int, cyclopts.Parameter(help="Port to listen on")] = 8000,
):
    """
    Run the snapshot service.

    Example:
        valentine serve --port 8000
    """
    import uvicorn

    from valentine.service.app import create_app

    console.print(f"[bold]Starting Valentine snapshot service on {host}:{port}[/bold]")
    uvicorn.run(create_app(), host=host, port=port)


@app.command
def save(
    landing: Annotated[
        Optional[str], cyclopts.Parameter(help="Landing message")
    ] = None,
    final: Annotated[Optional[str], cyclopts.Parameter(help="Final message")] = None,
    video: Annotated[
        Optional[list[str]],
        cyclopts.Parameter(help="Video file as PATH or PATH=HEADING (repeatable)"),
    ] = None,
    save_id: Annotated[
        Optional[str], cyclopts.Parameter(help="Update this existing save")
    ] = None,
    global_latest: Annotated[
        bool, cyclopts.Parameter(help="Save to the shared global latest slot")
    ] = False,
    verbose: Annotated[bool, cyclopts.Parameter(help="Enable verbose logging")] = False,
):
    """
    Create a save, update an existing one, or overwrite the global latest slot.

    Examples:
        valentine save --landing "Hi!" --video first.mp4="Our first date"
        valentine save --save-id abc123 --final "See you tonight"
        valentine save --global-latest --landing "Hello everyone"
    """
    _configure_logging(verbose)
    settings = ClientSettings()

    if save_id and global_latest:
        console.print("[red]Error: use either --save-id or --global-latest, not both[/red]")
        return 1

    videos = video or []
    if len(videos) > SLOT_COUNT:
        console.print(f"[red]Error: at most {SLOT_COUNT} videos are supported[/red]")
        return 1

    try:
        media = [_read_video(value) for value in videos]
    except OSError as e:
        console.print(f"[red]Error reading video: {e}[/red]")
        return 1

    async def run():
        session = EditorSession(
            _build_client(settings),
            local_store=LocalProgressStore(settings.progress_dir),
            app_url=settings.app_url,
            is_authenticated=lambda: bool(settings.api_token),
            watch=False,
        )
        try:
            url = settings.app_url
            if save_id:
                url = set_save_id_in_url(url, save_id)
            await session.load(url)
            if session.restore_error:
                console.print(f"[yellow]{session.restore_error}[/yellow]")
            if not global_latest and not save_id:
                await session.set_global_latest_mode(False)

            if landing is not None:
                session.set_landing_message(landing)
            if final is not None:
                session.set_final_message(final)
            for index, (payload, heading) in enumerate(media):
                if heading is not None:
                    session.update_video_slot(index, heading=heading, local_media=payload)
                else:
                    session.update_video_slot(index, local_media=payload)

            with console.status("Saving..."):
                result = await session.save()
            return session, result
        finally:
            await session.client.close()

    session, result = asyncio.run(run())

    if not result.success:
        console.print(f"[red]Error: {result.error}[/red]")
        return 1

    console.print(f"[green]Saved version {result.version}[/green]")
    if session.shareable_link:
        console.print(f"Share link: [bold]{session.shareable_link}[/bold]")


@app.command
def fetch(
    save_id: Annotated[
        Optional[str], cyclopts.Parameter(help="Save to fetch")
    ] = None,
    global_latest: Annotated[
        bool, cyclopts.Parameter(help="Fetch the global latest slot")
    ] = False,
    output_dir: Annotated[
        Optional[Path], cyclopts.Parameter(help="Directory to write embedded videos to")
    ] = None,
    verbose: Annotated[bool, cyclopts.Parameter(help="Enable verbose logging")] = False,
):
    """
    Fetch a save and print its messages and video headings.

    Examples:
        valentine fetch --save-id abc123 --output-dir ./videos
        valentine fetch --global-latest
    """
    _configure_logging(verbose)
    settings = ClientSettings()

    if bool(save_id) == global_latest:
        console.print("[red]Error: use exactly one of --save-id or --global-latest[/red]")
        return 1

    async def run():
        client = _build_client(settings)
        try:
            if global_latest:
                return await client.fetch_global_latest()
            return await client.fetch_remote_save(save_id)
        finally:
            await client.close()

    result = asyncio.run(run())
    if not result.success:
        console.print(f"[red]Error: {result.error}[/red]")
        return 1

    content = result.content
    console.print(f"[bold]Version {result.version}[/bold]")
    console.print(f"Landing: {content.landing_message}")
    for index, slot in enumerate(content.video_slots, start=1):
        if slot.local_media is not None:
            source = f"embedded {slot.local_media.mime_type}, {slot.local_media.size} bytes"
        elif slot.remote_url:
            source = slot.remote_url
        else:
            source = "no video"
        console.print(f"  {index}. {slot.heading} ({source})")

        if output_dir is not None and slot.local_media is not None:
            output_dir.mkdir(parents=True, exist_ok=True)
            extension = mimetypes.guess_extension(slot.local_media.mime_type) or ".bin"
            target = output_dir / f"video_{index}{extension}"
            target.write_bytes(slot.local_media.data)
            console.print(f"     written to {target}")
    console.print(f"Final: {content.final_message}")


@app.command
def watch(
    version: Annotated[int, cyclopts.Parameter(help="Version you currently hold")],
    save_id: Annotated[
        Optional[str], cyclopts.Parameter(help="Save to watch")
    ] = None,
    global_latest: Annotated[
        bool, cyclopts.Parameter(help="Watch the global latest slot")
    ] = False,
    interval: Annotated[
        Optional[float], cyclopts.Parameter(help="Seconds between checks")
    ] = None,
    verbose: Annotated[bool, cyclopts.Parameter(help="Enable verbose logging")] = False,
):
    """
    Poll for versions newer than the one you hold until interrupted.

    Example:
        valentine watch --save-id abc123 --version 3
    """
    _configure_logging(verbose)
    settings = ClientSettings()

    target = WatchTarget(save_id=save_id, global_latest=global_latest)
    if bool(save_id) == global_latest:
        console.print("[red]Error: use exactly one of --save-id or --global-latest[/red]")
        return 1

    def report(newer: int) -> None:
        console.print(f"[yellow]A newer version ({newer}) of {target.describe()} is available[/yellow]")

    async def run():
        client = _build_client(settings)
        watcher = ConflictWatcher(
            client,
            target,
            has_unsaved_changes=lambda: False,
            current_version=version,
            interval=interval or settings.poll_interval,
            on_newer_version=report,
        )
        watcher.start()
        try:
            await asyncio.Event().wait()
        finally:
            await watcher.stop()
            await client.close()

    console.print(f"Watching {target.describe()} from version {version} (Ctrl+C to stop)")
    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        console.print("Stopped")


@app.command
def link(save_id: str):
    """Print the shareable link for a save."""
    settings = ClientSettings()
    console.print(build_shareable_link(settings.app_url, save_id))


def main():
    load_dotenv()
    app()
