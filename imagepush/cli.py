"""Thin CLI wrapper for imagepush.

This module provides the command-line interface using Typer.
All business logic is delegated to core modules.
"""

import json
import logging
from typing import TYPE_CHECKING, Annotated

import typer
from rich.console import Console

from imagepush import __version__
from imagepush.config import get_settings, print_settings_json

if TYPE_CHECKING:
    from imagepush.buildinfo.store import BuildInfoStore

app = typer.Typer(
    name="imagepush",
    help="Container image push with build-info collection and transfer summaries",
    no_args_is_help=True,
)
console = Console()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"imagepush version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """Container image push with build-info collection and transfer summaries."""
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@app.command()
def config(
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Show effective configuration."""
    settings = get_settings()
    if json_output:
        typer.echo(print_settings_json(settings))
    else:
        tmp_dir_display = (
            str(settings.tmp_dir) if settings.tmp_dir else "(system default)"
        )
        console.print("[bold]Effective Configuration:[/bold]")
        console.print()
        console.print("[bold]Repository:[/bold]")
        console.print(f"  Repository URL:      {settings.repository_url}")
        console.print(f"  User:                {settings.repository_user or '(none)'}")
        token_display = "****" if settings.repository_token else "(none)"
        console.print(f"  Token:               {token_display}")
        console.print()
        console.print("[bold]Paths:[/bold]")
        console.print(f"  Database URL:        {settings.db_url}")
        console.print(f"  Temp directory:      {tmp_dir_display}")
        console.print()
        console.print("[bold]Operational:[/bold]")
        console.print(f"  Engine:              {settings.engine}")
        console.print(f"  Log level:           {settings.log_level}")
        console.print(f"  Threads:             {settings.threads}")
        console.print(f"  Tag lookup attempts: {settings.tag_lookup_attempts}")
        console.print(f"  Tag lookup interval: {settings.tag_lookup_interval}")
        console.print()
        console.print("[bold]Timeouts (seconds):[/bold]")
        console.print(f"  Engine timeout:      {settings.engine_timeout}")
        console.print(f"  Request timeout:     {settings.request_timeout}")


@app.command()
def push(
    image: Annotated[str, typer.Argument(help="Image reference to push")],
    repository: Annotated[str, typer.Argument(help="Target repository key")],
    build_name: Annotated[
        str | None,
        typer.Option("--build-name", help="Build name for build-info collection"),
    ] = None,
    build_number: Annotated[
        str | None,
        typer.Option("--build-number", help="Build number for build-info collection"),
    ] = None,
    project: Annotated[
        str | None,
        typer.Option("--project", help="Project key of the build"),
    ] = None,
    module: Annotated[
        str | None,
        typer.Option("--module", help="Build-info module id (default: image:tag)"),
    ] = None,
    detailed_summary: Annotated[
        bool,
        typer.Option("--detailed-summary", help="Print the pushed layers"),
    ] = False,
    validate_sha: Annotated[
        bool,
        typer.Option(
            "--validate-sha", help="Find pushed layers by image digest instead of tag"
        ),
    ] = False,
    skip_login: Annotated[
        bool,
        typer.Option("--skip-login", help="Do not log in to the registry"),
    ] = False,
    engine_args: Annotated[
        list[str] | None,
        typer.Option("--engine-arg", help="Extra argument for the push (repeatable)"),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output summary as JSON"),
    ] = False,
) -> None:
    """Push an image and record the pushed layers.

    Build-info is collected when --build-name and --build-number are given.
    """
    from imagepush.errors import PushError
    from imagepush.push.service import run_push
    from imagepush.types import BuildCoordinates, PushRequest

    if bool(build_name) != bool(build_number):
        console.print(
            "[red]--build-name and --build-number must be used together[/red]"
        )
        raise typer.Exit(code=1)

    try:
        request = PushRequest(
            image=image,
            repository=repository,
            build=BuildCoordinates(
                name=build_name, number=build_number, project=project, module=module
            ),
            engine_args=tuple(engine_args or ()),
            collect_build_info=bool(build_name and build_number),
            detailed_summary=detailed_summary,
            validate_by_digest=validate_sha,
        )
    except ValueError as e:
        console.print(f"[red]Invalid request: {e}[/red]")
        raise typer.Exit(code=1) from None

    try:
        result = run_push(request, login=not skip_login)
    except PushError as e:
        console.print(f"[red]Push failed ({e.code}): {e}[/red]")
        raise typer.Exit(code=1) from None

    try:
        if json_output:
            output = {
                "success_count": result.success_count,
                "files": [d.to_dict() for d in result.details()],
            }
            typer.echo(json.dumps(output, indent=2))
            return

        console.print(f"[green]Pushed {image} to {repository}[/green]")
        if request.collect_build_info:
            console.print(f"  Build-info recorded for {build_name}/{build_number}")
        if detailed_summary:
            console.print(f"[bold]Pushed layers ({result.success_count}):[/bold]")
            for detail in result.details():
                digest = detail.sha256[:16] + "..." if detail.sha256 else "(no digest)"
                console.print(f"  {detail.target_path}  {digest}")
    finally:
        result.close()


builds_app = typer.Typer(help="Inspect collected build-info")
app.add_typer(builds_app, name="builds")


def _open_store() -> "BuildInfoStore":
    """Open the build-info store from settings."""
    from imagepush.buildinfo.store import BuildInfoStore
    from imagepush.db import open_session_factory

    return BuildInfoStore(open_session_factory(get_settings().db_url))


@builds_app.command("list")
def builds_list(
    name: Annotated[
        str | None,
        typer.Option("--name", "-n", help="Filter by build name"),
    ] = None,
    limit: Annotated[
        int,
        typer.Option("--limit", "-l", help="Maximum number of builds"),
    ] = 20,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """List recorded builds."""
    store = _open_store()
    builds = store.list_builds(name=name, limit=limit)

    if not builds:
        if json_output:
            typer.echo("[]")
        else:
            console.print("[yellow]No builds found[/yellow]")
        return

    if json_output:
        output = [
            {
                "name": b.name,
                "number": b.number,
                "project": b.project or None,
                "started_at": b.started_at.isoformat() if b.started_at else None,
                "modules": len(b.modules),
            }
            for b in builds
        ]
        typer.echo(json.dumps(output, indent=2))
    else:
        console.print(f"[bold]Found {len(builds)} build(s):[/bold]")
        console.print()
        for b in builds:
            console.print(f"  [green]{b.name}/{b.number}[/green]")
            if b.project:
                console.print(f"    Project: {b.project}")
            console.print(f"    Modules: {len(b.modules)}")
            console.print()


@builds_app.command("show")
def builds_show(
    name: Annotated[str, typer.Argument(help="Build name")],
    number: Annotated[str, typer.Argument(help="Build number")],
    project: Annotated[
        str | None,
        typer.Option("--project", help="Project key of the build"),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Show the modules and artifacts of a build."""
    from imagepush.buildinfo.store import BuildNotFoundError

    store = _open_store()
    try:
        build = store.get_build(name, number, project)
    except BuildNotFoundError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=1) from None

    if json_output:
        output = {
            "name": build.name,
            "number": build.number,
            "project": build.project or None,
            "modules": [
                {
                    "id": m.module_id,
                    "type": m.type,
                    "artifacts": [
                        {"name": a.name, "path": a.path, "sha256": a.sha256}
                        for a in m.artifacts
                    ],
                }
                for m in build.modules
            ],
        }
        typer.echo(json.dumps(output, indent=2))
        return

    console.print(f"[bold]Build {build.name}/{build.number}[/bold]")
    if build.project:
        console.print(f"  Project: {build.project}")
    for m in build.modules:
        console.print()
        console.print(f"  [green]Module {m.module_id}[/green] ({m.type})")
        for a in m.artifacts:
            digest = a.sha256[:16] + "..." if a.sha256 else "(no digest)"
            console.print(f"    {a.path}  {digest}")


if __name__ == "__main__":
    app()
