"""
Stream Relay CLI.

Commands:
    stream-relay serve      - Run the HTTP relay
    stream-relay bindings   - Show the bindings a profile resolves to
    stream-relay version    - Show the version
"""
from typing import Optional

import typer
from pydantic import ValidationError

from .core.config import Settings
from .core.errors import ConfigurationError
from .core.profiles import resolve_profile

app = typer.Typer(
    name="stream-relay",
    help="Stream Relay - route HTTP-produced messages through a pluggable broker binder.",
    no_args_is_help=True,
)


def _settings(profile: Optional[str], bindings_file: Optional[str]) -> Settings:
    overrides = {}
    if profile:
        overrides["relay_profile"] = profile
    if bindings_file:
        overrides["relay_bindings_file"] = bindings_file
    return Settings(**overrides)


@app.command()
def serve(
    profile: Optional[str] = typer.Option(None, "--profile", "-p", help="kafka, rabbit, nats or memory"),
    host: str = typer.Option("0.0.0.0", help="Bind address"),
    port: Optional[int] = typer.Option(None, help="Port (defaults to SERVICE_PORT)"),
):
    """
    Run the relay HTTP service.
    """
    import uvicorn

    from .main import create_app

    settings = _settings(profile, None)
    uvicorn.run(create_app(settings), host=host, port=port or settings.service_port)


@app.command()
def bindings(
    profile: Optional[str] = typer.Option(None, "--profile", "-p", help="kafka, rabbit, nats or memory"),
    bindings_file: Optional[str] = typer.Option(None, "--file", "-f", help="JSON profile document"),
):
    """
    Print the binder and channel bindings a profile resolves to.
    """
    try:
        resolved = resolve_profile(_settings(profile, bindings_file))
    except (ConfigurationError, ValidationError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    typer.echo(f"binder: {resolved.binder}")
    for channel, spec in resolved.bindings.items():
        group = f" group={spec.group}" if spec.group else ""
        typer.echo(f"  {channel} [{spec.role.value}] -> {spec.destination}{group}")
    if resolved.function_definition:
        typer.echo(f"functions: {', '.join(resolved.function_definition)}")


@app.command()
def version():
    """
    Show the Stream Relay version.
    """
    from . import __version__
    typer.echo(f"Stream Relay v{__version__}")


def main():
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
