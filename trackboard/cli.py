"""trackboard CLI."""

from __future__ import annotations

import json
from typing import Any

import requests
import typer

from trackboard.server.app import ServerApp, create_app_from_env

app = typer.Typer(add_completion=False, help="trackboard: ticket/sprint tracker backend")


def _parse_data(data: str) -> dict[str, Any]:
    if not data.strip():
        return {}
    try:
        parsed = json.loads(data)
    except json.JSONDecodeError as exc:
        raise typer.BadParameter(f"--data is not valid JSON: {exc.msg}") from exc
    if not isinstance(parsed, dict):
        raise typer.BadParameter("--data must be a JSON object")
    return parsed


def _post_remote(url: str, action: str, data: dict[str, Any]) -> dict[str, Any]:
    response = requests.post(
        url.rstrip("/") + "/api",
        json={"action": action, "data": data},
        timeout=15,
    )
    response.raise_for_status()
    return response.json()


def _local_service() -> ServerApp:
    return create_app_from_env()


def _emit(payload: dict[str, Any]) -> None:
    typer.echo(json.dumps(payload, indent=2))


@app.command()
def init() -> None:
    """Provision the tables and seed rows, then print the settings."""
    service = _local_service()
    _emit(service.load_initial_data()["settings"])


@app.command()
def show() -> None:
    """Print the full board snapshot."""
    _emit(_local_service().load_initial_data())


@app.command()
def call(
    action: str,
    data: str = typer.Option("", "--data", help="JSON object payload"),
    url: str = typer.Option("", "--url", help="base URL of a running server"),
) -> None:
    """Run one gateway action locally or against a running server."""
    payload = _parse_data(data)
    if url:
        try:
            result = _post_remote(url, action, payload)
        except requests.RequestException as exc:
            typer.echo(f"Error: {exc}", err=True)
            raise typer.Exit(code=2) from exc
    else:
        result = _local_service().execute(action, payload)
    _emit(result)
    if result.get("status") != "success":
        raise typer.Exit(code=1)


@app.command()
def serve_command() -> None:
    """Print the supported uvicorn startup command."""
    typer.echo("uvicorn trackboard.server.app:app --host 127.0.0.1 --port 8000")


if __name__ == "__main__":
    app()
