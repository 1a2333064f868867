"""CLI entrypoint for Campus Chat."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Optional

import requests
import typer

app = typer.Typer(name="campus-chat", help="Campus Chat command-line interface")

DEFAULT_HOST = "http://127.0.0.1:8000"


def _resolve_host(override: Optional[str]) -> str:
    if override:
        return override.rstrip('/')
    env_host = os.environ.get("CCHAT_HOST")
    if env_host:
        return env_host.rstrip('/')
    return DEFAULT_HOST


def _request(method: str, path: str, host: Optional[str] = None, **kwargs) -> requests.Response:
    base = _resolve_host(host)
    url = f"{base}{path}"
    resp = requests.request(method, url, timeout=120, **kwargs)
    if not resp.ok:
        try:
            detail = resp.json()
        except ValueError:
            detail = resp.text
        typer.echo(f"Request failed ({resp.status_code}): {detail}", err=True)
        raise typer.Exit(code=1)
    return resp


@app.command()
def chat(
    message: str = typer.Argument(..., help="Message to send"),
    user: Optional[str] = typer.Option(None, "--user", help="Conversation identity"),
    raw: bool = typer.Option(False, "--raw", help="Print the full JSON response"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Send one chat message."""
    payload: dict[str, object] = {"message": message}
    if user:
        payload["userId"] = user
    resp = _request("POST", "/chat", host=host, json=payload)
    body = resp.json()
    if raw:
        typer.echo(json.dumps(body, indent=2, ensure_ascii=False))
        return
    typer.echo(body.get("response", ""))
    typer.echo(f"\n[{body.get('model')} / {body.get('intent')}]", err=True)


@app.command()
def ingest(
    path: Optional[list[Path]] = typer.Option(None, "--path", help="Ingest this file (repeatable)"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Ingest the content directory, or specific files."""
    body: dict[str, object] = {}
    if path:
        body["paths"] = [str(p.expanduser()) for p in path]
    resp = _request("POST", "/ingest", host=host, json=body)
    typer.echo(json.dumps(resp.json(), indent=2))


@app.command()
def audit(
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Report duplicate and stale points in the vector collection."""
    resp = _request("GET", "/freshness", host=host)
    typer.echo(json.dumps(resp.json(), indent=2))


@app.command()
def update(
    force: bool = typer.Option(False, "--force", help="Rebuild even when the data is fresh"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Rebuild the vector collection when the audit recommends it."""
    resp = _request("POST", "/freshness/update", host=host, json={"force": force})
    typer.echo(json.dumps(resp.json(), indent=2))


@app.command()
def stats(
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Show event, vector store and retrieval statistics."""
    resp = _request("GET", "/chat/stats", host=host)
    typer.echo(json.dumps(resp.json(), indent=2))


if __name__ == "__main__":
    app()
