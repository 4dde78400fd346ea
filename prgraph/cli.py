"""prgraph CLI: dependency graphs and decomposition over PR snapshots."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any

import typer
import yaml
from pydantic import BaseModel, ValidationError

from prgraph.control_plane.errors import PRGraphError
from prgraph.control_plane.github.github_connector import build_connector_from_env
from prgraph.control_plane.github.github_connector_inmemory import InMemoryGitHubConnector
from prgraph.control_plane.orchestration.dispatch import dispatch_payload
from prgraph.control_plane.orchestration.graph_service import GraphService
from prgraph.execution_plane.llm.service import build_provider_from_env
from prgraph.shared.settings import STRATEGIES, get_graph_settings

app = typer.Typer(add_completion=False, help="prgraph: PR dependency graphs and merge planning")

SNAPSHOT_OPTION = typer.Option(
    None,
    "--snapshot",
    help="JSON or YAML snapshot of open PRs; omit to use PRGRAPH_GITHUB_CONNECTOR.",
)
LOG_LEVEL_OPTION = typer.Option("WARNING", "--log-level")


def load_snapshot_file(path: Path) -> dict[str, Any]:
    try:
        text = path.read_text()
    except OSError as exc:
        raise typer.BadParameter(f"Cannot read snapshot {path}: {exc.strerror or exc}") from exc
    try:
        if path.suffix.lower() in {".yaml", ".yml"}:
            payload = yaml.safe_load(text) or {}
        else:
            payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise typer.BadParameter(f"Snapshot is not valid JSON: {exc.msg} (line {exc.lineno})") from exc
    except yaml.YAMLError as exc:
        raise typer.BadParameter(f"Snapshot is not valid YAML: {exc}") from exc
    if not isinstance(payload, dict):
        raise typer.BadParameter("Snapshot must be a mapping with 'repository' and 'changes'")
    if not str(payload.get("repository", "")).strip():
        raise typer.BadParameter("Snapshot is missing 'repository'")
    return payload


def build_service(snapshot: Path | None) -> GraphService:
    settings = get_graph_settings()
    if snapshot is None:
        connector = build_connector_from_env(fetch_workers=settings.fetch_workers)
    else:
        payload = load_snapshot_file(snapshot)
        connector = InMemoryGitHubConnector()
        connector.load_snapshot(str(payload["repository"]).strip(), payload)
    return GraphService(connector, settings=settings, provider=build_provider_from_env())


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _emit(result: BaseModel | dict[str, Any]) -> None:
    payload = result.model_dump(mode="json") if isinstance(result, BaseModel) else result
    typer.echo(json.dumps(payload, indent=2, ensure_ascii=False))


def _run(snapshot: Path | None, log_level: str, action: Callable[[GraphService], Any]) -> None:
    _configure_logging(log_level)
    try:
        service = build_service(snapshot)
    except ValidationError as exc:
        typer.echo(json.dumps({"error": "invalid_input", "details": exc.errors()}, indent=2, default=str), err=True)
        raise typer.Exit(code=2) from exc
    except ValueError as exc:
        typer.echo(json.dumps({"error": str(exc), "reason_code": "invalid_configuration"}, indent=2), err=True)
        raise typer.Exit(code=2) from exc
    try:
        _emit(action(service))
    except PRGraphError as exc:
        typer.echo(json.dumps(exc.as_dict(), indent=2), err=True)
        raise typer.Exit(code=2) from exc
    except ValidationError as exc:
        typer.echo(json.dumps({"error": "invalid_input", "details": exc.errors()}, indent=2, default=str), err=True)
        raise typer.Exit(code=2) from exc


@app.command()
def graph(
    repository: str,
    snapshot: Path = SNAPSHOT_OPTION,
    log_level: str = LOG_LEVEL_OPTION,
) -> None:
    """Build the dependency graph for REPOSITORY (owner/name)."""
    _run(snapshot, log_level, lambda service: service.build_graph(repository))


@app.command("merge-order")
def merge_order(
    repository: str,
    snapshot: Path = SNAPSHOT_OPTION,
    log_level: str = LOG_LEVEL_OPTION,
) -> None:
    """Print the safe merge order, or the cycles preventing one."""
    _run(snapshot, log_level, lambda service: service.get_merge_order(repository))


@app.command()
def impact(
    change_id: str,
    snapshot: Path = SNAPSHOT_OPTION,
    log_level: str = LOG_LEVEL_OPTION,
) -> None:
    """Impact analysis for CHANGE_ID (owner/name#number)."""
    _run(snapshot, log_level, lambda service: service.get_impact_analysis(change_id))


@app.command()
def check(
    change_id: str,
    snapshot: Path = SNAPSHOT_OPTION,
    log_level: str = LOG_LEVEL_OPTION,
) -> None:
    """Report blockers and warnings for merging CHANGE_ID now."""
    _run(snapshot, log_level, lambda service: service.check_merge_conflicts(change_id))


@app.command()
def simulate(
    change_id: str,
    snapshot: Path = SNAPSHOT_OPTION,
    log_level: str = LOG_LEVEL_OPTION,
) -> None:
    """Preview the graph after CHANGE_ID merges."""
    _run(snapshot, log_level, lambda service: service.simulate_merge(change_id))


@app.command()
def decompose(
    change_id: str,
    strategy: str = typer.Option("", "--strategy", help="directory, size or semantic"),
    snapshot: Path = SNAPSHOT_OPTION,
    log_level: str = LOG_LEVEL_OPTION,
) -> None:
    """Split CHANGE_ID into ordered clusters of files."""
    if strategy and strategy not in STRATEGIES:
        raise typer.BadParameter(f"Unknown strategy '{strategy}'. Use one of: {', '.join(STRATEGIES)}")
    _run(snapshot, log_level, lambda service: service.decompose(change_id, strategy or None))


@app.command()
def request(
    payload: str = typer.Argument(..., help='JSON request, e.g. {"kind": "analyze", ...}'),
    snapshot: Path = SNAPSHOT_OPTION,
    log_level: str = LOG_LEVEL_OPTION,
) -> None:
    """Run one typed request payload."""
    try:
        parsed = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise typer.BadParameter(f"Payload is not valid JSON: {exc.msg}") from exc
    if not isinstance(parsed, dict):
        raise typer.BadParameter("Payload must be a JSON object")
    _run(snapshot, log_level, lambda service: dispatch_payload(service, parsed))


if __name__ == "__main__":
    app()
