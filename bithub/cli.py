from __future__ import annotations

import asyncio
import json
from collections.abc import Awaitable, Callable
from typing import Any

import typer
from pydantic import BaseModel

from bithub.adapters.base import ForumAdapter
from bithub.adapters.http import HttpForumAdapter
from bithub.adapters.mock import MockForumAdapter
from bithub.config import Settings, load_settings
from bithub.controller import Controller
from bithub.directory import PeerDirectory
from bithub.domain import PrivateMessage, TopicDraft
from bithub.errors import ConfigurationError, PermanentServiceError, ServiceError, ValidationError
from bithub.janitor import Janitor
from bithub.logging_setup import setup_logging
from bithub.policy import GenesisPurityPolicy
from bithub.scheduler import run_schedule
from bithub.transport import TransportGate

app = typer.Typer(help="Bithub Bridge - forum API CLI for agents")

Command = Callable[[ForumAdapter, Settings], Awaitable[Any]]


def _build_adapter(settings: Settings) -> ForumAdapter:
    key = settings.ADAPTER.lower()
    if key == "http":
        gate = TransportGate.from_settings(settings)
        return HttpForumAdapter(gate, max_content_length=settings.MAX_CONTENT_LENGTH)
    if key == "mock":
        return MockForumAdapter(settings, auto_reply="Acknowledged by the mock swarm.")
    raise typer.BadParameter("ADAPTER must be 'http' or 'mock'.")


def _to_jsonable(result: Any) -> Any:
    if isinstance(result, BaseModel):
        return result.model_dump(mode="json")
    if isinstance(result, list):
        return [_to_jsonable(item) for item in result]
    return result


def _emit(data: Any) -> None:
    typer.echo(json.dumps(_to_jsonable(data), indent=2, ensure_ascii=False, default=str))


def _fail(exc: Exception, code: int) -> None:
    payload: dict[str, Any] = {"success": False, "error": str(exc)}
    if isinstance(exc, PermanentServiceError):
        payload["status_code"] = exc.status_code
    _emit(payload)
    raise typer.Exit(code=code)


def _run(command: Command) -> None:
    settings = load_settings()

    async def _main() -> Any:
        adapter = _build_adapter(settings)
        try:
            return await command(adapter, settings)
        finally:
            await adapter.aclose()

    try:
        result = asyncio.run(_main())
    except (ConfigurationError, ValidationError) as exc:
        _fail(exc, 1)
    except ServiceError as exc:
        _fail(exc, 2)
    else:
        _emit(result)


@app.callback()
def main(json_logs: bool = typer.Option(False, "--json-logs", help="Enable JSON logs")):
    settings = load_settings()
    setup_logging(json_logs=json_logs or settings.LOG_JSON, level=settings.LOG_LEVEL)


@app.command()
def topic(topic_id: int = typer.Argument(...)):
    """Fetch a topic and its post stream."""
    _run(lambda adapter, _s: adapter.get_topic(topic_id))


@app.command()
def post(post_id: int = typer.Argument(...)):
    """Fetch a single post."""
    _run(lambda adapter, _s: adapter.get_post(post_id))


@app.command()
def send(
    to: list[str] = typer.Option(..., "--to", help="Recipient handle (repeatable)"),
    title: str = typer.Option(..., "--title"),
    body: str = typer.Option(..., "--body"),
    wait: bool = typer.Option(False, "--wait/--no-wait", help="Wait for the first reply"),
    timeout: float | None = typer.Option(None, "--timeout", help="Seconds to wait for a reply"),
):
    """Send a private message, optionally waiting for a reply."""

    async def _send(adapter: ForumAdapter, settings: Settings):
        ctrl = Controller(adapter, settings)
        payload = PrivateMessage(recipients=to, title=title, raw=body)
        return await ctrl.send_private_message_and_wait(payload, wait_for_response=wait, timeout_s=timeout)

    _run(_send)


@app.command()
def reply(
    topic_id: int = typer.Option(..., "--topic-id"),
    body: str = typer.Option(..., "--body"),
    to_post: int | None = typer.Option(None, "--to-post", help="Post number being replied to"),
):
    """Reply inside an existing topic."""
    _run(lambda adapter, _s: adapter.reply_to_post(topic_id, body, to_post))


@app.command()
def deploy(
    title: str = typer.Option(..., "--title"),
    body: str = typer.Option(..., "--body"),
    category_id: int = typer.Option(..., "--category-id"),
):
    """Create a topic (core workflow) in a category."""

    async def _deploy(adapter: ForumAdapter, settings: Settings):
        policy = GenesisPurityPolicy(settings.GENESIS_CATEGORY_IDS)
        draft = TopicDraft(title=title, raw=body, category_id=category_id)
        return await adapter.create_topic(draft, policy=policy)

    _run(_deploy)


@app.command()
def chat(channel_id: int = typer.Argument(...), message: str = typer.Argument(...)):
    """Post a message to a chat channel."""

    async def _chat(adapter: ForumAdapter, _s: Settings):
        return {"success": await adapter.create_chat_message(channel_id, message), "channel_id": channel_id}

    _run(_chat)


@app.command()
def handshake(
    target: str = typer.Argument(..., help="Bot handle or core name"),
    body: str = typer.Option(..., "--body"),
    category_id: int | None = typer.Option(None, "--category-id"),
):
    """Open a handshake topic routed by the local peer directory."""

    async def _handshake(adapter: ForumAdapter, settings: Settings):
        directory = PeerDirectory(
            settings.RESOURCES_DIR,
            default_category_id=settings.HANDSHAKE_CATEGORY_ID,
            ttl_s=settings.DIRECTORY_TTL_S,
        )
        ctrl = Controller(adapter, settings)
        return await ctrl.send_handshake(target, body, category_id=category_id, directory=directory)

    _run(_handshake)


@app.command("list-category")
def list_category(category_id: int = typer.Argument(...)):
    """List the topics of a category."""
    _run(lambda adapter, _s: adapter.list_category_topics(category_id))


@app.command()
def registry(topic_id: int | None = typer.Option(None, "--topic-id")):
    """List swarm peers from the remote registry topic."""
    _run(lambda adapter, settings: Controller(adapter, settings).fetch_registry(topic_id))


@app.command()
def cores():
    """List core workflows from the local registry."""
    settings = load_settings()
    directory = PeerDirectory(settings.RESOURCES_DIR, ttl_s=settings.DIRECTORY_TTL_S)
    _emit(directory.list_cores())


@app.command()
def nuke(
    category_id: int = typer.Argument(...),
    yes: bool = typer.Option(False, "--yes", help="Confirm deletion of every topic"),
):
    """Delete every topic in a category."""
    if not yes:
        typer.echo("Refusing to nuke without --yes.")
        raise typer.Exit(code=1)
    _run(lambda adapter, _s: Janitor(adapter).nuke_category(category_id))


@app.command("run-janitor")
def run_janitor(
    category_id: int = typer.Option(..., "--category-id"),
    cron: str | None = typer.Option(None, "--cron", help="crontab schedule like '0 3 * * *'"),
    enable: bool = typer.Option(False, "--enable"),
):
    """Nuke a category on a cron schedule."""
    settings = load_settings()

    async def _job():
        adapter = _build_adapter(settings)
        try:
            return await Janitor(adapter).nuke_category(category_id)
        finally:
            await adapter.aclose()

    run_schedule(_job, settings=settings, category_id=category_id, cron=cron, enable=enable)
