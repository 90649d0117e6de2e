"""brainbot CLI entry point."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import typer
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.syntax import Syntax
from rich.table import Table

app = typer.Typer(name="brainbot", no_args_is_help=True)
cron_app = typer.Typer(help="Manage scheduled cron jobs.", no_args_is_help=True)
app.add_typer(cron_app, name="cron")

console = Console()

if TYPE_CHECKING:
    from .config.schema import Config


def _version_callback(value: bool) -> None:
    if value:
        from . import __version__

        console.print(f"brainbot v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    """Decision engine for an always-on device assistant."""


# Starting souls offered by onboarding; soul_set replaces them at runtime
PERSONALITIES = {
    "friendly": (
        "Friendly",
        "Warm and conversational",
        "You are warm, upbeat and encouraging. Keep replies short and concrete.",
    ),
    "professional": (
        "Professional",
        "Concise and task-focused",
        "You are precise and efficient. Answer directly, skip pleasantries.",
    ),
    "minimal": (
        "Minimal",
        "Just the facts",
        "Maximum information, minimum words.",
    ),
}


def _load() -> Config:
    from .config.loader import ensure_dirs, load_config

    config = load_config()
    ensure_dirs(config)
    return config


def _require_provider(config: Config) -> None:
    if not any(p.api_key for p in config.providers.values()):
        from .settings.store import SettingsStore

        if not SettingsStore(config.data_path).get_api_keys():
            console.print("[red]No LLM provider key configured. Run 'brainbot onboard' first.[/red]")
            raise typer.Exit(1)


async def _run_agent_mode(config: Config) -> None:
    """Engine plus an interactive terminal channel."""
    from .channels.cli import CLIChannel
    from .channels.manager import ChannelManager
    from .engine import Engine

    config.delivery.channel = "cli"
    engine = Engine(config)
    manager = ChannelManager(config, engine.bus)
    cli = CLIChannel(engine.bus, config.home_dir / "history")
    manager.register(cli)

    engine_task = asyncio.create_task(engine.run())
    bus_task = asyncio.create_task(engine.bus.start())
    try:
        await cli.start()
    finally:
        engine.stop()
        await engine.bus.stop()
        await asyncio.gather(engine_task, bus_task, return_exceptions=True)


async def _run_gateway_mode(config: Config) -> None:
    """Engine with Telegram and the HTTP API."""
    from .api.server import ApiServer
    from .channels.manager import ChannelManager
    from .engine import Engine

    engine = Engine(config)
    manager = ChannelManager(config, engine.bus)
    manager.setup_channels()

    api: ApiServer | None = None
    if config.api.enabled:
        api = ApiServer(engine.create_api_app(), config.api)
        api.start()

    provider, model, _ = engine.provider.active_selection()
    console.print(
        Panel.fit(
            "[bold blue]brainbot gateway[/bold blue] is running\n"
            f"Channels: {', '.join(manager.active_channels) or 'none'}\n"
            f"API: {f'http://{config.api.host}:{config.api.port}' if api else 'disabled'}\n"
            f"Model: {provider}/{model}\n"
            f"Tools: {len(engine.tools)} registered\n"
            f"Replies for scheduled jobs go to {config.delivery.channel_id}\n"
            "Press Ctrl+C to stop",
            title="Gateway Mode",
            border_style="blue",
        )
    )

    try:
        await asyncio.gather(engine.run(), engine.bus.start(), manager.start_all())
    except (KeyboardInterrupt, asyncio.CancelledError):
        pass
    finally:
        engine.stop()
        await manager.stop_all()
        await engine.bus.stop()
        if api:
            api.stop()
        console.print("[yellow]Gateway stopped.[/yellow]")


@app.command()
def onboard():
    """Set up brainbot for the first time."""
    from .config.loader import CONFIG_FILE, ensure_dirs, save_config
    from .config.schema import Config, ProviderConfig
    from .scheduler.timezones import is_valid_timezone
    from .settings.store import SettingsStore

    console.print(
        Panel.fit(
            "[bold blue]Welcome to brainbot![/bold blue]\n\n"
            "This creates your configuration and data directory.",
            title="Onboarding",
            border_style="blue",
        )
    )

    if CONFIG_FILE.exists() and not Confirm.ask("Configuration already exists. Overwrite?", default=False):
        console.print("[yellow]Onboarding cancelled.[/yellow]")
        raise typer.Exit()

    console.print("\n[bold]Step 1: LLM provider[/bold]")
    console.print("brainbot uses OpenRouter by default. Keys: https://openrouter.ai/keys\n")
    api_key = Prompt.ask("OpenRouter API key (Enter to skip)", default="", show_default=False)
    model = Prompt.ask("Model", default="openrouter/openai/gpt-4o-mini")

    console.print("\n[bold]Step 2: Personality[/bold]")
    keys = list(PERSONALITIES)
    for i, key in enumerate(keys, 1):
        label, description, _ = PERSONALITIES[key]
        console.print(f"  {i}. [bold]{label}[/bold] - {description}")
    choice = Prompt.ask("Choose", choices=[str(i) for i in range(1, len(keys) + 1)], default="1")
    soul = PERSONALITIES[keys[int(choice) - 1]][2]

    console.print("\n[bold]Step 3: Timezone[/bold]")
    timezone = ""
    while True:
        timezone = Prompt.ask("Timezone, e.g. Europe/Berlin (Enter to set later)", default="", show_default=False)
        if not timezone or is_valid_timezone(timezone):
            break
        console.print(f"[red]Unknown timezone: {timezone}[/red]")

    console.print("\n[bold]Step 4: Telegram (optional)[/bold]")
    token = Prompt.ask("Bot token (Enter to skip)", default="", show_default=False)
    allow = Prompt.ask("Your Telegram user id", default="", show_default=False) if token else ""

    config = Config(
        providers={"openrouter": ProviderConfig(api_key=api_key)},
        agent={"model": model},
        channels={"telegram": {"enabled": bool(token), "token": token, "allow_from": [allow] if allow else []}},
        delivery={"channel": "telegram", "channel_id": f"telegram:{allow}"} if allow else {},
    )
    ensure_dirs(config)
    save_config(config)

    settings = SettingsStore(config.data_path)
    settings.set_str("soul", soul)
    if timezone:
        settings.set_timezone(timezone)

    console.print(
        Panel.fit(
            "[bold green]Setup complete![/bold green]\n\n"
            f"Config: {CONFIG_FILE}\n"
            f"Data: {config.data_path}\n\n"
            "  [bold]brainbot agent[/bold]    - chat in the terminal\n"
            "  [bold]brainbot gateway[/bold]  - Telegram + HTTP API\n"
            "  [bold]brainbot ask help[/bold] - run one command\n"
            "  [bold]brainbot status[/bold]   - check configuration",
            title="Ready!",
            border_style="green",
        )
    )


@app.command()
def agent():
    """Chat with brainbot in the terminal."""
    config = _load()
    _require_provider(config)
    try:
        asyncio.run(_run_agent_mode(config))
    except KeyboardInterrupt:
        console.print("\n[yellow]Goodbye![/yellow]")


@app.command()
def gateway():
    """Run the engine with Telegram and the HTTP API."""
    config = _load()
    _require_provider(config)
    try:
        asyncio.run(_run_gateway_mode(config))
    except KeyboardInterrupt:
        console.print("\n[yellow]Gateway stopped.[/yellow]")


@app.command()
def ask(message: str = typer.Argument(..., help="Command or message to resolve")):
    """Resolve one message and print the reply."""
    from .engine import Engine

    config = _load()
    engine = Engine(config)
    resolution = asyncio.run(engine.pipeline.resolve(message))
    if resolution.text:
        console.print(resolution.text, markup=False, highlight=False)
    for attachment in resolution.attachments:
        if isinstance(attachment.content, bytes):
            console.print(f"📎 {attachment.filename} ({len(attachment.content)} bytes)")
            continue
        lexer = attachment.filename.rsplit(".", 1)[-1]
        console.print(Panel(Syntax(attachment.content, lexer), title=f"📎 {attachment.filename}"))


@app.command()
def status():
    """Show configuration and stored state."""
    from . import __version__
    from .config.loader import CONFIG_FILE
    from .cron.store import CronStore
    from .settings.store import SettingsStore

    config = _load()
    settings = SettingsStore(config.data_path)
    cron = CronStore(config.data_path, max_jobs=config.cron.max_jobs)
    reminder = settings.get_reminder()

    console.print(
        Panel.fit(
            f"[bold]Version:[/bold] {__version__}\n"
            f"[bold]Config file:[/bold] {CONFIG_FILE} "
            f"{'[green](exists)[/green]' if CONFIG_FILE.exists() else '[red](missing)[/red]'}\n"
            f"[bold]Data:[/bold] {config.data_path}\n"
            f"\n[bold]Model:[/bold] {config.agent.model}\n"
            f"[bold]Active provider:[/bold] {settings.get_active_provider() or 'config'}\n"
            f"[bold]Providers with keys:[/bold] "
            f"{', '.join(n for n, p in config.providers.items() if p.api_key) or 'none'}\n"
            f"\n[bold]Timezone:[/bold] {settings.get_timezone() or f'(unset, {config.scheduler.default_timezone})'}\n"
            f"[bold]Safe mode:[/bold] {'on' if settings.is_safe_mode() else 'off'}\n"
            f"[bold]Daily reminder:[/bold] "
            f"{f'{reminder.time} {reminder.message.kind}' if reminder else 'none'}\n"
            f"[bold]Cron jobs:[/bold] {cron.count()}/{cron.max_jobs}\n"
            f"\n[bold]Telegram:[/bold] {'enabled' if config.channels.telegram.enabled else 'disabled'}\n"
            f"[bold]HTTP API:[/bold] "
            f"{f'{config.api.host}:{config.api.port}' if config.api.enabled else 'disabled'}",
            title="brainbot status",
            border_style="blue",
        )
    )


@cron_app.command("add")
def cron_add(line: str = typer.Argument(..., help="'<min> <hour> <day> <month> <weekday> | <command>'")):
    """Append a cron job."""
    from .cron.parser import CronParseError, render
    from .cron.store import CronStore

    config = _load()
    store = CronStore(config.data_path, max_jobs=config.cron.max_jobs)
    try:
        job = store.add(line)
    except CronParseError as e:
        console.print(f"[red]ERR: {e}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]Added:[/green] {render(job)}")


@cron_app.command("list")
def cron_list():
    """List cron jobs."""
    from .cron.parser import render
    from .cron.store import CronStore

    config = _load()
    store = CronStore(config.data_path, max_jobs=config.cron.max_jobs)
    jobs = store.jobs()
    if not jobs:
        console.print("No cron jobs.")
        return
    table = Table(title=f"Cron jobs ({len(jobs)}/{store.max_jobs})")
    table.add_column("#", justify="right")
    table.add_column("Job")
    for i, job in enumerate(jobs, 1):
        table.add_row(str(i), render(job))
    console.print(table)


@cron_app.command("clear")
def cron_clear(yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation.")):
    """Remove every cron job."""
    from .cron.store import CronStore

    config = _load()
    if not yes and not Confirm.ask("Delete all cron jobs?", default=False):
        raise typer.Exit()
    CronStore(config.data_path, max_jobs=config.cron.max_jobs).clear()
    console.print("[green]Cron jobs cleared.[/green]")


if __name__ == "__main__":
    app()
