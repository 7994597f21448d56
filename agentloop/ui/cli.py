# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Command-line interface for agentloop.

Examples:
    # Show which tool calls a model reply contains
    echo '{"tool_calls":[{"name":"list_files","arguments":{}}]}' | agentloop extract

    # Canonicalize a path for a tenant
    agentloop resolve "~Notes" --tenant 0xabc

    # Replay a scripted conversation against in-memory storage
    agentloop replay session.yaml --tenant 0xabc
"""

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import typer
import yaml
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from agentloop import __version__
from agentloop.agent.debug_logger import configure_logging_levels
from agentloop.agent.notifications import CollectingNotifier
from agentloop.agent.orchestrator import LoopEventType, OrchestrationLoop
from agentloop.agent.path_sandbox import PathContext, PathSandbox
from agentloop.agent.tool_call_extractor import ToolCallExtractor
from agentloop.agent.tool_executor import ToolExecutor
from agentloop.config.settings import Settings, load_settings
from agentloop.core.errors import AgentLoopError, SandboxViolation
from agentloop.providers.scripted import ScriptedProvider
from agentloop.storage.memory import InMemoryStorage
from agentloop.tools.catalog import ToolCatalog

app = typer.Typer(
    name="agentloop",
    help="Tool-calling orchestration loop for sandboxed file agents",
    add_completion=False,
)

console = Console()

_state: Dict[str, Any] = {"config": None, "settings": None}


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        console.print(f"agentloop v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        "-l",
        help="Log level (TRACE, DEBUG, INFO, WARNING, ERROR)",
    ),
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="YAML settings file",
    ),
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
) -> None:
    """agentloop - drive a model through sandboxed filesystem tools."""
    _state["config"] = config
    _state["settings"] = None
    logging.basicConfig(format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    configure_logging_levels((log_level or _settings().log_level).upper())


def _settings() -> Settings:
    if _state["settings"] is None:
        try:
            _state["settings"] = load_settings(_state["config"])
        except AgentLoopError as e:
            console.print(f"[bold red]Error:[/] {e.message}")
            raise typer.Exit(1)
    return _state["settings"]


@app.command()
def extract(
    file: Optional[Path] = typer.Argument(
        None, help="File holding the model reply (reads stdin when omitted)"
    ),
    no_inference: bool = typer.Option(
        False, "--no-inference", help="Disable natural-language inference"
    ),
) -> None:
    """Print the tool calls found in a model reply."""
    text = file.read_text(encoding="utf-8") if file else sys.stdin.read()
    settings = _settings()
    extractor = ToolCallExtractor(
        enable_inference=settings.enable_intent_inference and not no_inference,
        inference_max_length=settings.inference_max_length,
    )
    result = extractor.extract(text)

    if not result.has_calls:
        console.print("[dim]No tool calls found[/]")
        return

    table = Table(title=f"Tool calls ({result.strategy.value})")
    table.add_column("#", justify="right")
    table.add_column("Tool", style="cyan")
    table.add_column("Arguments")
    for index, call in enumerate(result.tool_calls, 1):
        table.add_row(str(index), call.name, json.dumps(call.arguments, ensure_ascii=False))
    console.print(table)
    if result.repairs:
        console.print(f"[yellow]Repairs applied:[/] {', '.join(result.repairs)}")


@app.command()
def resolve(
    path: str = typer.Argument(..., help="Path as a model would write it"),
    tenant: str = typer.Option(..., "--tenant", "-t", help="Tenant root identifier"),
    mentioned: Optional[str] = typer.Option(
        None, "--mentioned", "-m", help="Directory the user mentioned (e.g. Documents, home)"
    ),
) -> None:
    """Canonicalize a path and check it stays inside the tenant root."""
    settings = _settings()
    sandbox = PathSandbox(tenant, default_directory=settings.default_directory)
    canonical = sandbox.resolve(path, PathContext(mentioned_directory=mentioned))
    console.print(canonical)
    try:
        sandbox.validate(canonical)
    except SandboxViolation as e:
        console.print(f"[bold red]Rejected:[/] {e.message}")
        raise typer.Exit(1)
    console.print("[green]Allowed[/]")


@app.command()
def tools(
    format: str = typer.Option(
        "plain", "--format", "-f", help="Output format: plain, openai or claude"
    ),
) -> None:
    """Print the filesystem tool catalog."""
    catalog = ToolCatalog.default()
    fmt = format.lower()
    if fmt == "openai":
        console.print_json(json.dumps(catalog.to_openai()))
    elif fmt == "claude":
        console.print_json(json.dumps(catalog.to_claude()))
    elif fmt == "plain":
        table = Table(title="Filesystem tools")
        table.add_column("Tool", style="cyan")
        table.add_column("Required")
        table.add_column("Description")
        for tool in catalog.definitions:
            table.add_row(tool.name, ", ".join(tool.required), tool.description)
        console.print(table)
    else:
        console.print(f"[bold red]Error:[/] Unknown format '{format}'")
        raise typer.Exit(2)


def _load_script(script: Path) -> Dict[str, Any]:
    try:
        data = yaml.safe_load(script.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as e:
        console.print(f"[bold red]Error:[/] Cannot read {script}: {e}")
        raise typer.Exit(1)
    if not isinstance(data, dict) or not data.get("messages") or not data.get("turns"):
        console.print("[bold red]Error:[/] Script needs 'messages' and 'turns' lists")
        raise typer.Exit(1)
    return data


async def _seed(storage: InMemoryStorage, sandbox: PathSandbox, files: Dict[str, Any]) -> None:
    for raw_path, content in (files or {}).items():
        path = sandbox.resolve_and_validate(raw_path)
        await storage.write_file(path, str(content))


async def run_replay(data: Dict[str, Any], tenant: str, settings: Settings, stream: bool) -> None:
    """Replay ``data`` and print events as they happen."""
    storage = InMemoryStorage.with_home(tenant)
    sandbox = PathSandbox(tenant, default_directory=settings.default_directory)
    await _seed(storage, sandbox, data.get("files", {}))

    notifier = CollectingNotifier()
    executor = ToolExecutor(
        storage, sandbox, notifier=notifier, max_read_chars=settings.max_read_chars
    )
    provider = ScriptedProvider(data["turns"])
    loop = OrchestrationLoop(provider, executor, settings=settings)
    messages: List[Any] = list(data["messages"])

    if stream:
        async for event in loop.stream(messages):
            if event.type == LoopEventType.CONTENT:
                console.print(event.content, end="", markup=False)
            elif event.type == LoopEventType.TOOL_CALL and event.tool_call:
                call = event.tool_call
                console.print(f"\n[cyan]> {call.name}[/] {json.dumps(call.arguments)}")
            elif event.type == LoopEventType.TOOL_RESULT and event.result:
                _print_result(event.result.name, event.result.success, event.result.error)
            elif event.type == LoopEventType.DONE:
                console.print()
                if event.bound_error:
                    console.print(f"[yellow]{event.bound_error.message}[/]")
    else:
        result = await loop.run(messages)
        for tool_result in result.tool_results:
            _print_result(tool_result.name, tool_result.success, tool_result.error)
        console.print(result.response, markup=False)
        if result.bound_error:
            console.print(f"[yellow]{result.bound_error.message}[/]")

    for change in notifier.events:
        console.print(f"[dim]{change.type.value}: {change.path}[/]")


def _print_result(name: str, success: bool, error: Optional[str]) -> None:
    if success:
        console.print(f"[green]ok[/] {name}")
    else:
        console.print(f"[red]failed[/] {name}: {escape(str(error))}")


@app.command()
def replay(
    script: Path = typer.Argument(..., help="YAML file with messages, turns and optional files"),
    tenant: str = typer.Option(..., "--tenant", "-t", help="Tenant root identifier"),
    stream: bool = typer.Option(False, "--stream/--no-stream", help="Use the streaming loop"),
) -> None:
    """Run the loop against scripted model turns and in-memory storage."""
    data = _load_script(script)
    settings = _settings()
    try:
        asyncio.run(run_replay(data, tenant, settings, stream))
    except AgentLoopError as e:
        console.print(f"[bold red]Error:[/] {e.message}")
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
