"""
Configuration management commands for the AgentPRD CLI.

View the merged configuration, change single values in the project file and
create a commented template.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional

import typer
import yaml
from pydantic import ValidationError
from rich.panel import Panel
from rich.table import Table

from agentprd.config import (
    Config,
    get_config_safe,
    init_project_config,
    set_config_value,
)
from agentprd.config.loader import global_config_path, project_config_path
from agentprd.utils.console import console

app = typer.Typer(
    name="config",
    help="🔧 Configuration management for AgentPRD",
    rich_markup_mode="rich",
    no_args_is_help=True,
)


@app.command("show")
def show_config(
    format: str = typer.Option(
        "table",
        "--format",
        "-f",
        help="Output format: table, json, yaml"
    ),
    include_secrets: bool = typer.Option(
        False,
        "--include-secrets",
        help="Include API keys and tokens (⚠️  use with caution)"
    ),
) -> None:
    """📋 Show the merged configuration with secrets masked by default."""
    try:
        config = get_config_safe()
    except ValidationError as e:
        console.error("Configuration validation failed:")
        _show_validation_errors(e)
        raise typer.Exit(1)

    data = _config_data(config, include_secrets)
    fmt = format.lower()
    if fmt == "json":
        console.print(json.dumps(data, indent=2, default=str), markup=False, highlight=False, soft_wrap=True)
    elif fmt == "yaml":
        console.print(yaml.safe_dump(data, default_flow_style=False, sort_keys=False), markup=False, soft_wrap=True)
    else:
        console.print(
            Panel(
                _format_config_table(data),
                title="[panel.title]🔧 AgentPRD Configuration[/panel.title]",
                title_align="left",
                border_style="panel.border",
                padding=(1, 2),
            )
        )
        if not include_secrets:
            console.print("\n[dim]💡 Use --include-secrets to show API keys and tokens[/dim]")


@app.command("set")
def set_config(
    key: str = typer.Argument(..., help="Dotted key, e.g. agent.url"),
    value: str = typer.Argument(..., help="New value (parsed as YAML: 3500, true, ...)"),
    path: Optional[Path] = typer.Option(
        None,
        "--path",
        "-p",
        help="Configuration file to update (defaults to ./.agentprd.yaml)"
    ),
) -> None:
    """✏️  Set one value in the project configuration file."""
    parsed: Any = yaml.safe_load(value) if value else value
    try:
        written = set_config_value(key, parsed, path)
    except KeyError as e:
        console.error(str(e).strip("'\""))
        raise typer.Exit(1)
    except ValidationError as e:
        console.error(f"Invalid value for {key}:")
        _show_validation_errors(e)
        raise typer.Exit(1)
    except OSError as e:
        console.error(f"Failed to write configuration: {e}")
        raise typer.Exit(1)

    console.success(f"Set {key} in {written}")


@app.command("init")
def init_config(
    path: Optional[Path] = typer.Option(
        None,
        "--path",
        "-p",
        help="Custom path for configuration file"
    ),
    force: bool = typer.Option(
        False,
        "--force",
        help="Overwrite existing configuration file"
    ),
) -> None:
    """🚀 Create a project configuration file with sensible defaults."""
    try:
        config_path = init_project_config(path, force=force)
    except FileExistsError as e:
        console.error(str(e))
        raise typer.Exit(1)
    except OSError as e:
        console.error(f"Failed to create configuration file: {e}")
        raise typer.Exit(1)

    console.success(f"Created project configuration: {config_path}")
    _show_next_steps(config_path)


@app.command("path")
def show_paths() -> None:
    """📍 Show where configuration is read from."""
    table = Table(show_header=True, header_style="table.header")
    table.add_column("Source", style="primary")
    table.add_column("Path")
    table.add_column("Exists")
    for label, config_path in (
        ("Project", project_config_path()),
        ("Global", global_config_path()),
        (".env", Path.cwd() / ".env"),
    ):
        table.add_row(label, str(config_path), "✅" if config_path.exists() else "—")
    console.print(table)


def _config_data(config: Config, include_secrets: bool) -> dict:
    if include_secrets:
        return json.loads(
            json.dumps(config.model_dump(), default=lambda o: o.get_secret_value()
                       if hasattr(o, "get_secret_value") else str(o))
        )
    return config.model_dump_safe()


def _format_config_table(data: dict) -> Table:
    table = Table(show_header=True, header_style="table.header")
    table.add_column("Section", style="primary", width=10)
    table.add_column("Setting", style="info.text", width=18)
    table.add_column("Value", style="dim")

    for section, content in data.items():
        section_name = section.title()
        for key, value in content.items():
            if isinstance(value, bool):
                display_value = "✅ Yes" if value else "❌ No"
            elif value is None:
                display_value = "[dim]Not set[/dim]"
            else:
                display_value = str(value)
            table.add_row(section_name, key, display_value)
            section_name = ""
    return table


def _show_validation_errors(error: ValidationError) -> None:
    for err in error.errors():
        field_path = " → ".join(str(loc) for loc in err['loc'])
        console.print(f"[error]❌ {field_path}:[/error] {err['msg']}")


def _show_next_steps(config_path: Path) -> None:
    console.print()
    steps = [
        f"Edit {config_path.name} to point agent.url at your agent",
        "Set OPENAI_API_KEY (server) and AGENTPRD_AGENT_API_KEY in the environment or .env",
        "Start the agent with 'agentprd serve'",
        "Chat with 'agentprd chat'",
    ]
    console.print("[info]📋 Next Steps:[/info]")
    for i, step in enumerate(steps, 1):
        console.print(f"  {i}. {step}")
