"""Render helpers for the proxy CLI."""

from __future__ import annotations

import json
import logging
from typing import Any, Mapping, Sequence

from rich import box
from rich.console import Group
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from anthropic_proxy.llm.errors import ProxyError
from anthropic_proxy.llm.types import CompletionResponse, ModelInfo, Text as TextBlock, ToolResult, ToolUse
from anthropic_proxy.ui.console import get_console, get_err_console


def configure_logging(verbose: bool) -> None:
    handler = RichHandler(console=get_err_console(), show_path=False, markup=False)
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(name)s: %(message)s",
        datefmt="[%X]",
        handlers=[handler],
    )


def render_banner(title: str, subtitle: str) -> None:
    console = get_console()
    panel = Panel(
        Group(Text(subtitle, style="subtitle")),
        title=Text(title, style="step"),
        title_align="left",
        box=box.ROUNDED,
        border_style="border",
        padding=(0, 2),
        expand=True,
    )
    console.print(panel)


def render_step_header(
    step_idx: int | None,
    step_total: int | None,
    title: str,
    description: str,
) -> None:
    console = get_console()
    if step_idx is not None and step_total is not None:
        panel_title = f"Step {step_idx}/{step_total} · {title}"
    else:
        panel_title = title
    content = []
    if description:
        content.append(Text(description, style="subtitle"))
    panel = Panel(
        Group(*content),
        title=Text(panel_title, style="step"),
        title_align="left",
        box=box.ROUNDED,
        border_style="border",
        padding=(0, 2),
        expand=True,
    )
    console.print(panel)


def render_info(text: str) -> None:
    get_console().print(text, style="info", markup=False)


def render_warning(text: str) -> None:
    get_console().print(text, style="warning", markup=False)


def render_error(text: str) -> None:
    panel = Panel(
        Text(text, style="error"),
        box=box.ROUNDED,
        border_style="error",
        padding=(0, 2),
        expand=True,
    )
    get_err_console().print(panel)


def render_proxy_error(exc: ProxyError) -> None:
    title = Text()
    title.append(exc.kind, style="kind")
    if getattr(exc, "status", None) is not None:
        title.append(f" · HTTP {exc.status}", style="label")
    panel = Panel(
        Text(str(exc), style="error"),
        title=title,
        title_align="left",
        box=box.ROUNDED,
        border_style="error",
        padding=(0, 2),
        expand=True,
    )
    get_err_console().print(panel)


def render_json(payload: Any) -> None:
    data = json.dumps(payload, indent=2, sort_keys=True, ensure_ascii=False)
    get_console().print(data, markup=False, highlight=False, soft_wrap=True)


def render_summary_table(rows: Mapping[str, str] | Sequence[tuple[str, str]], title: str = "Summary") -> None:
    table = Table(title=title, title_style="title", box=box.SIMPLE, show_header=False, pad_edge=False)
    table.add_column(style="label", no_wrap=True, justify="right")
    table.add_column(style="value")
    items = rows.items() if isinstance(rows, Mapping) else rows
    for label, value in items:
        table.add_row(label, value)
    get_console().print(table)


def render_models_table(models: Sequence[ModelInfo], *, source: str) -> None:
    table = Table(title=f"Models ({source})", title_style="title", box=box.SIMPLE_HEAD)
    table.add_column("id", style="value", no_wrap=True)
    table.add_column("name", style="label")
    table.add_column("context", justify="right")
    table.add_column("$/M in", justify="right")
    table.add_column("$/M out", justify="right")
    for model in models:
        pricing = model.pricing
        table.add_row(
            model.id,
            model.display_name,
            f"{model.max_tokens:,}",
            f"{pricing.input_cost_per_million_tokens:.2f}" if pricing else "-",
            f"{pricing.output_cost_per_million_tokens:.2f}" if pricing else "-",
        )
    get_console().print(table)


def render_completion(completion: CompletionResponse, *, cost: float | None = None) -> None:
    console = get_console()
    for block in completion.blocks:
        if isinstance(block, TextBlock):
            console.print(block.text, markup=False)
        elif isinstance(block, ToolUse):
            console.print(Text(f"[tool_use {block.name} id={block.id}]", style="accent"))
            console.print(json.dumps(block.input, ensure_ascii=False), markup=False)
        elif isinstance(block, ToolResult):
            console.print(Text(f"[tool_result for {block.tool_use_id}]", style="accent"))
            console.print(json.dumps(block.content, ensure_ascii=False), markup=False)
    rows = [
        ("id", completion.id),
        ("model", completion.model),
        ("stop", str(completion.stop_reason)),
        ("tokens", f"{completion.usage.input_tokens} in / {completion.usage.output_tokens} out"),
    ]
    if cost is not None:
        rows.append(("cost", f"${cost:.6f}"))
    render_summary_table(rows, title="Completion")
