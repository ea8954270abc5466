"""CLI entrypoint for anthropic-proxy."""

from __future__ import annotations

import asyncio
from dataclasses import replace
from pathlib import Path
import sys
from typing import Optional

import typer

from anthropic_proxy import catalog
from anthropic_proxy.config import ProxyConfig, load_config
from anthropic_proxy.dispatcher import handle_request
from anthropic_proxy.env import load_dotenv
from anthropic_proxy.llm.client import MODEL_SOURCES, LLMClient, create_client
from anthropic_proxy.llm.errors import ProxyError
from anthropic_proxy.llm.retry import RetryConfig, backoff_schedule
from anthropic_proxy.llm.translate import build_request_body, response_to_dict
from anthropic_proxy.llm.types import (
    CompletionRequest,
    Message,
    ToolChoice,
    ToolDefinition,
    ToolResult,
    ToolUse,
)
from anthropic_proxy.ui.progress import status_spinner
from anthropic_proxy.ui.render import (
    configure_logging,
    render_banner,
    render_completion,
    render_error,
    render_info,
    render_json,
    render_models_table,
    render_proxy_error,
    render_step_header,
    render_summary_table,
    render_warning,
)

app = typer.Typer(add_completion=False, help="Resilient adapter for the Anthropic Messages API.")
config_app = typer.Typer(add_completion=False, help="Config helpers.")
app.add_typer(config_app, name="config")

MODES = ("anthropic", "mock")


@app.callback(invoke_without_command=True)
def root(
    ctx: typer.Context,
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="JSON config file."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """anthropic-proxy CLI."""
    load_dotenv()
    configure_logging(verbose)
    ctx.obj = {"config_path": config_path}
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit(code=0)


@app.command("models")
def models(
    ctx: typer.Context,
    source: Optional[str] = typer.Option(None, "--source", "-s", help="live or catalog."),
    mode: str = typer.Option("anthropic", "--mode", "-m", help="anthropic or mock."),
    as_json: bool = typer.Option(False, "--json", help="Print raw JSON."),
) -> None:
    """List models enriched with context window and pricing."""
    config = _resolve_config(ctx)
    resolved_source = source or config.models_source
    if resolved_source not in MODEL_SOURCES:
        render_error(f"Unsupported models source: {resolved_source}. Use one of: {', '.join(MODEL_SOURCES)}.")
        raise typer.Exit(code=1)
    if resolved_source == "catalog":
        client = None
    else:
        client = _build_client(config, mode)

    async def _run() -> list:
        if client is None:
            return catalog.catalog_models()
        try:
            return await client.list_models(source=resolved_source)
        finally:
            await client.aclose()

    with status_spinner("Listing models"):
        result = _run_or_exit(_run(), as_json=as_json)
    if as_json:
        render_json([model.to_dict() for model in result])
        return
    render_models_table(result, source=resolved_source)


@app.command("complete")
def complete(
    ctx: typer.Context,
    prompt: str = typer.Argument(..., help="User message to send."),
    model: Optional[str] = typer.Option(None, "--model", help="Model id (defaults to config)."),
    system: Optional[str] = typer.Option(None, "--system", help="System prompt."),
    max_tokens: Optional[int] = typer.Option(None, "--max-tokens", min=1),
    temperature: Optional[float] = typer.Option(None, "--temperature", min=0.0, max=1.0),
    mode: str = typer.Option("anthropic", "--mode", "-m", help="anthropic or mock."),
    as_json: bool = typer.Option(False, "--json", help="Print the response envelope JSON."),
) -> None:
    """Generate a single completion."""
    config = _resolve_config(ctx)
    request = CompletionRequest(
        model=model or config.default_model,
        messages=(Message.user(prompt),),
        max_tokens=max_tokens,
        temperature=temperature,
        system=system,
    )
    client = _build_client(config, mode)

    async def _run():
        try:
            return await client.generate(request)
        finally:
            await client.aclose()

    with status_spinner(f"Waiting for {request.model}"):
        completion = _run_or_exit(_run(), as_json=as_json)
    if as_json:
        render_json(response_to_dict(completion))
        return
    render_completion(completion, cost=catalog.estimate_cost(completion.model, completion.usage))


@app.command("dry-run")
def dry_run(ctx: typer.Context) -> None:
    """Build and display Messages API request bodies without network access."""
    config = _resolve_config(ctx)
    render_banner("anthropic-proxy", "Request translation preview")
    calculator = ToolDefinition(
        name="calculate",
        description="Evaluate an arithmetic expression.",
        input_schema={
            "type": "object",
            "properties": {"expression": {"type": "string"}},
            "required": ["expression"],
        },
    )
    cases = [
        (
            "Plain text message",
            CompletionRequest(
                model=config.default_model,
                messages=(Message.user("Say hello in one sentence."),),
                temperature=0.7,
            ),
        ),
        (
            "Tool round trip with structured content",
            CompletionRequest(
                model=config.default_model,
                messages=(
                    Message.user("What is 6 * 7?"),
                    Message.assistant((ToolUse(id="toolu_01", name="calculate", input={"expression": "6 * 7"}),)),
                    Message.user((ToolResult(tool_use_id="toolu_01", content="42"),)),
                    Message(role="user"),
                ),
                tools=(calculator,),
                tool_choice=ToolChoice.auto(),
                disable_parallel_tool_use=True,
            ),
        ),
        (
            "additional_params overrides max_tokens",
            CompletionRequest(
                model=config.default_model,
                messages=(Message.user("Say hello in one sentence."),),
                additional_params={"max_tokens": 64, "metadata": {"user_id": "dry-run"}},
            ),
        ),
    ]

    for index, (title, request) in enumerate(cases, start=1):
        body, overrides = build_request_body(request)
        render_step_header(index, len(cases), title, "Translated request with override tracking.")
        render_json(body)
        if overrides:
            render_warning(f"Overrides applied: {', '.join(sorted(overrides))}")
        else:
            render_info("No overrides detected.")


@app.command("backoff")
def backoff(
    ctx: typer.Context,
    max_retries: Optional[int] = typer.Option(None, "--max-retries", min=0),
    initial_delay_ms: Optional[int] = typer.Option(None, "--initial-delay-ms", min=0),
    max_delay_ms: Optional[int] = typer.Option(None, "--max-delay-ms", min=0),
    multiplier: Optional[float] = typer.Option(None, "--multiplier", min=1.0),
    total_timeout_ms: Optional[int] = typer.Option(None, "--total-timeout-ms", min=0),
) -> None:
    """Show the delay schedule for a retry policy."""
    base = _resolve_config(ctx).retry
    overrides = {
        "max_retries": max_retries,
        "initial_delay_ms": initial_delay_ms,
        "max_delay_ms": max_delay_ms,
        "backoff_multiplier": multiplier,
        "max_total_timeout_ms": total_timeout_ms,
    }
    try:
        retry = replace(base, **{key: value for key, value in overrides.items() if value is not None}).validate()
    except ValueError as exc:
        render_error(str(exc))
        raise typer.Exit(code=1)
    rows = _schedule_rows(retry)
    render_summary_table(rows, title=f"Backoff schedule ({retry.max_retries + 1} attempts max)")


@app.command("dispatch")
def dispatch(
    ctx: typer.Context,
    path: Optional[Path] = typer.Option(None, "--path", "-p", help="Envelope file (stdin when omitted)."),
    mode: str = typer.Option("anthropic", "--mode", "-m", help="anthropic or mock."),
) -> None:
    """Handle one JSON request envelope and print the response envelope."""
    config = _resolve_config(ctx)
    data = path.read_bytes() if path is not None else sys.stdin.buffer.read()
    client = _build_client(config, mode)

    async def _run() -> bytes:
        try:
            return await handle_request(data, client, models_source=config.models_source)
        finally:
            await client.aclose()

    response = asyncio.run(_run())
    typer.echo(response.decode("utf-8"))


@config_app.command("show")
def config_show(ctx: typer.Context) -> None:
    """Print the resolved configuration with the API key redacted."""
    render_json(_resolve_config(ctx).to_dict())


def _resolve_config(ctx: typer.Context) -> ProxyConfig:
    config_path = (ctx.obj or {}).get("config_path")
    try:
        return load_config(config_path)
    except ValueError as exc:
        render_error(str(exc))
        raise typer.Exit(code=1)


def _build_client(config: ProxyConfig, mode: str) -> LLMClient:
    if mode not in MODES:
        render_error(f"Unsupported mode: {mode}. Use one of: {', '.join(MODES)}.")
        raise typer.Exit(code=1)
    if mode == "anthropic" and not config.api_key:
        render_error("ANTHROPIC_API_KEY is required (or use --mode mock).")
        raise typer.Exit(code=1)
    return create_client(mode, **config.client_kwargs())


def _run_or_exit(coro, *, as_json: bool = False):
    try:
        return asyncio.run(coro)
    except ProxyError as exc:
        if as_json:
            render_json({"error": exc.to_dict()})
        else:
            render_proxy_error(exc)
        raise typer.Exit(code=1)


def _schedule_rows(retry: RetryConfig) -> list[tuple[str, str]]:
    rows: list[tuple[str, str]] = []
    cumulative = 0
    for attempt, delay in enumerate(backoff_schedule(retry), start=1):
        cumulative += delay
        note = "" if cumulative <= retry.max_total_timeout_ms else "  (exceeds total timeout, not slept)"
        rows.append((f"after attempt {attempt}", f"{delay} ms · cumulative {cumulative} ms{note}"))
    if not rows:
        rows.append(("retries", "disabled"))
    return rows


def main() -> None:
    app()


if __name__ == "__main__":
    main()
