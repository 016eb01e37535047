from __future__ import annotations
from pathlib import Path
from typing import Optional
import typer
from rich.console import Console
from rich.table import Table

from .bootstrap import build_app
from .config_loader import ConfigFileError
from .core.chat_session import ChatSession
from .core.errors import ProviderError
from .providers.registry import ProviderRegistry

app = typer.Typer(add_completion=False, help="Talk to pluggable LLM backends.")
console = Console()

DEFAULT_CONFIG = Path("config/default.yaml")


def _load(config: Path):
    try:
        return build_app(config)
    except (ConfigFileError, FileNotFoundError, ProviderError) as e:
        typer.echo(f"[config] {e}", err=True)
        raise typer.Exit(code=2)


@app.command()
def chat(config: Path = typer.Option(DEFAULT_CONFIG, "--config", "-c")):
    """Interactive chat loop."""
    ctx = _load(config)
    session = ChatSession(ctx["provider"], system_prompt=ctx["system_prompt"], params=ctx["params"])
    use_stream = ctx["stream"]
    name, _desc = ctx["provider"].identity()

    print(f"parley chat ({name}). Type /help for commands. Ctrl+C to quit.")
    while True:
        try:
            user_input = input("parley> ").strip()
        except (EOFError, KeyboardInterrupt):
            print("\nBye.")
            return

        if not user_input:
            continue

        if user_input in ("/exit", "/quit"):
            print("Bye.")
            return

        if user_input == "/help":
            print("Commands: /help, /id, /reset, /exit, /quit")
            continue

        if user_input == "/id":
            print(session.session_id)
            continue

        if user_input == "/reset":
            session.reset()
            print("[history cleared]")
            continue

        try:
            if use_stream:
                gen = session.run_turn_stream(user_input)
                try:
                    for piece in gen:
                        print(piece, end="", flush=True)
                    print("")
                except KeyboardInterrupt:
                    # Closing the generator aborts the transport and keeps the partial reply
                    gen.close()
                    print("\n[stream interrupted]")
            else:
                print(session.run_turn(user_input))
        except ProviderError as e:
            print(f"\n[error] {type(e).__name__}: {e}")


@app.command()
def ask(
    prompt: str,
    config: Path = typer.Option(DEFAULT_CONFIG, "--config", "-c"),
    stream: Optional[bool] = typer.Option(None, "--stream/--no-stream", help="Override runtime.stream"),
):
    """Send one message and print the reply."""
    ctx = _load(config)
    provider = ctx["provider"]
    messages = [
        {"role": "system", "content": ctx["system_prompt"]},
        {"role": "user", "content": prompt},
    ]
    use_stream = ctx["stream"] if stream is None else stream
    try:
        if use_stream:
            def on_delta(text: str, is_final: bool) -> None:
                print(text, end="" if not is_final else "\n", flush=True)
            provider.send_message_stream(messages, ctx["params"], on_delta)
        else:
            print(provider.send_message(messages, ctx["params"]))
    except ProviderError as e:
        typer.echo(f"[error] {type(e).__name__}: {e}", err=True)
        raise typer.Exit(code=1)


@app.command()
def models():
    """List the built-in providers and their default identity."""
    ProviderRegistry.ensure_imports()
    table = Table(title="Providers")
    for col in ("provider", "model", "label", "endpoint", "description"):
        table.add_column(col)
    for key in ProviderRegistry.names():
        info = ProviderRegistry.get(key)().model_info()
        table.add_row(key, info.name, info.provider, info.endpoint, info.description)
    console.print(table)


@app.command()
def serve(
    config: Path = typer.Option(DEFAULT_CONFIG, "--config", "-c"),
    host: str = "127.0.0.1",
    port: int = 8000,
):
    """Run the web API."""
    from .web.app import run

    run(config=config, host=host, port=port)
