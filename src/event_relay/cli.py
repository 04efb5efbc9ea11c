"""CLI entry point for the event relay."""

from __future__ import annotations

import sys

import click

from .core.errors import ConfigError, DecodeError, FeedError


def _server_overrides(host: str | None, port: int | None) -> dict:
    server: dict = {}
    if host:
        server["host"] = host
    if port is not None:
        server["port"] = port
    return {"server": server} if server else {}


@click.group()
def main() -> None:
    """Anchor program event relay."""


@main.command()
@click.option("--config", default=None, help="TOML config file path")
@click.option("--program-id", default=None, help="Program id (base58) to follow")
@click.option("--ws-url", default=None, help="Solana PubSub WebSocket URL")
@click.option("--host", default=None, help="Bind address for the push endpoint")
@click.option("--port", default=None, type=int, help="Port for the push endpoint")
@click.option("--reconnect/--no-reconnect", default=None, help="Reconnect a lost log feed")
def run(
    config: str | None,
    program_id: str | None,
    ws_url: str | None,
    host: str | None,
    port: int | None,
    reconnect: bool | None,
) -> None:
    """Relay live program events to WebSocket subscribers."""
    import asyncio

    from .main import run as run_relay

    overrides: dict = _server_overrides(host, port)
    if program_id:
        overrides["program_id"] = program_id
    feed: dict = {}
    if ws_url:
        feed["ws_url"] = ws_url
    if reconnect is not None:
        feed["reconnect"] = reconnect
    if feed:
        overrides["feed"] = feed

    try:
        asyncio.run(run_relay(config_path=config, overrides=overrides))
    except ConfigError as exc:
        raise click.UsageError(str(exc)) from exc
    except FeedError as exc:
        click.echo(f"Log feed failed: {exc}", err=True)
        sys.exit(1)


@main.command()
@click.argument("source", type=click.File("r", encoding="utf-8"))
@click.option("--config", default=None, help="TOML config file path")
@click.option("--host", default=None, help="Bind address for the push endpoint")
@click.option("--port", default=None, type=int, help="Port for the push endpoint")
@click.option("--serve", is_flag=True, help="Keep serving after the file is exhausted")
def replay(source, config: str | None, host: str | None, port: int | None, serve: bool) -> None:
    """Relay log lines read from SOURCE (a file, or - for stdin)."""
    import asyncio

    from .feed.static import StaticLogFeed
    from .main import run as run_relay

    feed = StaticLogFeed.from_stream(source)
    asyncio.run(
        run_relay(
            config_path=config,
            overrides=_server_overrides(host, port),
            feed=feed,
            serve_after_feed_end=serve,
        )
    )


@main.command()
@click.argument("line")
def decode(line: str) -> None:
    """Decode one log LINE and print the event as JSON."""
    from .decoding.dispatcher import default_decoder
    from .decoding.extractor import extract_payload
    from .decoding.normalizer import normalize, to_wire

    try:
        envelope = extract_payload(line)
        if envelope is None:
            click.echo("Not a program data line.", err=True)
            sys.exit(2)
        decoder = default_decoder()
        message = normalize(decoder.decode(envelope), decoder)
    except DecodeError as exc:
        click.echo(f"Dropped ({exc.reason}): {exc}", err=True)
        sys.exit(1)
    click.echo(to_wire(message))


@main.command()
@click.argument("names", nargs=-1, required=True)
def tag(names: tuple[str, ...]) -> None:
    """Print the 8-byte discriminator (hex) of each event name."""
    from .decoding.registry import compute_tag

    for name in names:
        click.echo(f"{name}\t{compute_tag(name).hex()}")


@main.command()
@click.argument("event_name")
@click.option(
    "--field", "fields", multiple=True, metavar="NAME=VALUE",
    help="Field value; account ids in base58, integers in decimal",
)
def encode(event_name: str, fields: tuple[str, ...]) -> None:
    """Build a 'Program data:' line for EVENT_NAME (for testing consumers)."""
    from .core.enums import FieldKind
    from .core.ids import decode_pubkey
    from .decoding.dispatcher import default_decoder
    from .decoding.extractor import encode_log_line

    decoder = default_decoder()
    try:
        schema = decoder.schema_for(event_name)
    except KeyError:
        raise click.BadParameter(
            f"unknown event (known: {', '.join(decoder.event_names)})",
            param_hint="EVENT_NAME",
        ) from None

    raw: dict[str, str] = {}
    for item in fields:
        name, sep, value = item.partition("=")
        if not sep:
            raise click.BadParameter(f"expected NAME=VALUE, got {item!r}", param_hint="--field")
        raw[name] = value

    values: dict = {}
    for name, kind in schema.fields:
        if name not in raw:
            raise click.BadParameter(f"missing field {name!r}", param_hint="--field")
        try:
            values[name] = decode_pubkey(raw[name]) if kind is FieldKind.PUBKEY else int(raw[name])
        except ValueError as exc:
            raise click.BadParameter(f"{name}: {exc}", param_hint="--field") from exc

    try:
        body = schema.encode(values)
    except ValueError as exc:
        raise click.BadParameter(str(exc), param_hint="--field") from exc
    click.echo(encode_log_line(decoder.registry.tag_for(event_name), body))


if __name__ == "__main__":
    main()
