"""
compiler-probe — CLI entrypoint.

A diagnostic front for the probing library: shows what the build
system would learn about a compiler.

Usage:
    python -m compiler_probe.main --help
    python -m compiler_probe.main identify cc
    python -m compiler_probe.main identify clang++ --lang cpp --flag=--target=aarch64-linux-gnu --json
    python -m compiler_probe.main supported-args cc -Wall -Wshadow -Wnot-a-flag
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click

from compiler_probe import __version__
from compiler_probe.core.observability.logging_config import configure_from_env, resolve_level


@click.group()
@click.version_option(version=__version__, prog_name="compiler-probe")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (shows probe commands).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to compiler-probe.yml (default: auto-detect).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """compiler-probe — identify compilers and probe their capabilities."""
    ctx.ensure_object(dict)
    ctx.obj["quiet"] = quiet
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    configure_from_env(resolve_level(debug, verbose, quiet))


def _make_cache(ctx: click.Context):
    """Build a cache from --config, exiting cleanly on bad settings."""
    from compiler_probe.core.config.loader import ConfigError, load_settings
    from compiler_probe.core.services.probing import CapabilityCache

    try:
        settings = load_settings(ctx.obj.get("config_path"))
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(1)
    return CapabilityCache(settings=settings)


@cli.command()
@click.argument("compiler")
@click.option("--lang", "-l", default="c", show_default=True, help="Source language (c, cpp, objc, objcpp).")
@click.option("--flag", "-f", "flags", multiple=True, help="Compiler flag (repeatable).")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.option("--stats", is_flag=True, help="Also print probe metrics.")
@click.pass_context
def identify(
    ctx: click.Context,
    compiler: str,
    lang: str,
    flags: tuple[str, ...],
    as_json: bool,
    stats: bool,
) -> None:
    """Identify COMPILER: family, version, architecture and linker."""
    from compiler_probe.core.services.probing import ProbeError

    cache = _make_cache(ctx)
    try:
        result = cache.resolve(compiler, list(flags), lang)
    except ProbeError as e:
        if as_json:
            click.echo(json.dumps({"error": e.kind, "compiler": compiler, "message": e.message}, indent=2))
        else:
            click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(1)

    if as_json:
        data = result.to_dict()
        if stats:
            data["metrics"] = cache.metrics.to_dict()
        click.echo(json.dumps(data, indent=2))
        return

    color = "green" if result.is_known else "yellow"
    click.secho(f"\n🔧 {result.compiler}", fg="cyan", bold=True)
    click.echo("   Family:  ", nl=False)
    click.secho(result.family.value, fg=color, bold=True)
    click.echo(f"   Version: {result.version_string or '(unknown)'}")
    if result.raw_version and not ctx.obj.get("quiet"):
        click.echo(f"            {result.raw_version}")
    click.echo(f"   Arch:    {result.target_arch or '(unknown)'}")
    click.echo(f"   Linker:  {result.linker_id or '(unknown)'}")

    if stats:
        click.echo()
        click.secho("   Metrics:", fg="white", bold=True)
        for counter in cache.metrics.to_dict()["counters"]:
            click.echo(f"     {counter['name']}: {counter['value']}")

    click.echo()


@cli.command("supported-args", context_settings={"ignore_unknown_options": True})
@click.argument("compiler")
@click.argument("arguments", nargs=-1, required=True, type=click.UNPROCESSED)
# No short aliases here: click would split "-Wall" into -W -a -l -l
@click.option("--lang", default="c", show_default=True, help="Source language.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def supported_args(
    ctx: click.Context,
    compiler: str,
    arguments: tuple[str, ...],
    lang: str,
    as_json: bool,
) -> None:
    """List which ARGUMENTS COMPILER accepts."""
    from compiler_probe.core.services.probing import Compiler, ProbeError

    cache = _make_cache(ctx)
    try:
        cc = Compiler(compiler, kind=lang, cache=cache)
        supported = cc.get_supported_arguments(list(arguments))
    except ProbeError as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(1)

    if as_json:
        click.echo(json.dumps({
            "compiler": compiler,
            "supported": supported,
            "unsupported": [a for a in arguments if a not in supported],
        }, indent=2))
        return

    for arg in arguments:
        if arg in supported:
            click.secho(f"   ✓ {arg}", fg="green")
        else:
            click.secho(f"   ✗ {arg}", fg="red")


if __name__ == "__main__":
    cli()
