"""
Tessera CLI.

Commands:
    check    - Statically validate service configuration
    show     - List configured services grouped by kind
    resolve  - Construct one service and print it
"""

import sys
import logging
from typing import Optional, Tuple

import click

from . import __version__
from .config import ConfigLoader
from .core import ServiceManager
from .diagnostics import Diagnostics, LoggingListener
from .errors import ServiceManagerError


def _load_manager(configs: Tuple[str, ...], env_file: Optional[str], verbose: bool = False) -> ServiceManager:
    config = ConfigLoader.load(paths=list(configs), env_file=env_file)
    diagnostics = Diagnostics([LoggingListener()]) if verbose else Diagnostics()
    return ServiceManager(config, diagnostics=diagnostics)


def _fail(message: str) -> None:
    click.echo(click.style(f"✗ {message}", fg="red"), err=True)
    sys.exit(1)


@click.group()
@click.version_option(version=__version__, prog_name="tessera")
@click.option('--verbose', '-v', is_flag=True, help='Log registrations and resolutions')
@click.pass_context
def cli(ctx, verbose: bool):
    """Inspect and exercise service manager configuration."""
    ctx.ensure_object(dict)
    ctx.obj['verbose'] = verbose
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")


@cli.command()
@click.argument('configs', nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False))
@click.option('--env-file', type=click.Path(exists=True, dir_okay=False), help='.env file with policy flags')
@click.option('--strict', is_flag=True, help='Treat warnings as errors')
@click.pass_obj
def check(obj, configs: Tuple[str, ...], env_file: Optional[str], strict: bool):
    """
    Validate service configuration without constructing anything.

    Examples:
      tessera check services.yaml
      tessera check base.yaml prod.yaml --strict
    """
    try:
        manager = _load_manager(configs, env_file, obj["verbose"])
    except ServiceManagerError as e:
        _fail(str(e))

    issues = manager.registry.validate()
    errors = [issue for issue in issues if issue.level == "error"]
    warnings = [issue for issue in issues if issue.level == "warning"]

    for issue in errors:
        click.echo(click.style(f"  error    {issue.name}: {issue.message}", fg="red"))
    for issue in warnings:
        click.echo(click.style(f"  warning  {issue.name}: {issue.message}", fg="yellow"))

    if errors or (strict and warnings):
        _fail(f"{len(errors)} error(s), {len(warnings)} warning(s)")

    summary = manager.registry.describe()
    click.echo(click.style("✓ Service configuration is valid", fg="green"))
    click.echo(f"  factories:          {len(summary['factories'])}")
    click.echo(f"  aliases:            {len(summary['aliases'])}")
    click.echo(f"  abstract factories: {len(summary['abstract_factories'])}")
    if warnings:
        click.echo(f"  warnings:           {len(warnings)}")


@cli.command()
@click.argument('configs', nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False))
@click.option('--env-file', type=click.Path(exists=True, dir_okay=False), help='.env file with policy flags')
@click.pass_obj
def show(obj, configs: Tuple[str, ...], env_file: Optional[str]):
    """List configured services grouped by kind."""
    try:
        manager = _load_manager(configs, env_file, obj["verbose"])
    except ServiceManagerError as e:
        _fail(str(e))

    summary = manager.describe()

    click.echo(click.style("Factories", fg="cyan", bold=True))
    for name, producer in sorted(summary["factories"].items()):
        shared = manager.registry.is_shared(name)
        flag = "" if shared else "  (not shared)"
        click.echo(f"  {name:<30} {producer}{flag}")

    if summary["aliases"]:
        click.echo(click.style("Aliases", fg="cyan", bold=True))
        for name, target in sorted(summary["aliases"].items()):
            click.echo(f"  {name:<30} -> {target}")

    if summary["services"]:
        click.echo(click.style("Services", fg="cyan", bold=True))
        for name in summary["services"]:
            click.echo(f"  {name}")

    if summary["abstract_factories"]:
        click.echo(click.style("Abstract factories", fg="cyan", bold=True))
        for producer in summary["abstract_factories"]:
            click.echo(f"  {producer}")

    if summary["delegators"]:
        click.echo(click.style("Delegators", fg="cyan", bold=True))
        for name, chain in sorted(summary["delegators"].items()):
            click.echo(f"  {name:<30} {' -> '.join(chain)}")

    if summary["initializers"]:
        click.echo(click.style("Initializers", fg="cyan", bold=True))
        for producer in summary["initializers"]:
            click.echo(f"  {producer}")


@cli.command()
@click.argument('configs', nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False))
@click.option('--name', '-n', required=True, help='Service name to resolve')
@click.option('--build', 'fresh', is_flag=True, help='Use build() instead of get()')
@click.option('--env-file', type=click.Path(exists=True, dir_okay=False), help='.env file with policy flags')
@click.pass_obj
def resolve(obj, configs: Tuple[str, ...], name: str, fresh: bool, env_file: Optional[str]):
    """
    Construct a service and print its repr.

    Examples:
      tessera resolve services.yaml --name mailer
    """
    try:
        manager = _load_manager(configs, env_file, obj["verbose"]).freeze()
        instance = manager.build(name) if fresh else manager.get(name)
    except ServiceManagerError as e:
        _fail(str(e))
    except Exception as e:
        _fail(f"{type(e).__name__}: {e}")

    click.echo(f"{name} -> {manager.resolve_canonical(name)}")
    click.echo(repr(instance))


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
