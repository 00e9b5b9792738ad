"""
CLI interface for the stagehand operator.

Provides commands to run the operator, manage its configuration and dry-run
the partner resolver against a playbook manifest.
"""


import sys

import click
from pathlib import Path

from stagehand import __version__


@click.group()
@click.version_option(version=__version__, prog_name="stagehand")
@click.pass_context
def main(ctx):
    """
    stagehand - Kubernetes operator for Playbooks and Actors.
    """
    from stagehand.config import ConfigError, load_config

    ctx.ensure_object(dict)
    try:
        ctx.obj["config"] = load_config()
    except ConfigError as e:
        # init still works with a broken config; the other commands check
        ctx.obj["config_error"] = str(e)


def _require_config(ctx):
    config = ctx.obj.get("config")
    if config is None:
        click.echo(f"✗ Config not loaded: {ctx.obj.get('config_error', 'Unknown error')}", err=True)
        click.echo("Run 'stagehand init' to create a configuration file.", err=True)
        sys.exit(1)
    return config


@main.command("run")
@click.option("--namespace", "-n", "namespaces", multiple=True, help="Watch only these namespaces (default: cluster-wide)")
@click.option("--standalone", is_flag=True, help="Disable peering with other operator instances")
@click.pass_context
def run(ctx, namespaces: tuple[str, ...], standalone: bool):
    """Start the operator."""
    import kopf

    from stagehand.controllers import operator
    from stagehand.utils import setup_logging

    config = _require_config(ctx)
    setup_logging(config.log_level, config.log_format, config.log_file)

    registry = operator.register(kopf.OperatorRegistry(), config)
    kopf.run(
        registry=registry,
        standalone=standalone,
        namespaces=list(namespaces),
        clusterwide=not namespaces,
    )


@main.command("init")
@click.option("--force", is_flag=True, help="Overwrite existing configuration")
def init(force: bool):
    """Initialize stagehand configuration."""
    from stagehand.config import StagehandConfig, get_stagehand_home
    import yaml

    home = get_stagehand_home()
    if not home.exists():
        home.mkdir(parents=True)

    cfg_path = home / "config.yaml"
    if cfg_path.exists() and not force:
        click.echo(f"Config already exists at {cfg_path}. Use --force to overwrite.", err=True)
        raise SystemExit(1)

    default_cfg = StagehandConfig().to_dict()
    for secret in ("registry_username", "registry_password"):
        default_cfg.pop(secret, None)
    default_cfg["env_file"] = str(home / ".env")
    cfg_path.write_text(yaml.safe_dump(default_cfg, sort_keys=False))

    env_path = home / ".env"
    if not env_path.exists():
        env_path.write_text("# STAGEHAND_REGISTRY_USERNAME=...\n# STAGEHAND_REGISTRY_PASSWORD=...\n")

    click.echo(f"Initialized stagehand config at {cfg_path}")


@main.group("config")
def config_group():
    """Inspect configuration."""
    pass


@config_group.command("show")
@click.pass_context
def config_show(ctx):
    """Print the effective configuration (secrets redacted)."""
    import yaml

    config = _require_config(ctx)
    click.echo(yaml.safe_dump(config.to_dict(redact=True), sort_keys=False).rstrip())


@main.command("solve")
@click.argument("manifest", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def solve(manifest: Path):
    """
    Show which partners a playbook would fetch next.

    MANIFEST is a Playbook resource or a bare playbook spec in YAML. Nothing
    is fetched and nothing is written.
    """
    import yaml

    from stagehand.resolver import compute_fetches, detect_cycles
    from stagehand.schemas import PlaybookSpec

    try:
        data = yaml.safe_load(manifest.read_text()) or {}
    except yaml.YAMLError as e:
        click.echo(f"✗ Invalid YAML in {manifest}: {e}", err=True)
        sys.exit(1)

    if not isinstance(data, dict):
        click.echo(f"✗ {manifest} must contain a mapping", err=True)
        sys.exit(1)

    try:
        spec = PlaybookSpec.from_dict(data.get("spec", data))
    except (KeyError, TypeError, ValueError) as e:
        click.echo(f"✗ Invalid playbook in {manifest}: {e}", err=True)
        sys.exit(1)

    click.echo(f"Actors ({len(spec.actors)}):")
    for actor in spec.actors:
        click.echo(f"  {actor.name}: {actor.url()}")

    fetches = sorted(compute_fetches(spec.actors), key=lambda p: p.url())
    if not fetches:
        click.echo("✓ Nothing to fetch, the playbook is solved")
    else:
        click.echo(f"Fetches ({len(fetches)}):")
        for partner in fetches:
            click.echo(f"  {partner.name}: {partner.url()}")

    for source, target in detect_cycles(spec.actors):
        click.echo(f"⚠ Partner cycle: {source} -> {target}")


if __name__ == "__main__":
    main()
