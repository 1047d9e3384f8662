"""
CLI interface for preflight.

Provides commands: init, deployment, deploy.
"""

from pathlib import Path

import click

from preflight import __version__
from preflight.config import PreflightConfig, default_config_path, load_config, save_config
from preflight.errors import ConfigError, NotFoundError, PathAccessError, StagedError, ValidationFailedError
from preflight.pipeline import PreflightPipeline
from preflight.ui import ConsoleUI
from preflight.utils import format_duration, setup_logging
from preflight.validation import FileValidator


@click.group()
@click.version_option(version=__version__, prog_name="preflight")
@click.pass_context
def main(ctx):
    """
    preflight - Release pre-flight checks.

    Validates a release archive and deployment manifest before deploying.
    """
    ctx.ensure_object(dict)
    ctx.obj.setdefault("ui", ConsoleUI())
    try:
        ctx.obj["config"] = load_config()
    except ConfigError as e:
        # init can still repair a broken config; other commands check config_error
        ctx.obj["config_error"] = str(e)


def _get_config(ctx) -> PreflightConfig:
    if "config" not in ctx.obj:
        ctx.obj["ui"].error(f"Config not loaded: {ctx.obj.get('config_error', 'Unknown error')}")
        click.echo("Run 'preflight init --force' to write a fresh configuration file.", err=True)
        raise SystemExit(1)
    return ctx.obj["config"]


@main.command("init")
@click.option("--force", is_flag=True, help="Overwrite existing configuration")
@click.pass_context
def init(ctx, force: bool):
    """Initialize preflight configuration."""
    cfg_path = default_config_path()
    if cfg_path.exists() and not force:
        click.echo(f"Config already exists at {cfg_path}. Use --force to overwrite.", err=True)
        raise SystemExit(1)

    try:
        save_config(PreflightConfig(), cfg_path)
    except ConfigError as e:
        ctx.obj["ui"].error(str(e))
        raise SystemExit(1)

    click.echo(f"Initialized preflight config at {cfg_path}")


@main.command("deployment")
@click.argument("manifest", required=False)
@click.pass_context
def deployment(ctx, manifest: str | None):
    """
    Show or set the current deployment manifest.

    Examples:

        preflight deployment

        preflight deployment ./manifests/cpi.yml
    """
    ui = ctx.obj["ui"]
    config = _get_config(ctx)

    if manifest is None:
        if not config.deployment:
            ui.error("No deployment set")
            raise SystemExit(1)
        click.echo(f"Current deployment is '{config.deployment}'")
        return

    try:
        FileValidator().exists(manifest)
    except NotFoundError:
        ui.error(f"Deployment manifest path '{manifest}' does not exist")
        raise SystemExit(1)
    except PathAccessError as e:
        ui.error(f"Deployment manifest path '{manifest}' is not accessible: {e}")
        raise SystemExit(1)

    config.deployment = str(Path(manifest).resolve())
    try:
        save_config(config)
    except ConfigError as e:
        ui.error(str(e))
        raise SystemExit(1)

    ui.success(f"Deployment set to '{config.deployment}'")


@main.command("deploy")
@click.argument("release", required=False)
@click.option(
    "--manifest",
    type=click.Path(path_type=Path),
    help="Deployment manifest (default: the configured deployment)",
)
@click.option(
    "--log-format",
    type=click.Choice(["structured", "pretty"], case_sensitive=False),
    help="Log file format (default: from config)",
)
@click.option("--verbose", is_flag=True, help="Enable debug logging on the console")
@click.pass_context
def deploy(ctx, release: str | None, manifest: Path | None, log_format: str | None, verbose: bool):
    """
    Run pre-flight checks for RELEASE before deploying.

    RELEASE is the path to a release archive (.tgz).

    Examples:

        preflight deploy ./cpi-release.tgz

        preflight deploy ./cpi-release.tgz --manifest ./manifest.yml
    """
    ui = ctx.obj["ui"]
    config = _get_config(ctx)

    try:
        setup_logging(
            config.get_log_file_path(),
            "DEBUG" if verbose else config.get_log_level(),
            log_format or config.get_log_format(),
            console_output=verbose or config.should_log_to_console(),
        )
    except (ConfigError, OSError) as e:
        ui.error(f"Could not set up logging: {e}")
        raise SystemExit(1)

    ui.banner("Pre-flight checks")
    pipeline = PreflightPipeline(config=config, ui=ui)
    try:
        result = pipeline.run(release, manifest)
    except StagedError as e:
        if isinstance(e.cause, ValidationFailedError):
            for violation in e.cause.violations:
                click.echo(f"  - {violation}", err=True)
        else:
            click.echo(f"  {e.cause}", err=True)
        if verbose and e.cause.cause is not None:
            click.echo(f"  caused by: {e.cause.cause!r}", err=True)
        raise SystemExit(1)

    ui.print_release(result.release)
    if result.release.uncommitted_changes:
        ui.warning(f"Release '{result.release.name}' was built from uncommitted changes")
    ui.success(
        f"Release '{result.release.name}' passed pre-flight checks "
        f"in {format_duration(result.duration_seconds)}"
    )


if __name__ == "__main__":
    main()
