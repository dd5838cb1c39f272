"""Click entry point — all commands."""

import sys

import click

from rell_deploy import __version__, config, containers, log, nginx, process, tags
from rell_deploy import deploy as deploy_mod


def _settings(ctx: click.Context) -> config.Settings:
    try:
        return config.load_settings(ctx.obj.get("config_path"))
    except (OSError, config.ConfigError) as e:
        log.error(str(e))
        sys.exit(1)


@click.group()
@click.version_option(version=__version__, prog_name="rell-deploy")
@click.option(
    "--config",
    "config_path",
    default=None,
    type=click.Path(dir_okay=False),
    help="YAML settings file (environment variables take precedence)",
)
@click.pass_context
def main(ctx, config_path):
    """Zero-downtime release cutover for rell behind nginx."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


@main.command()
@click.option("--tag", default=None, help="Release tag to deploy (default: $TAG or latest)")
@click.option("--no-promote", is_flag=True, help="Start and route the release without switching production")
@click.option("--dry-run", is_flag=True, help="Show what would happen without executing")
@click.pass_context
def deploy(ctx, tag, no_promote, dry_run):
    """Deploy a release and, unless --no-promote, cut production over to it."""
    settings = _settings(ctx)
    code = deploy_mod.deploy(settings, tag=tag, promote=not no_promote, dry_run=dry_run)
    sys.exit(code)


@main.command()
@click.pass_context
def status(ctx):
    """Show the production tag and every release container."""
    settings = _settings(ctx)
    current = tags.current_tag(settings.tag_file)
    log.info(f"Production tag: {current or '(none)'}")
    log.info("")

    try:
        manager = containers.ContainerManager.connect(settings.docker_host)
        summaries = manager.list_all()
    except containers.DockerError as e:
        log.error(str(e))
        sys.exit(1)

    releases = [s for s in summaries if containers.is_release_image(s.image)]
    if not releases:
        log.info("  no release containers")
    for s in releases:
        tag = containers.release_tag(s) or "?"
        marker = "*" if tag == current else " "
        log.info(f"{marker} {tag}  {s.id[:12]}  {s.image}  {s.state}")


@main.command()
@click.option("--tag", default=None, help="Release tag (default: $TAG or latest)")
@click.option("--production", is_flag=True, help="Render the production config instead")
@click.pass_context
def render(ctx, tag, production):
    """Print a rendered nginx config to stdout."""
    settings = _settings(ctx)
    tag = tag or settings.tag
    out = sys.stdout

    if production:
        nginx.render_production(nginx.production_params(settings, tag), out)
        return

    try:
        manager = containers.ContainerManager.connect(settings.docker_host)
        record = manager.inspect(config.container_name_for_tag(tag))
    except containers.DockerError as e:
        log.error(str(e))
        sys.exit(1)
    nginx.render_upstream(nginx.upstream_params(settings, tag, record), out)


@main.command()
@click.argument("tag")
@click.option("--follow", "-f", is_flag=True, help="Follow log output")
@click.option("--tail", "-n", default=None, type=int, help="Number of lines to show")
@click.pass_context
def logs(ctx, tag, follow, tail):
    """Show logs for the release container of TAG."""
    settings = _settings(ctx)
    args = ["docker", "logs"]
    if follow:
        args.append("--follow")
    if tail is not None:
        args.extend(["--tail", str(tail)])
    args.append(config.container_name_for_tag(tag))
    code = process.run_streaming(args, env={"DOCKER_HOST": settings.docker_host})
    sys.exit(code)


if __name__ == "__main__":
    main()
