"""gitops-market CLI — search, install, and manage GitOps patterns."""

import logging

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from gitops_market import __version__
from gitops_market.errors import MarketplaceError

console = Console()


def _open(ctx: click.Context):
    from gitops_market.config import load_settings
    from gitops_market.marketplace import Marketplace

    settings = load_settings(ctx.obj["settings"], project_path=ctx.obj["project"])
    return Marketplace(settings)


def _fail(error: MarketplaceError) -> None:
    console.print(f"[red]Error:[/] {error}")
    for issue in getattr(error, "issues", []):
        console.print(f"  [red]x[/] {issue}")
    raise SystemExit(1)


@click.group()
@click.version_option(version=__version__)
@click.option("--project", "-p", default=".", help="Project directory")
@click.option("--settings", default=None, help="Settings file (default: .gitopsi/marketplace.yaml)")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def main(ctx: click.Context, project: str, settings: str | None, verbose: bool):
    """gitops-market — the GitOps pattern marketplace.

    Discover patterns across registries, install them into a GitOps
    repository, and keep them up to date.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["project"] = project
    ctx.obj["settings"] = settings


# ── Discovery ────────────────────────────────────────────────────────


@main.command()
@click.argument("query", default="")
@click.option("--category", "-c", default="", help="Filter by category")
@click.option("--tag", "-t", multiple=True, help="Filter by tag")
@click.option("--limit", "-n", default=0, help="Maximum results")
@click.pass_context
def search(ctx: click.Context, query: str, category: str, tag: tuple, limit: int):
    """Search all registries for patterns."""
    from gitops_market.registry.models import SearchOptions

    with _open(ctx) as market:
        results = market.search(query, SearchOptions(category=category, tags=list(tag), limit=limit))

    if not results:
        console.print("[yellow]No matching patterns found.[/]")
        return

    table = Table(title=f"Patterns ({len(results)} found)")
    table.add_column("Name", style="cyan")
    table.add_column("Version")
    table.add_column("Category")
    table.add_column("Rating", justify="right", style="green")
    table.add_column("Installed", justify="center")
    table.add_column("Description")

    for r in results:
        table.add_row(
            r.name,
            r.version,
            r.category,
            f"{r.rating:.1f}",
            "[green]Y[/]" if r.installed else "",
            r.description[:60],
        )
    console.print(table)


@main.command()
@click.argument("name")
@click.pass_context
def info(ctx: click.Context, name: str):
    """Show details for a pattern."""
    with _open(ctx) as market:
        try:
            pi = market.get_pattern_info(name)
        except MarketplaceError as e:
            _fail(e)

    meta = pi.pattern.metadata
    lines = [
        f"[bold]{meta.name}[/] {meta.version}  ({pi.registry})",
        meta.description,
        f"Category: {meta.category or '-'}   Versions: {', '.join(pi.versions)}",
        f"Rating: {pi.rating:.1f}   Downloads: {pi.downloads}   Verified: {'yes' if pi.verified else 'no'}",
    ]
    if pi.installed:
        lines.append(f"[green]Installed[/] {pi.installed_version} at {pi.installed_at}")
    for dep in pi.pattern.spec.dependencies:
        lines.append(f"  depends on {dep.name}{' (optional)' if dep.optional else ''}")
    console.print(Panel("\n".join(lines), title="Pattern"))


@main.command()
@click.pass_context
def categories(ctx: click.Context):
    """List pattern categories across registries."""
    from gitops_market.models.pattern import category_info

    with _open(ctx) as market:
        cats = market.list_categories()
    for cat in cats:
        icon, _ = category_info(cat.name)
        console.print(f"  {icon} [cyan]{cat.name}[/] ({cat.count}) {cat.description}")


@main.command()
@click.pass_context
def suggest(ctx: click.Context):
    """Suggest patterns based on the project layout."""
    with _open(ctx) as market:
        suggestions = market.suggest_patterns()
    if not suggestions:
        console.print("[green]Nothing to suggest.[/]")
    for s in suggestions:
        console.print(f"  [cyan]{s.pattern}[/] [dim]({s.category})[/] — {s.reason}")


# ── Lifecycle ────────────────────────────────────────────────────────


def _parse_set(values: tuple) -> dict:
    import yaml

    config = {}
    for item in values:
        key, _, raw = item.partition("=")
        config[key] = yaml.safe_load(raw) if raw else ""
    return config


def _print_result(result) -> None:
    for w in result.warnings:
        console.print(f"  [yellow]![/] {w}")
    for dep in result.dependencies:
        console.print(f"  dependency {dep.name}: {dep.status} {dep.message}")
    for path in result.generated_paths:
        console.print(f"  [dim]{path}[/]")
    style = "green" if result.success else "yellow"
    console.print(f"[{style}]{result.message}[/]")


@main.command()
@click.argument("name")
@click.option("--version", "version_", default="", help="Pin a version")
@click.option("--set", "sets", multiple=True, help="Config value as key=value")
@click.option("--env", "-e", multiple=True, help="Target environment")
@click.option("--dry-run", is_flag=True, help="Show what would be written")
@click.option("--force", is_flag=True, help="Reinstall if already installed")
@click.option("--skip-deps", is_flag=True, help="Do not install dependencies")
@click.pass_context
def install(ctx, name, version_, sets, env, dry_run, force, skip_deps):
    """Install a pattern into the project."""
    from gitops_market.install.installer import InstallOptions

    options = InstallOptions(
        version=version_,
        config=_parse_set(sets),
        environments=list(env),
        dry_run=dry_run,
        force=force,
        skip_deps=skip_deps,
    )
    with _open(ctx) as market:
        try:
            result = market.install(name, options)
        except MarketplaceError as e:
            _fail(e)
    _print_result(result)


@main.command()
@click.argument("name")
@click.option("--version", "version_", default="", help="Target version (default: latest)")
@click.option("--force", is_flag=True)
@click.pass_context
def update(ctx, name, version_, force):
    """Update an installed pattern."""
    from gitops_market.install.installer import UpdateOptions

    with _open(ctx) as market:
        try:
            result = market.update(name, UpdateOptions(version=version_, force=force))
        except MarketplaceError as e:
            _fail(e)
    _print_result(result)


@main.command()
@click.argument("name")
@click.option("--force", is_flag=True, help="Ignore file removal errors")
@click.option("--keep-files", is_flag=True, help="Leave generated files in place")
@click.pass_context
def uninstall(ctx, name, force, keep_files):
    """Uninstall a pattern."""
    from gitops_market.install.installer import UninstallOptions

    with _open(ctx) as market:
        try:
            market.uninstall(name, UninstallOptions(force=force, keep_files=keep_files))
        except MarketplaceError as e:
            _fail(e)
    console.print(f"[green]Uninstalled[/] {name}")


@main.command(name="list")
@click.pass_context
def list_installed(ctx):
    """List installed patterns with their health."""
    with _open(ctx) as market:
        installed = market.list_installed()
        status = market.get_status()

    if not installed:
        console.print("[yellow]No patterns installed.[/]")
        return

    table = Table(title=f"Installed ({len(installed)})")
    table.add_column("Name", style="cyan")
    table.add_column("Version")
    table.add_column("Environments")
    table.add_column("Health")
    for record in installed:
        health = status.get(record.name, "")
        colour = "green" if health == "healthy" else "red"
        table.add_row(record.name, record.version, ", ".join(record.environments), f"[{colour}]{health}[/]")
    console.print(table)


@main.command()
@click.pass_context
def outdated(ctx):
    """Show installed patterns with newer versions available."""
    with _open(ctx) as market:
        installed = {p.name: p.version for p in market.list_installed()}
        updates = market.check_updates()
    if not updates:
        console.print("[green]All patterns are up to date.[/]")
    for name, latest in updates.items():
        console.print(f"  [cyan]{name}[/] {installed.get(name, '?')} -> [green]{latest}[/]")


@main.command()
@click.argument("name")
@click.pass_context
def deps(ctx, name):
    """Show the dependency tree of a pattern."""
    with _open(ctx) as market:
        try:
            tree = market.get_dependency_tree(name)
        except MarketplaceError as e:
            _fail(e)
    for pattern, children in tree.items():
        console.print(f"  [cyan]{pattern}[/] -> {', '.join(children) or '(none)'}")


@main.command()
@click.argument("name")
@click.pass_context
def conflicts(ctx, name):
    """Check a pattern for conflicts with installed patterns."""
    with _open(ctx) as market:
        try:
            found = market.conflict_check(name)
        except MarketplaceError as e:
            _fail(e)
    if not found:
        console.print("[green]No conflicts.[/]")
    for c in found:
        console.print(f"  [red]x[/] {c}")


# ── Registries ───────────────────────────────────────────────────────


@main.group()
def registry():
    """Inspect configured pattern registries."""


@registry.command(name="list")
@click.pass_context
def registry_list(ctx):
    """List configured registries by priority."""
    with _open(ctx) as market:
        registries = market.list_registries()
    table = Table(title="Registries")
    table.add_column("Name", style="cyan")
    table.add_column("Type")
    table.add_column("Priority", justify="right")
    table.add_column("Enabled", justify="center")
    table.add_column("URL")
    for r in registries:
        table.add_row(r.name, r.type.value, str(r.priority), "Y" if r.enabled else "N", r.url)
    console.print(table)


# ── Authoring ────────────────────────────────────────────────────────


@main.command()
@click.argument("name")
@click.option("--category", "-c", default="infrastructure")
@click.option("--output", "-o", default=None, help="Output directory")
@click.pass_context
def create(ctx, name, category, output):
    """Scaffold a new pattern."""
    with _open(ctx) as market:
        pattern = market.create_pattern(name, category, output)
    console.print(f"[green]Created[/] {pattern.full_name}")


@main.command()
@click.argument("pattern_dir")
@click.pass_context
def validate(ctx, pattern_dir):
    """Validate a pattern directory."""
    with _open(ctx) as market:
        issues = market.validate_pattern(pattern_dir)
    if not issues:
        console.print("[green]Valid![/]")
        return
    for issue in issues:
        console.print(f"  [red]x[/] {issue}")
    raise SystemExit(1)


@main.command()
@click.argument("pattern_dir")
@click.option("--registry", "-r", "registry_name", required=True, help="Local registry name")
@click.pass_context
def publish(ctx, pattern_dir, registry_name):
    """Publish a pattern to a local registry."""
    with _open(ctx) as market:
        try:
            pattern = market.publish_pattern(pattern_dir, registry_name)
        except MarketplaceError as e:
            _fail(e)
    console.print(f"[green]Published[/] {pattern.full_name} to {registry_name}")


# ── Export / import ──────────────────────────────────────────────────


@main.command(name="export")
@click.argument("output_path")
@click.pass_context
def export_config(ctx, output_path):
    """Export installed patterns to a file."""
    with _open(ctx) as market:
        market.export_config(output_path)
    console.print(f"[green]Exported to[/] {output_path}")


@main.command(name="import")
@click.argument("config_path")
@click.pass_context
def import_config(ctx, config_path):
    """Install the patterns listed in an exported file."""
    with _open(ctx) as market:
        try:
            results = market.import_config(config_path)
        except MarketplaceError as e:
            _fail(e)
    for r in results:
        status = "[green]ok[/]" if r.success else "[red]failed[/]"
        console.print(f"  {status} {r.pattern} {r.message or '; '.join(r.errors)}")


@main.command()
@click.pass_context
def metrics(ctx):
    """Show marketplace usage metrics."""
    with _open(ctx) as market:
        m = market.get_metrics()
    console.print(f"Installed: {m.installed_count}   Registries: {m.registries_count}")
    for cat, count in sorted(m.categories.items()):
        console.print(f"  {cat}: {count}")


if __name__ == "__main__":
    main()
