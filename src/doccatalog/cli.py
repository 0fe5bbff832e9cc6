from __future__ import annotations

import json
from collections.abc import Sequence
from pathlib import Path

import click
from click.formatting import term_len

from .errors import DocCatalogError
from .log import configure_logging, get_logger
from .runtime import reset_verbose, set_verbose

COMMAND_GROUPS = (("Catalog", ("build", "refs")),)
HELP_COL_MAX = 30
HELP_COL_SPACING = 2

logger = get_logger(__name__)


def _write_bold_section(
    formatter: click.HelpFormatter, title: str, records: list[tuple[str, str]]
) -> None:
    if not records:
        return
    formatter.write("\n")
    formatter.write(click.style(title, bold=True) + "\n")
    formatter.indent()
    formatter.write_dl(records, col_max=HELP_COL_MAX, col_spacing=HELP_COL_SPACING)
    formatter.dedent()


def _command_help_limit(formatter: click.HelpFormatter, names: Sequence[str]) -> int:
    if not names:
        return 45
    max_name = max(term_len(name) for name in names)
    first_col = min(max_name, HELP_COL_MAX) + HELP_COL_SPACING
    return max(formatter.width - first_col - 2, 10)


class OrderedGroup(click.Group):
    def __init__(
        self,
        *args,
        command_groups: Sequence[tuple[str, Sequence[str]]] | None = None,
        **kwargs,
    ) -> None:
        super().__init__(*args, **kwargs)
        self._command_groups = [
            (title, list(commands)) for title, commands in (command_groups or [])
        ]

    def list_commands(self, ctx: click.Context) -> list[str]:
        ordered = [
            name
            for _, commands in self._command_groups
            for name in commands
            if name in self.commands
        ]
        remaining = [name for name in super().list_commands(ctx) if name not in ordered]
        return ordered + remaining

    def format_commands(
        self, ctx: click.Context, formatter: click.HelpFormatter
    ) -> None:
        if not self._command_groups:
            return super().format_commands(ctx, formatter)
        for title, commands in self._command_groups:
            entries = []
            for name in commands:
                cmd = self.get_command(ctx, name)
                if cmd is not None and not cmd.hidden:
                    entries.append((name, cmd))
            if not entries:
                continue
            limit = _command_help_limit(formatter, [name for name, _ in entries])
            rows = [(name, cmd.get_short_help_str(limit=limit)) for name, cmd in entries]
            _write_bold_section(formatter, title.upper(), rows)


def _raise_click(exc: DocCatalogError) -> None:
    logger.debug("build failed", exc_info=exc)
    raise click.ClickException(str(exc)) from exc


@click.group(
    cls=OrderedGroup,
    command_groups=COMMAND_GROUPS,
    context_settings={"help_option_names": ["-h", "--help"]},
)
def cli():
    """Aggregate documentation sources and classify them into a content catalog."""


def logging_options(func):
    func = click.option(
        "--log-file",
        type=click.Path(dir_okay=False, path_type=Path),
        default=None,
        help="Also write log records to this file.",
    )(func)
    return click.option(
        "-v", "--verbose", is_flag=True, help="Log git commands and debug details."
    )(func)


def _setup_logging(verbose: bool, log_file: Path | None) -> None:
    configure_logging(verbose=verbose, log_file=log_file)
    token = set_verbose(verbose)
    click.get_current_context().call_on_close(lambda: reset_verbose(token))


def _catalog_data(catalog) -> dict:
    components = []
    for component in catalog.get_components_sorted_by("name"):
        versions = []
        for cv in component.versions:
            files = [
                {
                    "family": f.src.family,
                    "module": f.src.module,
                    "relative": f.src.relative,
                    "path": f.path,
                    "url": f.pub.url if getattr(f, "pub", None) is not None else None,
                }
                for f in catalog.find_by(component=component.name, version=cv.version)
            ]
            files.sort(key=lambda item: (item["family"], item["module"] or "", item["relative"]))
            versions.append(
                {
                    "version": cv.version,
                    "display_version": cv.display_version,
                    "title": cv.title,
                    "prerelease": cv.prerelease,
                    "url": cv.url,
                    "files": files,
                }
            )
        latest_prerelease = component.latest_prerelease
        components.append(
            {
                "name": component.name,
                "title": component.title,
                "url": component.url,
                "latest": component.latest.version,
                "latest_prerelease": latest_prerelease.version if latest_prerelease else None,
                "versions": versions,
            }
        )
    site_start_page = catalog.get_site_start_page()
    return {
        "components": components,
        "site_start_page": site_start_page.pub.url
        if site_start_page is not None and getattr(site_start_page, "pub", None)
        else None,
        "redirects": [list(pair) for pair in catalog.get_redirects()],
    }


def _format_text(data: dict) -> str:
    lines = []
    for component in data["components"]:
        lines.append(f"{component['name']}: {component['title']} ({component['url']})")
        for version in component["versions"]:
            marker = " [latest]" if version["version"] == component["latest"] else ""
            lines.append(
                f"  {version['display_version']}{marker} {version['url']}"
            )
            for file in version["files"]:
                target = file["url"] or "-"
                lines.append(f"    {file['family']:<10} {target}  {file['path']}")
    if data["redirects"]:
        lines.append("redirects:")
        lines.extend(f"  {source} -> {target}" for source, target in data["redirects"])
    return "\n".join(lines)


@cli.command("build")
@click.argument("playbook_path", type=click.Path(exists=True, dir_okay=False))
@click.option("--fetch", is_flag=True, help="Fetch updates for cached remote sources.")
@click.option(
    "--cache-dir",
    type=click.Path(file_okay=False),
    default=None,
    help="Directory for cloned remote repositories.",
)
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["text", "json"]),
    default="text",
    show_default=True,
    help="Output format for the catalog listing.",
)
@logging_options
def build_cmd(playbook_path, fetch, cache_dir, output_format, verbose, log_file):
    """
    Build the content catalog described by a playbook and list it.
    """
    _setup_logging(verbose, log_file)
    from . import build_catalog

    try:
        catalog = build_catalog(playbook_path, fetch=fetch or None, cache_dir=cache_dir)
    except DocCatalogError as exc:
        _raise_click(exc)
    data = _catalog_data(catalog)
    if output_format == "json":
        click.echo(json.dumps(data, indent=2))
    else:
        click.echo(_format_text(data))


@cli.command("refs")
@click.argument("playbook_path", type=click.Path(exists=True, dir_okay=False))
@click.option("--fetch", is_flag=True, help="Fetch updates for cached remote sources.")
@logging_options
def refs_cmd(playbook_path, fetch, verbose, log_file):
    """
    List the branches and tags each content source contributes.
    """
    _setup_logging(verbose, log_file)
    from .content.aggregator import ContentAggregator
    from .playbook import load_playbook

    try:
        playbook = load_playbook(playbook_path, fetch=fetch or None)
        aggregator = ContentAggregator(playbook)
        for resolved in aggregator.resolve_sources():
            click.echo(resolved.url)
            for ref in aggregator.refs_for(resolved):
                suffix = " <worktree>" if ref.worktree_path else ""
                if ref.remote:
                    suffix += f" <remotes/{ref.remote}>"
                click.echo(f"  {ref.reftype}: {ref.name}{suffix}")
    except DocCatalogError as exc:
        _raise_click(exc)


def main():
    cli()


if __name__ == "__main__":
    main()
