"""CLI entry point for catalog-update."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

import click

from catalog_update.config import DEFAULT_CONFIG_PATH, Config
from catalog_update.pipeline import run_update

LOG_FORMAT = "  %(levelname)s: %(message)s"


def configure_logging(verbose: bool) -> None:
    """Send the package's log records to stderr."""
    logger = logging.getLogger("catalog_update")
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)


def default_config_document() -> dict[str, object]:
    """The config file written by ``init``, in its on-disk (camelCase) shape."""
    defaults = Config()
    return {
        "branchPrefix": defaults.branch_prefix,
        "defaultBranch": defaults.default_branch,
        "maxOpenPrs": defaults.max_open_prs,
        "concurrency": defaults.concurrency,
        "packageManager": defaults.package_manager,
        "groups": [],
        "ignore": [],
    }


@click.group()
@click.version_option()
def cli() -> None:
    """Keep a monorepo's dependency catalog up to date with grouped PRs."""


@cli.command()
@click.option(
    "--workflow-dir",
    type=click.Path(),
    default=".github/workflows",
    show_default=True,
    help="Directory to write the workflow file.",
)
def init(workflow_dir: str) -> None:
    """Scaffold a config file and the GitHub Actions workflow into your repo."""
    root = Path.cwd()

    if not (root / ".git").exists():
        raise click.ClickException("Not a git repository. Run from the repo root.")

    package_json = root / "package.json"
    if not package_json.exists():
        raise click.ClickException("No package.json found in current directory.")

    config_file = root / DEFAULT_CONFIG_PATH
    if config_file.exists():
        click.echo(f"• Keeping existing {DEFAULT_CONFIG_PATH}")
    else:
        config_file.write_text(json.dumps(default_config_document(), indent=2) + "\n")
        click.echo(f"✓ Wrote {DEFAULT_CONFIG_PATH}")

    dest_dir = root / workflow_dir
    dest_dir.mkdir(parents=True, exist_ok=True)
    dest = dest_dir / "catalog-update.yml"

    template = Path(__file__).parent / "templates" / "catalog-update.yml"
    dest.write_text(template.read_text())

    click.echo(f"✓ Wrote workflow to {dest.relative_to(root)}")
    click.echo()
    click.echo("Next steps:")
    click.echo(f"  1. Set defaultBranch and your groups in {DEFAULT_CONFIG_PATH}")
    click.echo("  2. Commit and push both files")
    click.echo("  3. Preview a run locally:")
    click.echo("       catalog-update run --dry-run")


@cli.command()
@click.option("--dry-run", is_flag=True, help="Print the update groups without touching git or PRs.")
@click.option(
    "--config",
    "config_path",
    default=DEFAULT_CONFIG_PATH,
    show_default=True,
    help="Config file, relative to the repo root.",
)
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging.")
def run(dry_run: bool, config_path: str, verbose: bool) -> None:
    """Run the update pipeline (usually called from CI)."""
    configure_logging(verbose)
    run_update(config_path, dry_run=dry_run)
