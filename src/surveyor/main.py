# surveyor/main.py
import logging
import sys
from pathlib import Path
from typing import Optional, Tuple

import click
from tqdm import tqdm

from . import config, log_manager
from .client import ConnectClient, RemoteTreeClient
from .config import Config
from .errors import ConfigError, NoDataError, RemoteError, SearchCancelled
from .explorer import Explorer
from .models import SearchResult
from .reporter import Reporter


def setup_logging():
    """Sets up logging to a file for warnings and errors."""
    root_logger = logging.getLogger()
    if any(isinstance(h, log_manager.DeduplicatingLogHandler) for h in root_logger.handlers):
        return
    log_file = Path.cwd() / "surveyor.log"
    # Use a custom handler so a failing service does not flood the log with identical errors.
    handler = log_manager.DeduplicatingLogHandler(log_file, mode='a', delay=True)
    formatter = logging.Formatter('%(asctime)s - %(levelname)s - %(message)s')
    handler.setFormatter(formatter)
    root_logger.addHandler(handler)
    root_logger.setLevel(logging.WARNING)


def make_client(app_config: Config) -> RemoteTreeClient:
    """Creates the HTTP client, taking the access token from the environment."""
    access_token = config.get_access_token()
    if not access_token:
        raise ConfigError(f"No access token available. Set the {config.ACCESS_TOKEN_ENV} environment variable.")
    return ConnectClient.from_config(app_config, access_token)


def fail(message: str):
    click.echo(click.style(message, fg="red"), err=True)
    sys.exit(1)


def run_search(explorer: Explorer, folder_name: str, project_id: Optional[str], root_ids: Tuple[str, ...]) -> SearchResult:
    """Resolves the start folders and runs the search, exiting on fatal errors."""
    try:
        roots = explorer.root_folders(project_id=project_id, root_folder_ids=root_ids)
        click.echo(f"Searching for folder '{folder_name}' in {len(roots)} root folder(s)...")
        return explorer.search(roots, folder_name)
    except (ConfigError, RemoteError, SearchCancelled) as e:
        logging.error(f"Search failed: {e}")
        fail(f"Search failed: {e}")


@click.group()
@click.option('--config', 'config_path', type=click.Path(dir_okay=False, path_type=Path), help='Path to a surveyor.toml file.')
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[Path]):
    """Finds model files in a remote project and reports their object properties."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


def load_app_config(ctx: click.Context) -> Tuple[Config, Optional[Path]]:
    try:
        return config.load_config_with_path(ctx.obj.get("config_path"))
    except ConfigError as e:
        fail(str(e))


@cli.command(name="search")
@click.argument('folder_name')
@click.option('--project', 'project_id', help='Project whose root folder the search starts from.')
@click.option('--root', 'root_ids', multiple=True, help='Folder id to start from. Can be used multiple times.')
@click.pass_context
def search(ctx: click.Context, folder_name: str, project_id: Optional[str], root_ids: Tuple[str, ...]):
    """
    Finds the folder FOLDER_NAME and lists the model files inside it.
    """
    setup_logging()
    app_config, _ = load_app_config(ctx)
    reporter = Reporter()
    try:
        client = make_client(app_config)
    except ConfigError as e:
        fail(str(e))

    with client:
        explorer = Explorer(client, app_config)
        result = run_search(explorer, folder_name, project_id, root_ids)

    if not result.found:
        click.echo(click.style(f"Folder '{folder_name}' not found in project.", fg="yellow"))
        return
    reporter.list_files(result.files)
    reporter.list_skipped(result.skipped)
    if result.cancelled:
        click.echo(click.style("Search was cancelled; the file list may be incomplete.", fg="yellow"))


@cli.command(name="report")
@click.argument('folder_name')
@click.option('--project', 'project_id', help='Project whose root folder the search starts from.')
@click.option('--root', 'root_ids', multiple=True, help='Folder id to start from. Can be used multiple times.')
@click.option('--output-dir', default='.', type=click.Path(file_okay=False, path_type=Path), help='Directory the report is written to.')
@click.pass_context
def report(ctx: click.Context, folder_name: str, project_id: Optional[str], root_ids: Tuple[str, ...], output_dir: Path):
    """
    Finds the folder FOLDER_NAME and exports the properties of every object
    in its model files to a CSV report.
    """
    setup_logging()
    app_config, _ = load_app_config(ctx)
    reporter = Reporter()
    try:
        client = make_client(app_config)
    except ConfigError as e:
        fail(str(e))

    with client:
        explorer = Explorer(client, app_config)
        result = run_search(explorer, folder_name, project_id, root_ids)
        if not result.found:
            fail(f"Folder '{folder_name}' not found in project.")
        click.echo(f"Found {len(result.files)} file(s). Collecting object properties...")
        reporter.list_skipped(result.skipped)

        try:
            with tqdm(total=100, desc="Generating report", unit="%", bar_format="{l_bar}{bar}| {n:.0f}%") as pbar:
                def on_progress(fraction: float):
                    pbar.n = fraction * 100
                    pbar.refresh()

                built = explorer.build_report(result.files, on_progress=on_progress)
        except NoDataError as e:
            reporter.list_skipped(e.skipped)
            fail(str(e))

    reporter.list_skipped(built.skipped)
    output_path = explorer.write_report(built.table, output_dir)
    click.echo(f"Processed {built.files_processed} of {len(result.files)} file(s).")
    click.echo(click.style(f"Report with {len(built.table.rows)} rows written to {output_path}", fg="green"))


@cli.group(name="config")
def config_group():
    """Shows or changes the settings stored in surveyor.toml."""
    pass


@config_group.command(name="show")
@click.pass_context
def config_show(ctx: click.Context):
    """Prints the effective configuration."""
    app_config, config_path = load_app_config(ctx)
    click.echo(f"Configuration file: {config_path or 'none (defaults)'}")
    for key, value in config.config_to_dict(app_config).items():
        if isinstance(value, list):
            value = ", ".join(value) if value else "(none)"
        click.echo(f"{key:<25} | {value}")


@config_group.command(name="set")
@click.option('--recursive-folder-search/--no-recursive-folder-search', default=None, help='Search sub-folders for the target folder.')
@click.option('--recursive-file-search/--no-recursive-file-search', default=None, help='Collect files from sub-folders of the target folder.')
@click.option('--attribute-set', 'attribute_sets', multiple=True, help='Attribute set to include ("*" for all). Replaces the stored list.')
@click.option('--column', 'columns', multiple=True, help='Leading report column, in order. Replaces the stored list.')
@click.option('--file-suffix', help='Suffix of the files to report on, e.g. ".ifc".')
@click.option('--batch-size', type=click.IntRange(min=1), help='Entities per property request.')
@click.option('--workers', type=click.IntRange(min=1), help='Concurrent property requests.')
@click.option('--project', 'project_id', help='Default project id.')
@click.pass_context
def config_set(ctx: click.Context, attribute_sets: Tuple[str, ...], columns: Tuple[str, ...], **options):
    """Updates settings and saves them to surveyor.toml."""
    app_config, config_path = load_app_config(ctx)
    changes = {key: value for key, value in options.items() if value is not None}
    if attribute_sets:
        changes["attribute_set_names"] = attribute_sets
    if columns:
        changes["base_column_order"] = columns
    if not changes:
        click.echo("Nothing to change.")
        return

    try:
        updated = config.update_config(app_config, **changes)
    except ConfigError as e:
        fail(str(e))

    config_path = config_path or Path.cwd() / config.CONFIG_FILE_NAME
    config.save_config_to_path(updated, config_path)
    click.echo(f"Updated {', '.join(sorted(changes))} in {config_path}")


if __name__ == "__main__":
    cli()
