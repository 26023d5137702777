"""Click CLI entry point for the statement command.

Handles argument parsing, config loading, and error display. All business
logic is delegated to ``pipeline``, ``aggregation``, ``view``, ``projects``
and ``report`` modules.
"""

from __future__ import annotations

import logging
import mimetypes
import sys
from pathlib import Path
from typing import NoReturn

import click

from statement_ai import __version__
from statement_ai.models import SHOW_ALL, AppConfig, GroupBy, Transaction
from statement_ai.view import ViewState

_INTERACTIVE_HELP = """\
Commands:
  g supplier|project   group by supplier or project (clears filter and selection)
  f NAME               show only group NAME
  f                    show all groups
  s ID [ID ...]        toggle selection of transactions by id
  a                    select / deselect every visible transaction
  q                    quit"""


def _configure_logging(verbose: bool, debug: bool) -> None:
    """Set up logging based on verbosity flags."""
    if debug:
        level = logging.DEBUG
    elif verbose:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s",
        force=True,
    )


def _fail(message: str) -> NoReturn:
    click.echo(f"Error: {message}", err=True)
    sys.exit(1)


def _is_csv_file(path: Path) -> bool:
    """Accept files named ``*.csv`` or whose guessed MIME type is text/csv."""
    if path.name.lower().endswith(".csv"):
        return True
    mime_type, _ = mimetypes.guess_type(path.name)
    return mime_type == "text/csv"


def _load_config_or_exit(root: Path) -> AppConfig:
    from statement_ai.config import load_config

    try:
        return load_config(root)
    except Exception as exc:
        _fail(f"could not load configuration: {exc}")


def _load_projects(root: Path, config: AppConfig):
    from statement_ai.config import projects_path
    from statement_ai.projects import JsonFileStore, ProjectList

    store = JsonFileStore(projects_path(root, config))
    return ProjectList.load(store, config.default_projects)


def _parse_ids(values: tuple[str, ...], transactions: list[Transaction]) -> list[int]:
    """Parse ids given as ``3``, ``3,4`` or ``3 4``; reject unknown ids."""
    ids: list[int] = []
    for value in values:
        for part in value.replace(",", " ").split():
            try:
                txn_id = int(part)
            except ValueError:
                raise click.BadParameter(f"not a transaction id: {part!r}") from None
            if not transactions:
                raise click.BadParameter(f"no transaction with id {txn_id} (no transactions)")
            if not 0 <= txn_id < len(transactions):
                raise click.BadParameter(
                    f"no transaction with id {txn_id} (valid: 0-{len(transactions) - 1})"
                )
            ids.append(txn_id)
    return ids


@click.group()
@click.version_option(version=__version__, prog_name="statement-ai")
def cli() -> None:
    """Analyze bank statement spending by supplier and project using an LLM."""


# ===========================================================================
# statement process
# ===========================================================================


@cli.command()
@click.argument("statement", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--group-by",
    type=click.Choice([g.value for g in GroupBy]),
    default=GroupBy.SUPPLIER.value,
    show_default=True,
    help="Grouping dimension for the summary.",
)
@click.option("--filter", "filter_value", default=SHOW_ALL, help="Show only one group.")
@click.option("--select", "select_ids", multiple=True, help="Transaction ids to select.")
@click.option("--select-all", is_flag=True, default=False, help="Select every visible row.")
@click.option("--interactive", "-i", is_flag=True, default=False, help="Explore the result.")
@click.option(
    "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Write the visible transactions to a CSV file.",
)
@click.option("--no-llm", is_flag=True, default=False, help="Use offline heuristic extraction.")
@click.option("--verbose", is_flag=True, default=False, help="Detailed progress output.")
@click.option("--debug", is_flag=True, default=False, help="Developer-level diagnostics.")
def process(
    statement: Path,
    group_by: str,
    filter_value: str | None,
    select_ids: tuple[str, ...],
    select_all: bool,
    interactive: bool,
    output: Path | None,
    no_llm: bool,
    verbose: bool,
    debug: bool,
) -> None:
    """Extract suppliers and projects from a bank statement CSV."""
    _configure_logging(verbose, debug)

    if not _is_csv_file(statement):
        _fail("Please upload a valid CSV file.")

    root = Path.cwd()
    config = _load_config_or_exit(root)
    projects = _load_projects(root, config)

    from statement_ai.llm import AnthropicAdapter, HeuristicAdapter

    if no_llm or config.llm_provider == "none":
        adapter = HeuristicAdapter()
        if verbose:
            click.echo("LLM extraction disabled; using heuristic extraction.")
    else:
        adapter = AnthropicAdapter(
            model=config.llm_model,
            api_key_env=config.llm_api_key_env,
            max_tokens=config.llm_max_tokens,
            timeout=config.llm_timeout,
        )
        if verbose:
            click.echo(f"Using LLM: {config.llm_provider} ({config.llm_model})")

    try:
        csv_text = statement.read_text(encoding="utf-8-sig")
    except (OSError, UnicodeDecodeError) as exc:
        _fail(f"Failed to read file: {exc}")

    from statement_ai.pipeline import RunFailedError, StatementRun

    with click.progressbar(length=100, label="Analyzing statement") as bar:

        def on_progress(progress: int) -> None:
            bar.update(progress - bar.pos)

        statement_run = StatementRun(adapter, batch_size=config.batch_size, listener=on_progress)
        try:
            result = statement_run.start(csv_text, projects.names)
        except RunFailedError as exc:
            _fail(f"Failed to process the CSV: {exc}")

    from statement_ai.report import export_transactions, print_run_summary

    print_run_summary(result)
    transactions = result.transactions

    view = ViewState()
    view.set_group_by(group_by)
    if not _is_group(transactions, view.group_by, filter_value):
        _fail(f"no {group_by} named {filter_value!r} in this statement")
    view.set_filter(filter_value)
    try:
        for txn_id in _parse_ids(select_ids, transactions):
            view.selected.add(txn_id)
    except click.BadParameter as exc:
        _fail(exc.format_message())
    if select_all:
        view.toggle_select_all(transactions)

    if interactive:
        _explore(transactions, view)
    else:
        _show(transactions, view)

    if output is not None:
        try:
            path = export_transactions(view.visible(transactions), output)
        except OSError as exc:
            _fail(f"could not write output: {exc}")
        click.echo(f"Wrote {len(view.visible(transactions))} transactions to {path}")


def _is_group(transactions: list[Transaction], group_by: GroupBy, value: str | None) -> bool:
    from statement_ai.aggregation import group_sums

    return value is SHOW_ALL or value in group_sums(transactions, group_by)


def _show(transactions: list[Transaction], view: ViewState) -> None:
    from statement_ai.aggregation import summarize
    from statement_ai.report import print_dashboard

    print_dashboard(transactions, summarize(transactions, view), view)


def _explore(transactions: list[Transaction], view: ViewState) -> None:
    """Interactive loop: apply one command, then redraw the dashboard."""
    _show(transactions, view)
    while True:
        try:
            line = click.prompt("Command (? for help)", default="q", show_default=False)
        except click.Abort:
            break

        command, _, arg = line.strip().partition(" ")
        arg = arg.strip()

        if command == "q":
            break
        elif command == "g":
            try:
                view.set_group_by(arg)
            except ValueError:
                click.echo("Group by 'supplier' or 'project'.")
                continue
        elif command == "f":
            if not _is_group(transactions, view.group_by, arg or SHOW_ALL):
                click.echo(f"No {view.group_by.value} named {arg!r}.")
                continue
            view.set_filter(arg or SHOW_ALL)
        elif command == "s":
            try:
                ids = _parse_ids((arg,), transactions)
            except click.BadParameter as exc:
                click.echo(exc.format_message())
                continue
            for txn_id in ids:
                view.toggle(txn_id)
        elif command == "a":
            view.toggle_select_all(transactions)
        else:
            click.echo(_INTERACTIVE_HELP)
            continue

        _show(transactions, view)


# ===========================================================================
# statement projects
# ===========================================================================


@cli.group()
def projects() -> None:
    """Manage the project names matched against statement descriptions."""


@projects.command("list")
def projects_list() -> None:
    """Show the configured project names."""
    root = Path.cwd()
    project_list = _load_projects(root, _load_config_or_exit(root))
    if not len(project_list):
        click.echo("No projects configured.")
        return
    for name in project_list:
        click.echo(name)


@projects.command("add")
@click.argument("name")
def projects_add(name: str) -> None:
    """Add a project name."""
    root = Path.cwd()
    project_list = _load_projects(root, _load_config_or_exit(root))
    if project_list.add(name):
        click.echo(f"Added project {name.strip()!r}")
    else:
        click.echo(f"Project {name.strip()!r} is blank or already configured; nothing changed.")


@projects.command("remove")
@click.argument("name")
def projects_remove(name: str) -> None:
    """Remove a project name."""
    root = Path.cwd()
    project_list = _load_projects(root, _load_config_or_exit(root))
    if not project_list.remove(name):
        _fail(f"no project named {name!r}")
    click.echo(f"Removed project {name!r}")


@projects.command("clear")
@click.option("--yes", is_flag=True, default=False, help="Do not ask for confirmation.")
def projects_clear(yes: bool) -> None:
    """Remove every project name."""
    root = Path.cwd()
    project_list = _load_projects(root, _load_config_or_exit(root))
    if not yes and not click.confirm("Are you sure you want to clear all projects?"):
        click.echo("Aborted; projects unchanged.")
        return
    project_list.clear()
    click.echo("Cleared all projects.")


@projects.command("import")
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def projects_import(file: Path) -> None:
    """Replace the project list with a JSON array of names."""
    from statement_ai.projects import ProjectImportError

    root = Path.cwd()
    project_list = _load_projects(root, _load_config_or_exit(root))
    try:
        project_list.import_json(file.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError) as exc:
        _fail(f"Failed to read file: {exc}")
    except ProjectImportError as exc:
        _fail(f"Failed to import configuration. {exc}")
    click.echo(f"Imported {len(project_list)} projects from {file}")


@projects.command("export")
@click.option(
    "--out",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Destination file. Default: project_config.json",
)
def projects_export(out: Path | None) -> None:
    """Write the project list as a JSON array."""
    from statement_ai.projects import EXPORT_FILENAME

    root = Path.cwd()
    project_list = _load_projects(root, _load_config_or_exit(root))
    out = out or root / EXPORT_FILENAME
    try:
        out.write_text(project_list.export_json(), encoding="utf-8")
    except OSError as exc:
        _fail(f"could not write {out}: {exc}")
    click.echo(f"Exported {len(project_list)} projects to {out}")


# ===========================================================================
# statement init
# ===========================================================================


@cli.command()
@click.option(
    "--dir", "target_dir", default=".", type=click.Path(), help="Directory to initialize."
)
@click.option(
    "--provider",
    type=click.Choice(["anthropic", "none"]),
    default="anthropic",
    show_default=True,
    help="Extraction provider.",
)
@click.option("--model", default=None, help="LLM model identifier.")
@click.option("--batch-size", type=click.IntRange(min=1), default=None, help="Rows per LLM call.")
def init(target_dir: str, provider: str, model: str | None, batch_size: int | None) -> None:
    """Create config.toml and the data directory."""
    from statement_ai.config import initialize

    target = Path(target_dir).resolve()
    config = AppConfig(llm_provider=provider)
    if model:
        config.llm_model = model
    if batch_size:
        config.batch_size = batch_size

    try:
        created = initialize(target, config)
    except Exception as exc:
        _fail(f"could not initialize project: {exc}")

    if created:
        click.echo(f"Initialized Statement AI project in {target}")
    else:
        click.echo(f"config.toml already exists in {target}; left unchanged")
