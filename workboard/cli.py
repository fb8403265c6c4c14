import json
from pathlib import Path

import click


@click.group()
def main() -> None:
    """Workboard - workspace state engine for a personal kanban board."""
    from workboard.engine.log import setup_logging
    from workboard.engine.settings import get_settings

    setup_logging(get_settings().log_level)


def _read_state_file(path: Path) -> object:
    """Return the raw state stored in *path*, unwrapping a snapshot envelope."""
    from workboard.engine.models.sync import StateSnapshot

    return StateSnapshot.from_json(path.read_text(encoding="utf-8")).state


def _write_state_file(path: Path, data: object) -> None:
    path.write_text(json.dumps(data, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")


# ---------------------------------------------------------------------------
# Migration
# ---------------------------------------------------------------------------


@main.command()
@click.option(
    "--input",
    "input_path",
    default="app_state.json",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Legacy state file (default: app_state.json).",
)
@click.option(
    "--output",
    "output_path",
    default="workspace-state.json",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Where to write the workspace state (default: workspace-state.json).",
)
def migrate(input_path: Path, output_path: Path) -> None:
    """Upgrade a legacy state file to the workspace schema."""
    from workboard.engine.migrations import ensure_workspace_state, parse_state_json

    raw = parse_state_json(input_path.read_text(encoding="utf-8"))
    result = ensure_workspace_state(raw)
    _write_state_file(output_path, result.state.dump())
    click.echo(f"Workspace state written to {output_path}. migrated={'yes' if result.migrated else 'no'}")


# ---------------------------------------------------------------------------
# Inspection
# ---------------------------------------------------------------------------


@main.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--fix", is_flag=True, default=False, help="Write the repaired state back to PATH.")
def check(path: Path, fix: bool) -> None:
    """Report broken references in a workspace state file."""
    import pydantic

    from workboard.engine.migrations import detect_shape
    from workboard.engine.models.enums import StateShape
    from workboard.engine.models.workspace import WorkspaceState
    from workboard.engine.recovery import analyze_workspace_state, auto_fix_workspace_state

    raw = _read_state_file(path)
    shape = detect_shape(raw)
    if shape != StateShape.CANONICAL:
        msg = f"{path} holds {shape.value} data; run `workboard migrate` first."
        raise click.ClickException(msg)
    try:
        state = WorkspaceState.model_validate(raw)
    except pydantic.ValidationError as exc:
        msg = f"{path} is not a valid workspace state: {exc.error_count()} validation errors"
        raise click.ClickException(msg) from None

    report = analyze_workspace_state(state)
    for error in report.errors:
        click.echo(f"error: {error}")
    for warning in report.warnings:
        click.echo(f"warning: {warning}")

    if fix and report.errors:
        fixed, fix_report = auto_fix_workspace_state(state)
        _write_state_file(path, fixed.dump())
        for applied in fix_report.fixes:
            click.echo(f"fixed: {applied}")
        click.echo(f"Repaired state written to {path}.")
        return

    click.echo("OK" if report.success else f"{len(report.errors)} errors found.")
    if not report.success:
        raise SystemExit(1)


@main.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def tree(path: Path) -> None:
    """Print the page tree of every workspace."""
    from workboard.engine.migrations import ensure_workspace_state
    from workboard.engine.operations.pages import PageTreeNode, get_page_tree

    state = ensure_workspace_state(_read_state_file(path)).state

    def render(nodes: list[PageTreeNode]) -> None:
        for node in nodes:
            marker = "*" if node.page.id == state.active_page_id else " "
            kind = "board" if node.page.is_board else "doc"
            click.echo(f"{marker} {'  ' * (node.depth + 1)}{node.page.icon or '-'} {node.page.title} [{kind}]")
            render(node.children)

    for workspace in state.workspaces:
        active = " (active)" if workspace.id == state.active_workspace_id else ""
        click.echo(f"{workspace.icon or ''} {workspace.name}{active}".strip())
        render(get_page_tree(state.pages, workspace.id))


if __name__ == "__main__":
    main()
