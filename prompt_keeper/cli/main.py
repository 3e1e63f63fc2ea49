"""Prompt Keeper CLI: keeper command."""

from __future__ import annotations

import json
from typing import Any

import click

from prompt_keeper.cli.client import KeeperClient

BULK_OPERATIONS = ["add-tags", "remove-tags", "assign-team", "unassign-team", "delete"]


def _format_table(rows: list[dict], columns: list[str]) -> str:
    """Simple table formatter."""
    if not rows:
        return "No results."
    widths = {c: len(c) for c in columns}
    for row in rows:
        for c in columns:
            widths[c] = max(widths[c], len(_cell(row.get(c))))

    header = "  ".join(c.upper().ljust(widths[c]) for c in columns)
    separator = "  ".join("-" * widths[c] for c in columns)
    lines = [header, separator]
    for row in rows:
        lines.append("  ".join(_cell(row.get(c)).ljust(widths[c]) for c in columns))
    return "\n".join(lines)


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, list):
        return ",".join(str(v) for v in value)
    return str(value)


def _split(value: str) -> list[str]:
    return [v.strip() for v in value.split(",") if v.strip()]


@click.group()
@click.option("--api", default="http://localhost:8400", envvar="KEEPER_API", help="API base URL")
@click.option("--format", "output_format", type=click.Choice(["table", "json"]), default="table")
@click.option("--user", "user_id", default=None, envvar="KEEPER_USER", help="Acting user ID")
@click.pass_context
def cli(ctx: click.Context, api: str, output_format: str, user_id: str | None) -> None:
    """Prompt Keeper CLI: browse, delete, restore and bulk-edit shared prompts."""
    ctx.ensure_object(dict)
    ctx.obj = KeeperClient(base_url=api, user_id=user_id)
    ctx.meta["output_format"] = output_format


def _output(ctx: click.Context, data: Any, columns: list[str] | None = None) -> None:
    fmt = ctx.meta.get("output_format", "table")
    if fmt == "json":
        click.echo(json.dumps(data, indent=2, default=str))
    elif isinstance(data, list) and columns:
        click.echo(_format_table(data, columns))
    else:
        click.echo(json.dumps(data, indent=2, default=str))


def _echo_warnings(warnings: list[str]) -> None:
    if warnings:
        click.echo("\nWarnings:", err=True)
        for w in warnings:
            click.echo(f"  - {w}", err=True)


def _echo_result(ctx: click.Context, result: dict, verb: str) -> None:
    if ctx.meta.get("output_format") == "json":
        _output(ctx, result)
        return
    click.echo(f"{verb} {len(result['successful'])} prompt(s)")
    for failure in result["failed"]:
        click.echo(f"  failed {failure['prompt_id']}: {failure['error']}", err=True)


# --- Prompt commands ---


@cli.group()
def prompt() -> None:
    """Browse prompts."""


@prompt.command("list")
@click.option("--scope", type=click.Choice(["private", "team", "global"]), default="private")
@click.option("--team", "team_id", default=None)
@click.option("--search", default="")
@click.option("--tag", "tags", multiple=True)
@click.option("--page", type=int, default=1)
@click.pass_context
def prompt_list(
    ctx: click.Context,
    scope: str,
    team_id: str | None,
    search: str,
    tags: tuple[str, ...],
    page: int,
) -> None:
    """List prompts in a sharing scope."""
    client: KeeperClient = ctx.obj
    params: dict[str, Any] = {"scope": scope, "page": page}
    if team_id:
        params["team_id"] = team_id
    if search:
        params["search"] = search
    if tags:
        params["tag"] = list(tags)
    data = client.list_prompts(**params)
    if ctx.meta.get("output_format") == "json":
        _output(ctx, data)
        return
    _output(ctx, data["items"], ["id", "title", "sharing", "team_id", "tags", "usage_count"])
    click.echo(f"\nPage {data['page']} ({data['total']} total)")


@prompt.command("show")
@click.argument("prompt_id")
@click.pass_context
def prompt_show(ctx: click.Context, prompt_id: str) -> None:
    """Show prompt details."""
    client: KeeperClient = ctx.obj
    _output(ctx, client.get_prompt(prompt_id))


# --- Impact and deletion ---


@cli.command()
@click.argument("prompt_ids", nargs=-1, required=True)
@click.pass_context
def impact(ctx: click.Context, prompt_ids: tuple[str, ...]) -> None:
    """Show what deleting one or more prompts would affect."""
    client: KeeperClient = ctx.obj
    if len(prompt_ids) == 1:
        data = client.deletion_impact(prompt_ids[0])
        if ctx.meta.get("output_format") == "json":
            _output(ctx, data)
            return
        click.echo(f"Prompt:   {data['prompt']['title']} ({data['prompt_id']})")
        click.echo(f"Score:    {data['total_impact_score']} ({data['severity']})")
        click.echo(f"Teams:    {len(data['affected_teams'])}")
        click.echo(f"Users:    {len(data['affected_users'])}")
        click.echo(f"Usage:    {data['usage_analytics']['total_usage']}")
        _echo_warnings(data["warnings"])
        return

    data = client.bulk_deletion_impact(list(prompt_ids))
    if ctx.meta.get("output_format") == "json":
        _output(ctx, data)
        return
    rows = [
        {
            "prompt_id": i["prompt_id"],
            "score": i["total_impact_score"],
            "severity": i["severity"],
            "teams": len(i["affected_teams"]),
            "users": len(i["affected_users"]),
        }
        for i in data["impacts"]
    ]
    click.echo(_format_table(rows, ["prompt_id", "score", "severity", "teams", "users"]))
    click.echo(f"\nTotal score: {data['total_impact_score']}")
    _echo_warnings(data["warnings"])


@cli.command()
@click.argument("prompt_id")
@click.option("--yes", is_flag=True, help="Skip the confirmation prompt")
@click.pass_context
def delete(ctx: click.Context, prompt_id: str, yes: bool) -> None:
    """Delete a prompt after reviewing its impact. A backup is kept."""
    client: KeeperClient = ctx.obj
    if not yes:
        data = client.deletion_impact(prompt_id)
        click.echo(f"Impact score {data['total_impact_score']} ({data['severity']})")
        _echo_warnings(data["warnings"])
        click.confirm(f"Delete '{data['prompt']['title']}'?", abort=True)
    client.delete_prompt(prompt_id)
    click.echo(f"Deleted {prompt_id} (restore with: keeper backups restore {prompt_id})")


# --- Backups ---


@cli.group()
def backups() -> None:
    """Deleted prompts and restores."""


@backups.command("list")
@click.option("--limit", type=int, default=50)
@click.pass_context
def backups_list(ctx: click.Context, limit: int) -> None:
    """List recent deletions, newest first."""
    client: KeeperClient = ctx.obj
    data = client.list_backups(limit)
    rows = [
        {
            "prompt_id": b["prompt_id"],
            "title": b["prompt_data"].get("title"),
            "deleted_at": b["deleted_at"],
            "deleted_by": b.get("deleted_by"),
            "restored_at": b.get("restored_at"),
        }
        for b in data
    ]
    if ctx.meta.get("output_format") == "json":
        _output(ctx, data)
    else:
        _output(ctx, rows, ["prompt_id", "title", "deleted_at", "deleted_by", "restored_at"])


@backups.command("restore")
@click.argument("prompt_ids", nargs=-1, required=True)
@click.pass_context
def backups_restore(ctx: click.Context, prompt_ids: tuple[str, ...]) -> None:
    """Restore deleted prompts with their team assignments."""
    client: KeeperClient = ctx.obj
    if len(prompt_ids) == 1:
        restored = client.restore_prompt(prompt_ids[0])
        click.echo(f"Restored {restored['id']}: {restored['title']}")
        return
    _echo_result(ctx, client.restore_prompts(list(prompt_ids)), "Restored")


# --- Usage analytics ---


@cli.command()
@click.option("--since", default=None, help="Start date or timestamp")
@click.option("--until", default=None, help="End date (inclusive) or timestamp")
@click.option("--team", "team_id", default=None, help="Team ID, or 'no-team'")
@click.option("--by-user", "user_id", default=None, help="User ID")
@click.option("--prompt", "prompt_id", default=None, help="Prompt ID")
@click.option("--action", "actions", multiple=True)
@click.option("--search", default="")
@click.option("--export", "export_to", type=click.File("w"), default=None,
              help="Write summary and logs as JSON to this file")
@click.pass_context
def analytics(
    ctx: click.Context,
    since: str | None,
    until: str | None,
    team_id: str | None,
    user_id: str | None,
    prompt_id: str | None,
    actions: tuple[str, ...],
    search: str,
    export_to,
) -> None:
    """System-wide usage analytics (super users)."""
    client: KeeperClient = ctx.obj
    params: dict[str, Any] = {
        k: v
        for k, v in {
            "since": since, "until": until, "team_id": team_id,
            "user_id": user_id, "prompt_id": prompt_id, "search": search,
        }.items()
        if v
    }
    if actions:
        params["action"] = list(actions)

    if export_to:
        export_to.write(json.dumps(client.export_usage_overview(**params), indent=2, default=str))
        export_to.write("\n")
        return

    overview = client.usage_overview(**params)
    if ctx.meta.get("output_format") == "json":
        _output(ctx, overview)
        return
    click.echo(
        f"{overview['total_usage']} uses by {overview['unique_users']} user(s) "
        f"across {overview['unique_prompts']} prompt(s) and {overview['unique_teams']} team(s)"
    )
    if overview["top_prompts"]:
        click.echo("\nTop prompts:")
        click.echo(_format_table(overview["top_prompts"], ["prompt_id", "title", "count"]))


# --- Bulk ---


@cli.command()
@click.argument("operation", type=click.Choice(BULK_OPERATIONS))
@click.argument("prompt_ids", nargs=-1, required=True)
@click.option("--tags", default="", help="Comma-separated tags (add-tags, remove-tags)")
@click.option("--team", "team_id", default=None, help="Team ID (assign-team, unassign-team)")
@click.option("--yes", is_flag=True, help="Skip the confirmation prompt for delete")
@click.pass_context
def bulk(
    ctx: click.Context,
    operation: str,
    prompt_ids: tuple[str, ...],
    tags: str,
    team_id: str | None,
    yes: bool,
) -> None:
    """Apply one operation to many prompts."""
    client: KeeperClient = ctx.obj
    data: Any = None
    if operation in ("add-tags", "remove-tags"):
        data = _split(tags)
        if not data:
            raise click.UsageError(f"{operation} needs --tags")
    elif operation in ("assign-team", "unassign-team"):
        if not team_id:
            raise click.UsageError(f"{operation} needs --team")
        data = team_id
    elif not yes:
        summary = client.bulk_deletion_impact(list(prompt_ids))
        click.echo(f"Total impact score {summary['total_impact_score']}")
        _echo_warnings(summary["warnings"])
        click.confirm(f"Delete {len(prompt_ids)} prompt(s)?", abort=True)

    result = client.bulk(operation, list(prompt_ids), data, confirm=operation == "delete")
    _echo_result(ctx, result, "Updated" if operation != "delete" else "Deleted")


# --- Import / export ---


@cli.command("export")
@click.option("--scope", type=click.Choice(["global", "team", "selected"]), default="global")
@click.option("--team", "team_id", default=None)
@click.option("--prompt", "prompt_ids", multiple=True, help="Prompt ID (scope=selected)")
@click.option("--no-assignments", is_flag=True, help="Leave out team assignments")
@click.option("--usage", is_flag=True, help="Include usage counts")
@click.option("--output", "-o", type=click.File("w"), default="-")
@click.pass_context
def export_cmd(
    ctx: click.Context,
    scope: str,
    team_id: str | None,
    prompt_ids: tuple[str, ...],
    no_assignments: bool,
    usage: bool,
    output,
) -> None:
    """Export prompts as JSON."""
    client: KeeperClient = ctx.obj
    doc = client.export_prompts({
        "scope": scope,
        "team_id": team_id,
        "prompt_ids": list(prompt_ids) or None,
        "include_team_assignments": not no_assignments,
        "include_usage_data": usage,
    })
    output.write(json.dumps(doc, indent=2, default=str))
    output.write("\n")


@cli.command("import")
@click.argument("source", type=click.File("r"))
@click.option("--preview", is_flag=True, help="Only show what would change")
@click.option("--resolve", "resolve_opts", multiple=True, help="prompt_id=skip|overwrite|create_new")
@click.option("--team", "target_team_id", default=None, help="Import everything into this team")
@click.pass_context
def import_cmd(
    ctx: click.Context,
    source,
    preview: bool,
    resolve_opts: tuple[str, ...],
    target_team_id: str | None,
) -> None:
    """Import prompts from an export file."""
    client: KeeperClient = ctx.obj
    try:
        data = json.load(source)
    except json.JSONDecodeError as e:
        raise click.ClickException(f"Invalid JSON: {e}") from e

    resolutions: dict[str, str] = {}
    for opt in resolve_opts:
        if "=" not in opt:
            raise click.UsageError(f"--resolve expects prompt_id=resolution, got '{opt}'")
        key, value = opt.split("=", 1)
        resolutions[key] = value

    check = client.validate_import(data)
    if not check["valid"]:
        for error in check["errors"]:
            click.echo(f"  - {error}", err=True)
        raise click.ClickException("Import file is not valid")

    if preview:
        result = client.preview_import(data, resolutions)
        if ctx.meta.get("output_format") == "json":
            _output(ctx, result)
            return
        changes = result["estimated_changes"]
        click.echo(
            f"New: {len(result['new_prompts'])}  "
            f"Conflicts: {len(result['conflicting_prompts'])}  "
            f"Invalid: {len(result['invalid_prompts'])}"
        )
        click.echo(
            f"Would create {changes['creates']}, update {changes['updates']}, "
            f"skip {changes['skips']}"
        )
        return

    result = client.import_prompts(data, resolutions, target_team_id)
    if ctx.meta.get("output_format") == "json":
        _output(ctx, result)
        return
    click.echo(f"Imported {result['imported']}, skipped {result['skipped']}")
    for error in result["errors"]:
        click.echo(f"  - {error.get('prompt_id')}: {error['message']}", err=True)


if __name__ == "__main__":
    cli()
