"""
CLI interface for the civic tracker.

Usage:
    govtrack init
    govtrack problem "Pothole on Main Street" --priority P1
    govtrack link gp-1a2b threatens gg-3c4d
    govtrack blocked ga-5e6f
"""

import atexit
import json
import os
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Optional

import typer
from typing_extensions import Annotated

from .config import DATA_DIR_NAME, find_data_dir, load_or_create_config
from .errors import GovtrackError
from .logging_config import configure_quiet_mode, enable_debug_mode
from .record_store import RecordStore
from .similarity import classify_text, suggest_entity
from .tracker import Tracker
from .types import Entity, Issue

# Configure quiet mode by default
# Set GOVTRACK_VERBOSE=1 to enable debug mode via environment
if os.environ.get("GOVTRACK_VERBOSE") == "1":
    enable_debug_mode()
else:
    configure_quiet_mode(quiet=True)


def _version_callback(value: bool):
    if value:
        from importlib.metadata import version
        print(f"govtrack {version('govtrack')}")
        raise typer.Exit()


def _verbose_callback(value: bool):
    if value:
        enable_debug_mode()


# Global state for CLI options
_json_output = False
_data_dir_override: Optional[Path] = None


def _json_callback(value: bool):
    global _json_output
    _json_output = value


def _get_json_output() -> bool:
    return _json_output


app = typer.Typer(
    name="govtrack",
    help="Civic issue tracker: goals, problems, ideas and actions.",
    no_args_is_help=True,
    rich_markup_mode=None,
)
gov_app = typer.Typer(help="Manage governments (organizational units).", no_args_is_help=True)
issue_app = typer.Typer(help="Legacy flat issues.", no_args_is_help=True)
app.add_typer(gov_app, name="gov")
app.add_typer(issue_app, name="issue")


@app.callback()
def main_callback(
    verbose: Annotated[bool, typer.Option(
        "--verbose", "-v",
        help="Enable debug-level logging to stderr",
        callback=_verbose_callback,
        is_eager=True,
    )] = False,
    output_json: Annotated[bool, typer.Option(
        "--json", "-j",
        help="Output as JSON",
        callback=_json_callback,
        is_eager=True,
    )] = False,
    version: Annotated[Optional[bool], typer.Option(
        "--version",
        help="Show version and exit",
        callback=_version_callback,
        is_eager=True,
    )] = None,
    data_dir: Annotated[Optional[Path], typer.Option(
        "--data-dir", "-d",
        envvar="GOVTRACK_DATA_DIR",
        help="Path to the .govtrack data directory",
    )] = None,
):
    """Civic issue tracker: goals, problems, ideas and actions."""
    global _data_dir_override
    _data_dir_override = data_dir


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------

def _get_tracker() -> Tracker:
    """Open the tracker for the current data directory, or exit with a hint."""
    data_dir = _data_dir_override or find_data_dir()
    if data_dir is None or not Path(data_dir).is_dir():
        typer.echo(
            "Error: Not a govtrack directory (or any parent). Run 'govtrack init' first.",
            err=True,
        )
        raise typer.Exit(1)
    tr = Tracker(data_dir)
    atexit.register(tr.close)
    return tr


@contextmanager
def _domain_errors():
    """Turn domain errors into a clean message and exit code 1."""
    try:
        yield
    except GovtrackError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


def _jsonable(value: Any) -> Any:
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


def _emit(data: Any, text: str) -> None:
    """Print JSON when --json is set, otherwise the human-readable text."""
    if _get_json_output():
        typer.echo(json.dumps(_jsonable(data), indent=2, ensure_ascii=False))
    else:
        typer.echo(text)


def _not_found(kind: str, id: str):
    typer.echo(f"Error: {kind} not found: {id}", err=True)
    raise typer.Exit(1)


def _parse_relations(values: Optional[list[str]]) -> list[dict[str, str]]:
    """Parse ``TYPE:TARGET`` relation options."""
    relations = []
    for value in values or []:
        type_, sep, target = value.partition(":")
        if not sep or not type_ or not target:
            typer.echo(f"Error: relation must be TYPE:TARGET, got {value!r}", err=True)
            raise typer.Exit(1)
        relations.append({"type": type_, "target": target})
    return relations


def _format_entity(e: Entity) -> str:
    lines = [str(e)]
    if e.body:
        lines.append(f"  {e.body}")
    if e.gov_id:
        lines.append(f"  government: {e.gov_id}")
    for rel in e.relations:
        lines.append(f"  --[{rel['type']}]--> {rel['target']}")
    return "\n".join(lines)


def _format_entities(entities: list[Entity]) -> str:
    if not entities:
        return "No entities found."
    return "\n".join(str(e) for e in entities)


def _format_issue(i: Issue) -> str:
    return f"{i.id} [{i.type}/{i.status}] P{i.priority}: {i.title[:60]}"


# -----------------------------------------------------------------------------
# Common Options
# -----------------------------------------------------------------------------

BodyOption = Annotated[Optional[str], typer.Option("--body", "-b", help="Longer description")]
PriorityOption = Annotated[Optional[str], typer.Option(
    "--priority", "-p", help="Priority 0-4 or P0-P4 (0 is most urgent)")]
GovOption = Annotated[Optional[str], typer.Option("--gov", "-g", help="Government id or slug")]
StatusOption = Annotated[Optional[str], typer.Option("--status", help="Initial status")]
RelationOption = Annotated[Optional[list[str]], typer.Option(
    "--rel", "-r", help="Relation as TYPE:TARGET (repeatable)")]


def _create(type_: str, title: str, body: Optional[str], priority: Optional[str],
            gov: Optional[str], status: Optional[str], rel: Optional[list[str]],
            **extra: Any) -> None:
    tr = _get_tracker()
    data: dict[str, Any] = {
        "title": title,
        "body": body,
        "priority": priority if priority is not None else tr.config.default_priority,
        "gov_id": gov,
        "status": status,
        "relations": _parse_relations(rel),
        **{k: v for k, v in extra.items() if v is not None},
    }
    with _domain_errors():
        entity = tr.entities.create(type_, data)
    _emit(entity, f"Created {type_}: {entity.id}\n{_format_entity(entity)}")


# -----------------------------------------------------------------------------
# Setup
# -----------------------------------------------------------------------------

@app.command()
def init(
    force: Annotated[bool, typer.Option("--force", help="Reinitialize an existing directory")] = False,
):
    """Initialize a .govtrack data directory here (or at --data-dir)."""
    data_dir = _data_dir_override or Path.cwd() / DATA_DIR_NAME
    if data_dir.exists() and not force:
        typer.echo("Error: Already initialized. Use --force to reinitialize.", err=True)
        raise typer.Exit(1)

    config = load_or_create_config(data_dir)
    store = RecordStore(data_dir)
    files = []
    for collection in ("governments", "entities", "issues"):
        path = store.path_for(collection)
        if not path.exists():
            store.write_all(collection, [])
        files.append(path.name)
    files.append(config.config_path.name)

    _emit(
        {"path": str(data_dir), "files": files},
        f"Initialized govtrack in {data_dir}\n" + "\n".join(f"  - {f}" for f in files),
    )


# -----------------------------------------------------------------------------
# Governments
# -----------------------------------------------------------------------------

@gov_app.command("add")
def gov_add(
    name: Annotated[str, typer.Argument(help="Government name")],
    type_: Annotated[str, typer.Option("--type", "-t", help="city, county, state, federal, district, other")] = "city",
    state: Annotated[Optional[str], typer.Option("--state", help="2-letter state code")] = None,
    slug: Annotated[Optional[str], typer.Option("--slug", help="Custom slug")] = None,
):
    """Create a government."""
    tr = _get_tracker()
    with _domain_errors():
        gov = tr.governments.create({"name": name, "type": type_, "state": state, "slug": slug})
    _emit(gov, f"Created government: {gov.name} ({gov.slug}, {gov.id})")


@gov_app.command("list")
def gov_list(
    type_: Annotated[Optional[str], typer.Option("--type", "-t")] = None,
    state: Annotated[Optional[str], typer.Option("--state")] = None,
):
    """List governments."""
    tr = _get_tracker()
    govs = tr.governments.list({"type": type_, "state": state})
    text = "\n".join(f"{g.id} {g.slug} [{g.type}] {g.name}" for g in govs) or "No governments found."
    _emit(govs, text)


@gov_app.command("show")
def gov_show(id_or_slug: Annotated[str, typer.Argument(help="Government id or slug")]):
    """Show a government and its counts."""
    tr = _get_tracker()
    gov = tr.governments.find(id_or_slug)
    if gov is None:
        _not_found("Government", id_or_slug)
    counts = tr.entities.get_counts(gov.id)
    text = (f"{gov.name} ({gov.slug})\n  id: {gov.id}\n  type: {gov.type}\n"
            f"  entities: {counts['total']}")
    _emit({"government": gov, "counts": counts}, text)


@gov_app.command("update")
def gov_update(
    id_or_slug: Annotated[str, typer.Argument(help="Government id or slug")],
    name: Annotated[Optional[str], typer.Option("--name", help="New name")] = None,
    status: Annotated[Optional[str], typer.Option("--status", help="active or inactive")] = None,
):
    """Rename a government or change its status."""
    updates = {k: v for k, v in {"name": name, "status": status}.items() if v is not None}
    if not updates:
        typer.echo("Error: No updates specified. Use --name or --status.", err=True)
        raise typer.Exit(1)

    tr = _get_tracker()
    with _domain_errors():
        gov = tr.governments.update(id_or_slug, updates)
    if gov is None:
        _not_found("Government", id_or_slug)
    _emit(gov, f"Updated government: {gov.name} ({gov.slug}, {gov.status})")


@gov_app.command("delete")
def gov_delete(
    id_or_slug: Annotated[str, typer.Argument(help="Government id or slug")],
    reassign: Annotated[Optional[str], typer.Option(
        "--reassign", help="Move its issues to this government")] = None,
    unfile: Annotated[bool, typer.Option(
        "--unfile", help="Leave its issues unfiled (the default)")] = False,
):
    """Delete a government, reassigning or unfiling its issues first."""
    if reassign and unfile:
        typer.echo("Error: Use either --reassign or --unfile, not both.", err=True)
        raise typer.Exit(1)

    tr = _get_tracker()
    gov = tr.governments.find(id_or_slug)
    if gov is None:
        _not_found("Government", id_or_slug)

    target = None
    if reassign:
        target = tr.governments.find(reassign)
        if target is None:
            _not_found("Target government", reassign)
        if target.id == gov.id:
            typer.echo("Error: Cannot reassign issues to the government being deleted.", err=True)
            raise typer.Exit(1)

    total = tr.issues.counts_by_gov(gov.id)["total"]
    with _domain_errors():
        for issue in tr.issues.list({"gov_id": gov.id}):
            tr.issues.assign(issue.id, target.id if target else None)
    tr.governments.remove(gov.id)

    text = f"Deleted government: {gov.name}"
    if total:
        where = f"reassigned to {target.slug}" if target else "moved to unfiled"
        text += f"\n  {total} issue(s) {where}"
    _emit(
        {"deleted": gov.id, "issues_handled": total,
         "reassigned_to": target.id if target else None},
        text,
    )


# -----------------------------------------------------------------------------
# Entity creation
# -----------------------------------------------------------------------------

@app.command()
def goal(
    title: Annotated[str, typer.Argument(help="Goal title")],
    body: BodyOption = None,
    priority: PriorityOption = None,
    gov: GovOption = None,
    status: StatusOption = None,
):
    """Create a goal."""
    _create("goal", title, body, priority, gov, status, None)


@app.command()
def problem(
    title: Annotated[str, typer.Argument(help="Problem title")],
    body: BodyOption = None,
    priority: PriorityOption = None,
    gov: GovOption = None,
    status: StatusOption = None,
    rel: RelationOption = None,
    address: Annotated[Optional[str], typer.Option("--address", help="Street address")] = None,
    lat: Annotated[Optional[float], typer.Option("--lat", help="Latitude")] = None,
    lng: Annotated[Optional[float], typer.Option("--lng", help="Longitude")] = None,
):
    """Report a problem."""
    location = {"address": address, "lat": lat, "lng": lng}
    location = {k: v for k, v in location.items() if v is not None} or None
    _create("problem", title, body, priority, gov, status, rel, location=location)


@app.command()
def idea(
    title: Annotated[str, typer.Argument(help="Idea title")],
    body: BodyOption = None,
    priority: PriorityOption = None,
    gov: GovOption = None,
    status: StatusOption = None,
    rel: RelationOption = None,
):
    """Propose an idea."""
    _create("idea", title, body, priority, gov, status, rel)


@app.command()
def action(
    title: Annotated[str, typer.Argument(help="Action title")],
    body: BodyOption = None,
    priority: PriorityOption = None,
    gov: GovOption = None,
    status: StatusOption = None,
    rel: RelationOption = None,
    assignee: Annotated[Optional[str], typer.Option("--assignee", "-a")] = None,
    due: Annotated[Optional[str], typer.Option("--due", help="Due date (YYYY-MM-DD)")] = None,
):
    """Create an action."""
    _create("action", title, body, priority, gov, status, rel, assignee=assignee, due_date=due)


# -----------------------------------------------------------------------------
# Entity queries and updates
# -----------------------------------------------------------------------------

@app.command("list")
def list_entities(
    type_: Annotated[Optional[str], typer.Option("--type", "-t", help="goal, problem, idea, action")] = None,
    gov: GovOption = None,
    unfiled: Annotated[bool, typer.Option("--unfiled", help="Only entities without a government")] = False,
    status: Annotated[Optional[str], typer.Option("--status")] = None,
    priority: PriorityOption = None,
    related_to: Annotated[Optional[str], typer.Option("--related-to", help="Entities linking to this id")] = None,
    sort: Annotated[str, typer.Option("--sort", help="Sort field")] = "created_at",
    order: Annotated[str, typer.Option("--order", help="asc or desc")] = "desc",
    limit: Annotated[Optional[int], typer.Option("--limit", "-n")] = None,
):
    """List entities."""
    tr = _get_tracker()
    with _domain_errors():
        entities = tr.entities.list({
            "type": type_, "gov_id": gov, "unfiled": unfiled, "status": status,
            "priority": priority, "related_to": related_to,
            "sort": sort, "order": order, "limit": limit,
        })
    _emit(entities, _format_entities(entities))


@app.command()
def show(id: Annotated[str, typer.Argument(help="Entity id")]):
    """Show an entity with its relations and blocked status."""
    tr = _get_tracker()
    with _domain_errors():
        entity = tr.entities.get(id)
        relations = tr.relations.get_relations(id)
        blocked = tr.relations.is_blocked(id)

    lines = [_format_entity(entity)]
    for rel in relations["incoming"]:
        lines.append(f"  <--[{rel['type']}]-- {rel['source']}")
    if blocked["blocked"]:
        lines.append("  blocked by: " + ", ".join(b["id"] for b in blocked["blockers"]))
    _emit({"entity": entity, "relations": relations, "blocked": blocked}, "\n".join(lines))


@app.command()
def update(
    id: Annotated[str, typer.Argument(help="Entity id")],
    title: Annotated[Optional[str], typer.Option("--title")] = None,
    body: BodyOption = None,
    status: Annotated[Optional[str], typer.Option("--status")] = None,
    priority: PriorityOption = None,
    gov: GovOption = None,
    unfile: Annotated[bool, typer.Option("--unfile", help="Remove the government")] = False,
    assignee: Annotated[Optional[str], typer.Option("--assignee", "-a")] = None,
    due: Annotated[Optional[str], typer.Option("--due")] = None,
):
    """Update fields of an entity."""
    options = {"title": title, "body": body, "status": status, "priority": priority,
               "gov_id": gov, "assignee": assignee, "due_date": due}
    updates = {k: v for k, v in options.items() if v is not None}
    if unfile:
        updates["gov_id"] = None
    if not updates:
        typer.echo("Error: Specify at least one field to update", err=True)
        raise typer.Exit(1)

    tr = _get_tracker()
    with _domain_errors():
        entity = tr.entities.update(id, updates)
    if entity is None:
        _not_found("Entity", id)
    _emit(entity, f"Updated {entity.id}\n{_format_entity(entity)}")


@app.command()
def close(
    id: Annotated[str, typer.Argument(help="Entity id")],
    reject: Annotated[bool, typer.Option("--reject", help="Reject an idea instead of accepting it")] = False,
    cancel: Annotated[bool, typer.Option("--cancel", help="Cancel an action instead of completing it")] = False,
    reason: Annotated[Optional[str], typer.Option("--reason")] = None,
):
    """Move an entity to its terminal status."""
    tr = _get_tracker()
    with _domain_errors():
        entity = tr.entities.close(id, rejected=reject, cancelled=cancel, reason=reason)
    if entity is None:
        _not_found("Entity", id)
    _emit(entity, f"Closed {entity.id} ({entity.status})")


@app.command()
def reopen(id: Annotated[str, typer.Argument(help="Entity id")]):
    """Return an entity to its initial status."""
    tr = _get_tracker()
    with _domain_errors():
        entity = tr.entities.reopen(id)
    if entity is None:
        _not_found("Entity", id)
    _emit(entity, f"Reopened {entity.id} ({entity.status})")


@app.command()
def delete(id: Annotated[str, typer.Argument(help="Entity id")]):
    """Delete an entity. Relations pointing at it are left dangling."""
    tr = _get_tracker()
    if not tr.entities.remove(id):
        _not_found("Entity", id)
    _emit({"deleted": id}, f"Deleted {id}")


@app.command()
def stats(gov: GovOption = None):
    """Counts by entity type and status."""
    tr = _get_tracker()
    counts = tr.stats(gov)
    lines = [f"Total entities: {counts['total']}"]
    lines += [f"  {t}: {n}" for t, n in counts["by_type"].items()]
    lines += [f"  [{s}] {n}" for s, n in sorted(counts["by_status"].items())]
    lines.append(f"Legacy issues: {counts['issues']}")
    _emit(counts, "\n".join(lines))


# -----------------------------------------------------------------------------
# Relations
# -----------------------------------------------------------------------------

@app.command()
def link(
    source: Annotated[str, typer.Argument(help="Source entity id")],
    relation: Annotated[str, typer.Argument(help="Relation type (threatens, addresses, depends_on, ...)")],
    target: Annotated[str, typer.Argument(help="Target entity id")],
):
    """Create a relation between two entities."""
    tr = _get_tracker()
    with _domain_errors():
        entity = tr.relations.link(source, relation, target)
    _emit(entity, f"Linked: {source} --[{relation}]--> {target}")


@app.command()
def unlink(
    source: Annotated[str, typer.Argument(help="Source entity id")],
    relation: Annotated[str, typer.Argument(help="Relation type")],
    target: Annotated[str, typer.Argument(help="Target entity id")],
):
    """Remove a relation between two entities."""
    tr = _get_tracker()
    with _domain_errors():
        entity = tr.relations.unlink(source, relation, target)
    _emit(entity, f"Unlinked: {source} --[{relation}]--> {target}")


@app.command()
def relations(id: Annotated[str, typer.Argument(help="Entity id")]):
    """Show outgoing and incoming relations of an entity."""
    tr = _get_tracker()
    with _domain_errors():
        rels = tr.relations.get_relations(id)
    lines = []
    for rel in rels["outgoing"]:
        target = rel["target_entity"]
        title = target.title if target else "(missing)"
        lines.append(f"--[{rel['type']}]--> {rel['target']} {title}")
    for rel in rels["incoming"]:
        lines.append(f"<--[{rel['type']}]-- {rel['source']} {rel['source_entity'].title}")
    _emit(rels, "\n".join(lines) or "No relations.")


@app.command()
def blocked(id: Annotated[str, typer.Argument(help="Entity id")]):
    """Show whether an entity is blocked by unresolved dependencies."""
    tr = _get_tracker()
    with _domain_errors():
        tr.entities.get(id)
    status = tr.relations.is_blocked(id)
    if status["blocked"]:
        text = "Blocked by:\n" + "\n".join(
            f"  {b['id']} [{b['status']}] {b['title']}" for b in status["blockers"]
        )
    else:
        text = "Not blocked."
    _emit(status, text)


@app.command()
def deps(root: Annotated[Optional[str], typer.Argument(help="Root entity id (default: all)")] = None):
    """Show the dependency graph, optionally scoped to one root."""
    tr = _get_tracker()
    graph = tr.relations.get_dependency_graph(root)
    lines = [f"{n['id']} [{n['status']}] {n['title']}" for n in graph["nodes"]]
    lines += [f"{e['source']} --[{e['type']}]--> {e['target']}" for e in graph["edges"]]
    _emit(graph, "\n".join(lines) or "No dependencies.")


@app.command()
def support(
    idea_id: Annotated[str, typer.Argument(help="Idea id")],
    supporter: Annotated[str, typer.Argument(help="Supporter identifier")],
):
    """Add a supporter to an idea."""
    tr = _get_tracker()
    with _domain_errors():
        entity = tr.entities.add_support(idea_id, supporter)
    _emit(entity, f"{entity.id} now has {entity.support_count} supporter(s)")


# -----------------------------------------------------------------------------
# Classification and similarity
# -----------------------------------------------------------------------------

@app.command()
def classify(
    text: Annotated[str, typer.Argument(help="Free text to classify")],
    suggest: Annotated[bool, typer.Option("--suggest", help="Also suggest title and body")] = False,
    create: Annotated[bool, typer.Option(
        "--create", help="Create the suggested entity from the prefilled title and body")] = False,
):
    """Guess which entity type a piece of text describes."""
    if create:
        suggest = True
    result = suggest_entity(text) if suggest else classify_text(text)
    if suggest:
        text_out = (f"{result['suggested_type']} (confidence {result['confidence']})\n"
                    f"  {result['reasoning']}\n  title: {result['prefilled']['title']}")
    else:
        text_out = (f"{result['type']} (confidence {result['confidence']})\n"
                    f"  {result['reasoning']}")

    if create:
        tr = _get_tracker()
        prefilled = result["prefilled"]
        with _domain_errors():
            entity = tr.entities.create(result["suggested_type"], {
                "title": prefilled["title"],
                "body": prefilled["body"],
                "priority": tr.config.default_priority,
            })
        result = {**result, "created": entity}
        text_out += f"\nCreated {entity.type}: {entity.id}"
    _emit(result, text_out)


@app.command()
def similar(
    text: Annotated[str, typer.Argument(help="Text to compare against ideas")],
    threshold: Annotated[Optional[float], typer.Option("--threshold")] = None,
    limit: Annotated[int, typer.Option("--limit", "-n")] = 5,
):
    """Find ideas similar to a piece of text."""
    tr = _get_tracker()
    if threshold is None:
        threshold = tr.config.similarity.threshold
    results = tr.similarity.find_similar_ideas(text, threshold, limit)
    lines = [f"{r['similarity']:.2f} {r['idea'].id} {r['idea'].title}" for r in results]
    _emit(results, "\n".join(lines) or "No similar ideas.")


@app.command()
def duplicates(
    id: Annotated[str, typer.Argument(help="Idea id")],
    threshold: Annotated[Optional[float], typer.Option("--threshold")] = None,
):
    """Find possible duplicates of an idea."""
    tr = _get_tracker()
    if threshold is None:
        threshold = tr.config.similarity.duplicate_threshold
    with _domain_errors():
        results = tr.similarity.find_duplicates(id, threshold)
    lines = [
        f"{r['similarity']:.2f} {r['idea'].id} {r['idea'].title}"
        + (" (duplicate)" if r["is_duplicate"] else "")
        for r in results
    ]
    _emit(results, "\n".join(lines) or "No duplicates.")


@app.command()
def categorize(id: Annotated[str, typer.Argument(help="Idea id")]):
    """Suggest problems and goals an idea may relate to."""
    tr = _get_tracker()
    with _domain_errors():
        result = tr.similarity.categorize_idea(id)
    lines = [f"{result['classification']} (confidence {result['confidence']})"]
    lines += [f"  addresses? {p.id} {p.title}" for p in result["suggested_problems"]]
    lines += [f"  pursues? {g.id} {g.title}" for g in result["suggested_goals"]]
    _emit(result, "\n".join(lines))


@app.command()
def insights(id: Annotated[str, typer.Argument(help="Entity id")]):
    """Recommend relations and flag duplicates for an entity."""
    tr = _get_tracker()
    with _domain_errors():
        result = tr.similarity.get_insights(id)
    lines = []
    for rec in result["recommendations"]:
        lines.append(rec["message"])
        for s in rec.get("suggestions", []):
            lines.append(f"  {s['relation_type']} {s['id']} {s['title']}")
        for d in rec.get("duplicates", []):
            lines.append(f"  {d['similarity']:.2f} {d['id']} {d['title']}")
    _emit(result, "\n".join(lines) or "No recommendations.")


# -----------------------------------------------------------------------------
# Legacy issues
# -----------------------------------------------------------------------------

@issue_app.command("add")
def issue_add(
    title: Annotated[str, typer.Argument(help="Issue title")],
    body: BodyOption = None,
    type_: Annotated[Optional[str], typer.Option("--type", "-t", help="report, request, complaint, other")] = None,
    priority: PriorityOption = None,
    gov: GovOption = None,
):
    """Create a legacy issue."""
    tr = _get_tracker()
    with _domain_errors():
        issue = tr.issues.create({
            "title": title, "body": body, "gov_id": gov,
            "type": type_ or tr.config.default_issue_type,
            "priority": priority if priority is not None else tr.config.default_priority,
        })
    _emit(issue, f"Created issue: {issue.id}")


@issue_app.command("list")
def issue_list(
    gov: GovOption = None,
    status: Annotated[Optional[str], typer.Option("--status")] = None,
):
    """List legacy issues."""
    tr = _get_tracker()
    issues = tr.issues.list({"gov_id": gov, "status": status})
    _emit(issues, "\n".join(_format_issue(i) for i in issues) or "No issues found.")


@issue_app.command("close")
def issue_close(
    id: Annotated[str, typer.Argument(help="Issue id")],
    wont_fix: Annotated[bool, typer.Option("--wont-fix")] = False,
    reason: Annotated[Optional[str], typer.Option("--reason")] = None,
):
    """Close a legacy issue."""
    tr = _get_tracker()
    issue = tr.issues.close(id, wont_fix=wont_fix, reason=reason)
    if issue is None:
        _not_found("Issue", id)
    _emit(issue, f"Closed issue: {issue.id} ({issue.status})")


@issue_app.command("reopen")
def issue_reopen(id: Annotated[str, typer.Argument(help="Issue id")]):
    """Reopen a closed legacy issue."""
    tr = _get_tracker()
    issue = tr.issues.reopen(id)
    if issue is None:
        _not_found("Issue", id)
    _emit(issue, f"Reopened issue: {issue.id}")


@issue_app.command("assign")
def issue_assign(
    id: Annotated[str, typer.Argument(help="Issue id")],
    gov: Annotated[Optional[str], typer.Argument(help="Government id or slug (omit to unfile)")] = None,
):
    """File a legacy issue under a government."""
    tr = _get_tracker()
    with _domain_errors():
        issue = tr.issues.assign(id, gov)
    if issue is None:
        _not_found("Issue", id)
    _emit(issue, f"Assigned {issue.id} to {issue.gov_id or '(unfiled)'}")


# -----------------------------------------------------------------------------

def main():
    try:
        app()
    except SystemExit:
        raise  # Let typer handle exit codes
    except KeyboardInterrupt:
        raise SystemExit(130)  # Standard exit code for Ctrl+C
    except Exception as e:
        # Log full traceback to file, show clean message to user
        from .errors import log_exception
        log_path = log_exception(e, context="govtrack CLI")
        typer.echo(f"Error: {e}", err=True)
        typer.echo(f"Details logged to {log_path}", err=True)
        raise SystemExit(1)


if __name__ == "__main__":
    main()
