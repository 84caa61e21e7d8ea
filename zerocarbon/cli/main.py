# -*- coding: utf-8 -*-
"""
ZeroCarbon CLI
==============

Maintenance commands for the allocation-aware emission summary engine:

    zerocarbon verify-allocations HIERARCHY.json [--client ID] [--fix [--fix-strategy equal]] [--json]
    zerocarbon summary HIERARCHY.json ENTRIES.json --period monthly --year 2024 --month 3
"""

import dataclasses
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from zerocarbon import __version__
from zerocarbon.emission_summary.allocation import (
    AllocationOptions,
    build_allocation_index,
    get_allocation_summary,
    normalize_scope_identifier,
    redistribute_allocation,
)
from zerocarbon.emission_summary.config import get_config
from zerocarbon.emission_summary.models import (
    AllocationSummary,
    AssignmentStatus,
    AutoDistributionResult,
    FixStrategy,
    PeriodDescriptor,
    PeriodType,
    ProcessHierarchy,
    ScopeAssignment,
)
from zerocarbon.emission_summary.setup import EmissionSummaryService
from zerocarbon.emission_summary.stores import (
    JsonFileHierarchyStore,
    JsonFileMeasurementStore,
)
from zerocarbon.emission_summary.validator import AllocationValidator

app = typer.Typer(
    name="zerocarbon",
    help="ZeroCarbon: allocation-aware emission summaries",
    no_args_is_help=True,
    add_completion=False,
)
console = Console()

DEFAULT_CLIENT_ID = "default"


@app.callback(invoke_without_command=True)
def _root(
    version: bool = typer.Option(False, "--version", help="Show version and exit"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """
    ZeroCarbon - allocation-aware emission aggregation
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if version:
        console.print(f"ZeroCarbon v{__version__}")
        raise typer.Exit(0)


# =============================================================================
# Helpers
# =============================================================================

def _load_hierarchy_documents(path: Path) -> Tuple[Any, List[ProcessHierarchy]]:
    """Read a hierarchy file; return the raw JSON and the parsed hierarchies."""
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        console.print(f"[red][FAIL][/red] Could not read {path}: {e}")
        raise typer.Exit(2)

    documents = raw if isinstance(raw, list) else [raw]
    hierarchies = []
    for position, document in enumerate(documents):
        try:
            hierarchies.append(ProcessHierarchy.model_validate(document))
        except ValidationError as e:
            console.print(
                f"[red][FAIL][/red] Hierarchy document {position} is malformed: "
                f"{e.error_count()} error(s)"
            )
            raise typer.Exit(2)
    return raw, hierarchies


def _summary_table(client_id: str, summary: AllocationSummary) -> Table:
    table = Table(
        title=f"Shared scopes - client {client_id}",
        show_header=True,
        header_style="bold magenta",
    )
    table.add_column("Scope identifier", style="cyan")
    table.add_column("Nodes", justify="right")
    table.add_column("Sum %", justify="right")
    table.add_column("Status")

    for detail in summary.details:
        if not detail.is_shared:
            continue
        status = "[green]valid[/green]" if detail.is_valid else "[red]invalid[/red]"
        table.add_row(
            detail.scope_identifier,
            str(detail.node_count),
            f"{detail.total_allocation:.2f}",
            status,
        )
    return table


def _raw_scope_details(raw_node: Dict[str, Any]) -> List[Any]:
    """The scope list of a raw node, resolved the way ProcessNode reads it."""
    for key in ("scopeAssignments", "scope_assignments"):
        if key in raw_node:
            return raw_node[key] if isinstance(raw_node[key], list) else []
    details = raw_node.get("details")
    if isinstance(details, dict) and isinstance(details.get("scopeDetails"), list):
        return details["scopeDetails"]
    return []


def _write_back_allocations(
    document: Dict[str, Any],
    scope_identifier: str,
    outcome: AutoDistributionResult,
) -> None:
    """Set the new percentages on the raw document, leaving every other key as is."""
    pending = {a.node_id: a.allocation_pct for a in outcome.allocations}
    for raw_node in document.get("nodes") or []:
        if not isinstance(raw_node, dict) or raw_node.get("isDeleted"):
            continue
        node_id = str(raw_node.get("id"))
        if node_id not in pending:
            continue
        for scope in _raw_scope_details(raw_node):
            if not isinstance(scope, dict):
                continue
            sid = scope.get("scopeIdentifier", scope.get("scope_identifier"))
            if normalize_scope_identifier(sid) != scope_identifier:
                continue
            if ScopeAssignment.model_validate(scope).status is not AssignmentStatus.ACTIVE:
                continue
            key = "allocation_pct" if "allocation_pct" in scope else "allocationPct"
            scope[key] = pending.pop(node_id)
            break


# =============================================================================
# zerocarbon verify-allocations
# =============================================================================

@app.command("verify-allocations")
def verify_allocations(
    hierarchy_path: Path = typer.Argument(
        ...,
        help="Path to a hierarchy JSON document (or a list of documents)",
        exists=True,
        dir_okay=False,
    ),
    client_id_filter: Optional[str] = typer.Option(
        None,
        "--client", "-c",
        help="Only verify the hierarchy of this client",
    ),
    fix: bool = typer.Option(
        False,
        "--fix",
        help="Rewrite every invalid shared scope identifier and write the file back",
    ),
    fix_strategy: FixStrategy = typer.Option(
        FixStrategy.EQUAL,
        "--fix-strategy",
        help="How --fix rewrites percentages: equal, proportional or first-100",
    ),
    as_json: bool = typer.Option(
        False,
        "--json",
        help="Output results as JSON",
    ),
):
    """Check that shared scope identifiers sum to 100%"""
    config = get_config()
    validator = AllocationValidator(tolerance_pct=config.allocation_tolerance_pct)
    options = AllocationOptions(include_imported=config.include_imported)

    raw, hierarchies = _load_hierarchy_documents(hierarchy_path)
    documents = raw if isinstance(raw, list) else [raw]

    results: List[Dict[str, Any]] = []
    fixed_total = 0
    still_invalid = 0
    missing_total = 0

    for document, hierarchy in zip(documents, hierarchies):
        client_id = hierarchy.client_id or DEFAULT_CLIENT_ID
        if client_id_filter is not None and client_id != client_id_filter:
            continue
        validation = validator.validate_index(build_allocation_index(hierarchy, options))

        fixed: List[str] = []
        if fix and not validation.is_valid:
            for error in validation.errors:
                outcome = redistribute_allocation(
                    hierarchy, error.scope_identifier, fix_strategy,
                )
                if outcome.distributed:
                    _write_back_allocations(document, error.scope_identifier, outcome)
                    fixed.append(error.scope_identifier)
            fixed_total += len(fixed)
            validation = validator.validate_index(build_allocation_index(hierarchy, options))

        summary = get_allocation_summary(
            build_allocation_index(hierarchy, options), config.allocation_tolerance_pct,
        )
        missing_total += summary.scopes_missing_allocation
        if not validation.is_valid:
            still_invalid += 1

        results.append({
            "client_id": client_id,
            "is_valid": validation.is_valid,
            "fixed": fixed,
            "scopes_missing_allocation": summary.scopes_missing_allocation,
            "validation": validation.model_dump(mode="json"),
            "summary": summary.model_dump(mode="json"),
        })

        if not as_json:
            console.print(_summary_table(client_id, summary))
            for error in validation.errors:
                console.print(f"[red][FAIL][/red] {error.message}")
                for entry in error.entries:
                    explicit = "" if entry.has_explicit_pct else " (default)"
                    console.print(
                        f"       - {entry.node_label} ({entry.node_id}): "
                        f"{entry.allocation_pct:.2f}%{explicit}"
                    )
            for warning in validation.warnings:
                console.print(f"[yellow][WARN][/yellow] {warning.message}")
            if summary.scopes_missing_allocation:
                console.print(
                    f"[yellow][WARN][/yellow] {summary.scopes_missing_allocation} scope "
                    "assignment(s) have no allocationPct and count as 100%"
                )
            for sid in fixed:
                console.print(f"[green][FIXED][/green] {sid}: {fix_strategy.value} distribution")

    if fixed_total:
        hierarchy_path.write_text(json.dumps(raw, indent=2), encoding="utf-8")

    if as_json:
        typer.echo(json.dumps({
            "client_filter": client_id_filter,
            "total_hierarchies": len(results),
            "invalid_hierarchies": still_invalid,
            "fixed_allocations": fixed_total,
            "fix_strategy": fix_strategy.value if fix else None,
            "scopes_missing_allocation": missing_total,
            "hierarchies": results,
        }, indent=2))
    elif not results:
        console.print(f"[yellow][WARN][/yellow] No hierarchy found for client {client_id_filter}")
    elif still_invalid == 0:
        console.print("[green][OK][/green] All allocations are valid")

    if still_invalid:
        raise typer.Exit(1)


# =============================================================================
# zerocarbon summary
# =============================================================================

@app.command()
def summary(
    hierarchy_path: Path = typer.Argument(
        ...,
        help="Path to the hierarchy JSON document",
        exists=True,
        dir_okay=False,
    ),
    entries_path: Path = typer.Argument(
        ...,
        help="Path to a JSON list of raw emission entries",
        exists=True,
        dir_okay=False,
    ),
    period: PeriodType = typer.Option(
        PeriodType.MONTHLY,
        "--period", "-p",
        help="Period type",
    ),
    year: Optional[int] = typer.Option(None, "--year", help="Period year"),
    month: Optional[int] = typer.Option(None, "--month", help="Period month (1-12)"),
    week: Optional[int] = typer.Option(None, "--week", help="ISO week (1-53)"),
    day: Optional[int] = typer.Option(None, "--day", help="Day of month"),
    client_id: Optional[str] = typer.Option(
        None,
        "--client", "-c",
        help="Client id (default: the clientId of the first hierarchy document)",
    ),
    actor: Optional[str] = typer.Option(None, "--actor", help="Recorded as calculated_by"),
    strict: bool = typer.Option(
        False,
        "--strict",
        help="Refuse to compute when shared allocations are invalid",
    ),
    trends: bool = typer.Option(
        False,
        "--trends",
        help="Compare with the preceding period",
    ),
):
    """Compute an emission summary and print it as JSON"""
    try:
        descriptor = PeriodDescriptor(
            type=period, year=year, month=month, week=week, day=day,
        )
    except ValidationError as e:
        console.print(f"[red][FAIL][/red] Invalid period: {e.error_count()} error(s)")
        raise typer.Exit(2)

    if client_id is None:
        _, hierarchies = _load_hierarchy_documents(hierarchy_path)
        client_id = next(
            (h.client_id for h in hierarchies if h.client_id), DEFAULT_CLIENT_ID,
        )

    config = get_config()
    if strict:
        config = dataclasses.replace(config, strict_allocation=True)

    service = EmissionSummaryService(
        JsonFileHierarchyStore(hierarchy_path),
        JsonFileMeasurementStore(entries_path),
        config=config,
    )
    if trends:
        result = service.compute_summary_with_trends(client_id, descriptor, actor)
    else:
        result = service.compute_summary(client_id, descriptor, actor)

    typer.echo(result.model_dump_json(indent=2, by_alias=True))
    if result.metadata.has_errors:
        raise typer.Exit(1)


def main():
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
