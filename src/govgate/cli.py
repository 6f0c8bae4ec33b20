"""
CLI entry point for govgate.

This module provides the Typer-based command-line interface for govgate.

Commands:
    evaluate    Evaluate one resource against a policy bundle
    scan        Evaluate many resources (bulk compliance scan)
    validate    Check a policy bundle for configuration errors
    review      Answer an admission request with a webhook response body

Exit codes:
    0   allowed / compliant / valid
    1   denied / non-compliant / invalid
    2   input could not be loaded or evaluated

Architecture Note:
    The CLI is intentionally thin - it parses arguments, loads documents
    and delegates to the engine. The engine itself reads no environment
    variables; GOVGATE_* variables are option fallbacks handled here.
"""

import json
import logging
import traceback
from pathlib import Path
from typing import Annotated, Any, NoReturn, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from govgate import __version__
from govgate.admission import review as review_request
from govgate.bundle import PolicyBundle, load_bundle, load_document, load_resources
from govgate.errors import GovgateError
from govgate.report import (
    build_result_dict,
    build_scan_dict,
    generate_console_report,
    generate_scan_console_report,
)
from govgate.scan import scan as scan_resources

# Initialize Typer app with metadata
app = typer.Typer(
    name="govgate",
    help="Evaluate resources against declarative governance policies.",
    add_completion=False,
    no_args_is_help=True,
)

# Rich console for formatted output
console = Console()

EXIT_OK = 0
EXIT_DENIED = 1
EXIT_ERROR = 2


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold]govgate[/bold] version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """
    govgate - admission-time policy evaluation.

    Decide whether resources may be created or updated, given policy
    definitions and the assignments that bind them to scopes.
    """
    pass


# Shared option types
PoliciesOption = Annotated[
    Path,
    typer.Option(
        "--policies",
        "-p",
        help="Policy bundle file or directory.",
        exists=True,
        readable=True,
        resolve_path=True,
    ),
]
StrictOption = Annotated[
    Optional[bool],
    typer.Option(
        "--strict/--no-strict",
        help="Deny when an assignment cannot be evaluated (overrides the bundle).",
        envvar="GOVGATE_STRICT_PARAMETERS",
    ),
]
CollectAllOption = Annotated[
    Optional[bool],
    typer.Option(
        "--collect-all/--first-denial",
        help="Report every denial instead of stopping at the first (overrides the bundle).",
        envvar="GOVGATE_COLLECT_ALL_DENIALS",
    ),
]
JsonOption = Annotated[
    bool,
    typer.Option("--json", help="Output results in JSON format."),
]
VerboseOption = Annotated[
    bool,
    typer.Option("--verbose", help="Enable verbose output and debug logging."),
]
DebugOption = Annotated[
    bool,
    typer.Option("--debug", help="Enable debug mode with full error tracebacks."),
]


@app.command()
def evaluate(
    resource_path: Annotated[
        Path,
        typer.Argument(
            help="Path to the resource YAML/JSON document.",
            exists=True,
            readable=True,
            resolve_path=True,
        ),
    ],
    policies: PoliciesOption,
    strict: StrictOption = None,
    collect_all: CollectAllOption = None,
    json_output: JsonOption = False,
    verbose: VerboseOption = False,
    debug: DebugOption = False,
) -> None:
    """
    Evaluate one resource against a policy bundle.

    Example:
        $ govgate evaluate storage.yaml --policies governance.yaml
    """
    _configure_logging(verbose)

    bundle = _load_bundle_or_exit(policies, json_output, debug)

    try:
        documents = load_resources(resource_path)
    except GovgateError as e:
        _fail("resource_load_error", e, json_output, debug)
    if len(documents) != 1:
        message = f"Expected exactly one resource, found {len(documents)}. Use 'govgate scan' for many."
        _fail("resource_count_error", message, json_output, debug)

    try:
        engine = bundle.build_engine(
            strict_parameters=strict,
            collect_all_denials=collect_all,
        )
        resource = engine.validate_resource(documents[0])
        result = engine.evaluate(resource, bundle.assignments)
    except GovgateError as e:
        _fail("evaluation_error", e, json_output, debug)

    if json_output:
        print(json.dumps(build_result_dict(result, resource), indent=2))
    else:
        generate_console_report(result, resource, console=console, verbose=verbose)

    raise typer.Exit(code=EXIT_OK if result.allowed else EXIT_DENIED)


@app.command()
def scan(
    resources_path: Annotated[
        Path,
        typer.Argument(
            help="Path to a YAML/JSON document listing resources.",
            exists=True,
            readable=True,
            resolve_path=True,
        ),
    ],
    policies: PoliciesOption,
    workers: Annotated[
        Optional[int],
        typer.Option("--workers", "-w", help="Number of evaluation threads.", min=1),
    ] = None,
    strict: StrictOption = None,
    collect_all: CollectAllOption = None,
    json_output: JsonOption = False,
    verbose: VerboseOption = False,
    debug: DebugOption = False,
) -> None:
    """
    Evaluate every resource in a document (bulk compliance scan).

    Exits 1 if any resource is non-compliant or could not be evaluated.

    Example:
        $ govgate scan inventory.yaml --policies governance.yaml --workers 8
    """
    _configure_logging(verbose)

    bundle = _load_bundle_or_exit(policies, json_output, debug)

    try:
        documents = load_resources(resources_path)
        engine = bundle.build_engine(
            strict_parameters=strict,
            collect_all_denials=collect_all,
        )
    except GovgateError as e:
        _fail("resource_load_error", e, json_output, debug)

    report = scan_resources(engine, documents, bundle.assignments, max_workers=workers)

    if json_output:
        print(json.dumps(build_scan_dict(report), indent=2))
    else:
        generate_scan_console_report(report, console=console)

    raise typer.Exit(code=EXIT_OK if report.success else EXIT_DENIED)


@app.command()
def validate(
    bundle_path: Annotated[
        Path,
        typer.Argument(
            help="Policy bundle file or directory.",
            exists=True,
            readable=True,
            resolve_path=True,
        ),
    ],
    json_output: JsonOption = False,
    verbose: VerboseOption = False,
    debug: DebugOption = False,
) -> None:
    """
    Check a policy bundle for configuration errors.

    Every assignment must reference a known definition, sit within the
    definition's scope, and supply every required parameter with a value
    of the declared type.
    """
    _configure_logging(verbose)

    bundle = _load_bundle_or_exit(bundle_path, json_output, debug)

    try:
        engine = bundle.build_engine()
    except GovgateError as e:
        _fail("bundle_invalid", e, json_output, debug)

    errors = []
    for assignment in bundle.assignments:
        error = engine.check_assignment(assignment)
        if error is not None:
            errors.append(error)

    if json_output:
        output = {
            "valid": len(errors) == 0,
            "definitions": len(bundle.definitions),
            "assignments": len(bundle.assignments),
            "errors": [e.to_dict() for e in errors],
        }
        print(json.dumps(output, indent=2))
    elif errors:
        console.print(f"[red]Bundle validation failed: {len(errors)} error(s)[/red]")
        console.print()
        for error in errors:
            console.print(f"  [red]•[/red] [cyan]{escape(error.assignment_id)}[/cyan]: {escape(error.message)}")
    else:
        console.print(
            f"[green]✓[/green] Bundle is valid: "
            f"{len(bundle.definitions)} definition(s), {len(bundle.assignments)} assignment(s)"
        )

    raise typer.Exit(code=EXIT_OK if not errors else EXIT_DENIED)


@app.command()
def review(
    request_path: Annotated[
        Path,
        typer.Argument(
            help="Admission request: {uid?, resource} or a bare resource document.",
            exists=True,
            readable=True,
            resolve_path=True,
        ),
    ],
    policies: PoliciesOption,
    fail_open: Annotated[
        bool,
        typer.Option(
            "--fail-open",
            help="Allow the request when it cannot be evaluated.",
            envvar="GOVGATE_FAIL_OPEN",
        ),
    ] = False,
    strict: StrictOption = None,
    full: Annotated[
        bool,
        typer.Option("--full", help="Include the full evaluation result in the response."),
    ] = False,
    verbose: VerboseOption = False,
    debug: DebugOption = False,
) -> None:
    """
    Print the admission-webhook response for a request.

    The response is always printed (exit 0) once the request and the
    bundle are loaded; "allowed" carries the decision. Load errors exit 2.
    """
    _configure_logging(verbose)

    bundle = _load_bundle_or_exit(policies, True, debug)

    try:
        request = load_document(request_path)
    except GovgateError as e:
        _fail("request_load_error", e, True, debug)
    if not isinstance(request, dict):
        _fail("request_load_error", "Admission request must be a mapping", True, debug)

    resource = request.get("resource", request)
    try:
        engine = bundle.build_engine(strict_parameters=strict)
    except GovgateError as e:
        _fail("policy_load_error", e, True, debug)
    response = review_request(
        engine,
        resource if isinstance(resource, dict) else {},
        bundle.assignments,
        fail_closed=not fail_open,
    )

    body: dict[str, Any] = response.to_body()
    if "uid" in request:
        body = {"uid": request["uid"], **body}
    if full:
        body["result"] = response.result.model_dump(mode="json", by_alias=True) if response.result else None
        body["error"] = response.error

    print(json.dumps(body, indent=2, default=str))
    raise typer.Exit(code=EXIT_OK)


# =============================================================================
# Helpers
# =============================================================================


def _configure_logging(verbose: bool) -> None:
    """Route library logging through Rich on stderr."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _load_bundle_or_exit(path: Path, json_output: bool, debug: bool) -> PolicyBundle:
    try:
        return load_bundle(path)
    except GovgateError as e:
        _fail("policy_load_error", e, json_output, debug)


def _fail(error_type: str, error: GovgateError | str, json_output: bool, debug: bool) -> NoReturn:
    """Report a load/input error and exit with EXIT_ERROR."""
    message = str(error)
    if json_output:
        _output_json_error(error_type, message, debug)
    else:
        console.print(f"[red]Error: {escape(message)}[/red]")
        if debug:
            console.print(f"[dim]{traceback.format_exc()}[/dim]")
    raise typer.Exit(code=EXIT_ERROR)


def _output_json_error(error_type: str, message: str, include_traceback: bool = False) -> None:
    """Output an error in JSON format."""
    output = {
        "error": True,
        "error_type": error_type,
        "message": message,
    }
    if include_traceback:
        output["traceback"] = traceback.format_exc()
    print(json.dumps(output, indent=2))


if __name__ == "__main__":
    app()
