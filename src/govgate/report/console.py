"""
Console report generator for govgate.

Renders evaluation results and scans with Rich: a header panel with the
decision, then tables of denials, audit findings and configuration issues.
"""

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from govgate.scan import ComplianceState, ScanReport
from govgate.schema import EvaluationResult, Resource


# Status icons
ICON_ALLOWED = "[green]✓[/green]"
ICON_DENIED = "[red]✗[/red]"
ICON_AUDIT = "[yellow]⚑[/yellow]"
ICON_ERROR = "[magenta]![/magenta]"


def generate_console_report(
    result: EvaluationResult,
    resource: Resource | None = None,
    console: Console | None = None,
    verbose: bool = False,
) -> None:
    """
    Print a console report for one evaluation.

    Args:
        result: The evaluation result
        resource: The evaluated resource, shown in the header when given
        console: Rich Console instance (creates one if not provided)
        verbose: Also show the matched condition for each entry
    """
    if console is None:
        console = Console()

    _print_header(console, result, resource)

    if result.denials:
        console.print()
        table = _entry_table("Denials", verbose)
        for denial in result.denials:
            row = [denial.policy_id, denial.assignment_id, escape(denial.reason)]
            if verbose:
                if denial.condition:
                    row.append(escape(denial.condition))
                else:
                    row.append("[dim]implicit[/dim]" if denial.implicit else "")
            table.add_row(*row)
        console.print(table)

    if result.audit_findings:
        console.print()
        table = _entry_table("Audit findings", verbose)
        for finding in result.audit_findings:
            row = [finding.policy_id, finding.assignment_id, escape(finding.reason)]
            if verbose:
                row.append(escape(finding.condition or ""))
            table.add_row(*row)
        console.print(table)

    if result.configuration_issues:
        console.print()
        table = Table(title="Configuration issues", show_header=True, header_style="bold")
        table.add_column("Policy", style="cyan")
        table.add_column("Assignment")
        table.add_column("Error", style="magenta")
        table.add_column("Message")
        for issue in result.configuration_issues:
            table.add_row(
                issue.policy_id,
                issue.assignment_id,
                f"{issue.error_type} (E{issue.code})",
                escape(issue.message),
            )
        console.print(table)

    console.print()
    console.print(
        f"[dim]Denials: {len(result.denials)} | "
        f"Audit findings: {len(result.audit_findings)} | "
        f"Configuration issues: {len(result.configuration_issues)}[/dim]"
    )


def _print_header(console: Console, result: EvaluationResult, resource: Resource | None) -> None:
    header = Text()
    if result.allowed:
        header.append(" ALLOWED ", style="bold green")
        header.append_text(Text.from_markup(ICON_ALLOWED))
    else:
        header.append(" DENIED ", style="bold red")
        header.append_text(Text.from_markup(ICON_DENIED))

    if resource is not None:
        header.append(" │ ", style="dim")
        header.append(resource.type, style="bold cyan")
        header.append(" │ ", style="dim")
        header.append(resource.scope_path)

    console.print(Panel(header, expand=False))


def _entry_table(title: str, verbose: bool) -> Table:
    table = Table(title=title, show_header=True, header_style="bold")
    table.add_column("Policy", style="cyan")
    table.add_column("Assignment")
    table.add_column("Reason")
    if verbose:
        table.add_column("Condition", style="dim")
    return table


def generate_scan_console_report(
    report: ScanReport,
    console: Console | None = None,
) -> None:
    """Print one row per scanned resource, then summary counts."""
    if console is None:
        console = Console()

    table = Table(title="Compliance scan", show_header=True, header_style="bold")
    table.add_column("#", style="dim", width=4)
    table.add_column("Type", style="cyan")
    table.add_column("Scope")
    table.add_column("State", width=14)
    table.add_column("Details")

    for entry in report.entries:
        if entry.state is ComplianceState.COMPLIANT:
            audits = len(entry.result.audit_findings) if entry.result else 0
            state = f"{ICON_AUDIT if audits else ICON_ALLOWED} compliant"
            details = f"{audits} audit finding(s)" if audits else ""
        elif entry.state is ComplianceState.NON_COMPLIANT:
            state = f"{ICON_DENIED} denied"
            details = entry.result.denials[0].reason if entry.result else ""
        else:
            state = f"{ICON_ERROR} error"
            details = entry.error or ""

        if len(details) > 70:
            details = details[:67] + "..."

        table.add_row(
            str(entry.index + 1),
            entry.resource_type or "?",
            entry.scope_path or "?",
            state,
            escape(details),
        )

    console.print(table)
    console.print()
    console.print(
        f"[dim]Total: {report.total} | Compliant: {report.compliant} | "
        f"Non-compliant: {report.non_compliant} | Errors: {report.errors}[/dim]"
    )
