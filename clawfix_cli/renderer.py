"""
Terminal rendering for diagnosis results
"""

from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table


SEVERITY_STYLES = {
    "critical": "[bold red]● critical[/bold red]",
    "high": "[red]● high[/red]",
    "medium": "[yellow]● medium[/yellow]",
    "low": "[dim]● low[/dim]",
}


class DiagnosisRenderer:
    """
    Renders API-shaped (camelCase) results with rich.

    Usage:
        renderer = DiagnosisRenderer(console)
        renderer.render_result(result)
    """

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    def severity_label(self, severity: str) -> str:
        return SEVERITY_STYLES.get(severity, severity)

    def render_result(self, result: Dict[str, Any], show_script: bool = False) -> None:
        issues = result.get("knownIssues", [])
        found = result.get("issuesFound", len(issues))

        if found == 0:
            self.console.print("\n[green]✓ No issues found[/green]")
        else:
            table = Table(show_header=True, header_style="bold cyan", title=f"{found} issue(s) found")
            table.add_column("Severity", width=12)
            table.add_column("Issue", style="bold")
            table.add_column("Description")
            for issue in issues:
                table.add_row(
                    self.severity_label(issue.get("severity", "")),
                    issue.get("title", issue.get("id", "")),
                    issue.get("description", ""),
                )
            self.console.print(table)

        if result.get("analysis"):
            style = "yellow" if result.get("partial") else "cyan"
            self.console.print(Panel(result["analysis"], title="Analysis", border_style=style))

        if result.get("aiInsights"):
            self.console.print(Panel(result["aiInsights"], title="Insights", border_style="magenta"))

        if show_script:
            self.render_script(result.get("fixScript", ""))

        self.console.print(f"\n[dim]Fix ID:[/dim] [bold]{result.get('fixId', '')}[/bold]")

    def render_script(self, script: str) -> None:
        self.console.print(Syntax(script, "bash", theme="monokai", line_numbers=False))

    def render_patterns(self, patterns: List[Dict[str, Any]]) -> None:
        table = Table(show_header=True, header_style="bold cyan", title="Known Issue Patterns")
        table.add_column("ID", style="bold")
        table.add_column("Severity", width=12)
        table.add_column("Title")
        for pattern in patterns:
            table.add_row(
                pattern.get("id", ""),
                self.severity_label(pattern.get("severity", "")),
                pattern.get("title", ""),
            )
        self.console.print(table)

    def render_error(self, message: str, hint: Optional[str] = None) -> None:
        self.console.print(f"\n[red]✗ {message}[/red]")
        if hint:
            self.console.print(f"[yellow]{hint}[/yellow]")
