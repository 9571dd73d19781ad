from rich import box
from rich.columns import Columns
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

SPARK_BLOCKS = " ▁▂▃▄▅▆▇█"


class DisplayManager:
    def __init__(self, console=None):
        self.console = console or Console()

    def print_main_header(self, last_updated="-", connection_status="connected"):
        status_color = "green" if connection_status == "connected" else "red"
        self.console.print(
            f"\n[bold blue]Quota Dashboard[/bold blue] "
            f"[{status_color}]● {connection_status}[/] [dim]updated {last_updated}[/dim]"
        )

    def notify(self, message, level="info"):
        """Toast-style one-line notification."""
        colors = {"error": "red", "warning": "yellow", "success": "green"}
        color = colors.get(level, "blue")
        self.console.print(f"[{color}]{level.capitalize()}:[/{color}] {message}")

    def render_quota_table(self, rows):
        """Render the filtered per-model quota table."""
        if not rows:
            self.console.print("[yellow]No models match the current filters.[/yellow]")
            return

        table = Table(
            title="Model Quotas",
            title_style="bold blue",
            show_header=True,
            header_style="bold bright_white",
            box=box.ROUNDED,
            border_style="blue",
            padding=(0, 1),
        )
        table.add_column("", no_wrap=True, width=1)
        table.add_column("Model", style="white", no_wrap=True)
        table.add_column("Family", style="magenta", no_wrap=True)
        table.add_column("Avg", justify="right", no_wrap=True)
        table.add_column("Min", justify="right", no_wrap=True)
        table.add_column("Bar", no_wrap=True, min_width=12)
        table.add_column("Reset", style="dim", no_wrap=True)
        table.add_column("Accounts", style="cyan")

        for row in rows:
            avg = row["avg_quota"]
            avg_color = get_pct_color(avg)
            min_color = get_pct_color(row["min_quota"])
            filled = int(avg / 10)
            bar = f"[{avg_color}]{'█' * filled}[/][dim]{'░' * (10 - filled)}[/dim]"
            accounts = " ".join(
                f"{info['email']}:[{get_pct_color(info['pct'])}]{info['pct']}%[/]"
                for info in row["quota_info"]
            )
            table.add_row(
                "[yellow]*[/yellow]" if row["pinned"] else "",
                row["display_name"],
                row["family"],
                f"[{avg_color}]{avg}%[/]",
                f"[{min_color}]{row['min_quota']}%[/]",
                bar,
                row["reset_in"],
                accounts,
            )

        self.console.print()
        self.console.print(table)
        self.console.print(f"  [dim]{len(rows)} models shown[/dim]")

    def render_stats(self, stats, usage_stats=None):
        """Render account counters and request totals as a row of panels."""
        health = stats.get("overall_health", 0)
        health_color = get_pct_color(health)
        panels = [
            Panel(
                f"[bold bright_white]{stats.get('total', 0)}[/] accounts\n"
                f"[green]{stats.get('active', 0)}[/] active  "
                f"[red]{stats.get('limited', 0)}[/] limited",
                title="[bold]Accounts[/bold]",
                border_style="blue",
                box=box.ROUNDED,
                padding=(0, 1),
            ),
            Panel(
                f"[{health_color}]{health}%[/] quota remaining",
                title="[bold]Health[/bold]",
                border_style="green",
                box=box.ROUNDED,
                padding=(0, 1),
            ),
        ]
        if usage_stats is not None:
            panels.append(
                Panel(
                    f"[yellow]{usage_stats.total:,.0f}[/] total\n"
                    f"[cyan]{usage_stats.today:,.0f}[/] today  "
                    f"[magenta]{usage_stats.this_hour:,.0f}[/] this hour",
                    title="[bold]Requests[/bold]",
                    border_style="magenta",
                    box=box.ROUNDED,
                    padding=(0, 1),
                )
            )
        self.console.print(Columns(panels, equal=True, expand=True))

    def render_health(self, health):
        """Render per-family health bars."""
        families = health.get("families", {})
        if not families:
            self.console.print("[yellow]No quota data for the health chart.[/yellow]")
            return
        for family in sorted(families):
            value = families[family].get("health", 0)
            color = get_pct_color(value)
            filled = int(value / 5)
            bar = f"[{color}]{'█' * filled}[/][dim]{'░' * (20 - filled)}[/dim]"
            self.console.print(f"  {family:8} {bar} [{color}]{value:3d}%[/]")

    def render_trend_chart(self, chart, selected_count=""):
        """Render each trend dataset as a sparkline row."""
        if chart is None or not chart.datasets:
            self.console.print("[yellow]No usage trend data selected.[/yellow]")
            return

        span = ""
        if chart.labels:
            span = f"{chart.labels[0]} → {chart.labels[-1]}"

        table = Table(
            title=f"Usage Trend ({selected_count})" if selected_count else "Usage Trend",
            title_style="bold blue",
            caption=span,
            show_header=True,
            header_style="bold bright_white",
            box=box.SIMPLE_HEAVY,
            border_style="blue",
        )
        table.add_column("Series", no_wrap=True)
        table.add_column("Trend", no_wrap=True, min_width=24)
        table.add_column("Total", justify="right", no_wrap=True)
        table.add_column("Peak", justify="right", no_wrap=True)

        for dataset in chart.datasets:
            values = dataset.data
            table.add_row(
                f"[{dataset.color}]{dataset.label}[/]",
                f"[{dataset.color}]{generate_sparkline(values)}[/]",
                f"{sum(values):,.0f}",
                f"{max(values, default=0):,.0f}",
            )

        self.console.print()
        self.console.print(table)

    def render_model_tree(self, model_tree, selection):
        """List discovered families and models with their selection marks."""
        if not model_tree:
            self.console.print("[yellow]No models discovered in usage history.[/yellow]")
            return
        for family in sorted(model_tree):
            mark = "[green]✓[/green]" if selection.is_family_selected(family) else " "
            self.console.print(f"{mark} [bold]{family}[/bold]")
            for model in model_tree[family]:
                selected = selection.is_model_selected(family, model)
                mark = "[green]✓[/green]" if selected else " "
                self.console.print(f"    {mark} {model}")


# --- Pure helper functions (no self, easily testable) ---


def get_pct_color(pct):
    """Get a Rich color string based on a remaining percentage value."""
    if pct >= 80:
        return "green"
    if pct >= 60:
        return "bright_green"
    if pct >= 40:
        return "yellow"
    if pct >= 20:
        return "dark_orange"
    return "red"


def generate_sparkline(values, width=24):
    """Scale values to the series' own peak and render them as block glyphs."""
    if not values:
        return "─" * width

    if len(values) > width:
        step = len(values) / width
        values = [values[min(int(i * step), len(values) - 1)] for i in range(width)]

    peak = max(values)
    if peak <= 0:
        return SPARK_BLOCKS[0] * len(values)

    return "".join(
        SPARK_BLOCKS[int(max(0.0, min(1.0, v / peak)) * (len(SPARK_BLOCKS) - 1))]
        for v in values
    )
