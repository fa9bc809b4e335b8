"""Output formatting for CLI and programmatic use."""

import json
from decimal import Decimal
from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .data_store import JSONEncoder

CURRENCY = "£"


def format_money(value: Any) -> str:
    """Format a price value (Decimal, number or numeric string)."""
    if value is None:
        return "-"
    return f"{CURRENCY}{Decimal(str(value)):.2f}"


def format_price(price: dict | None) -> str:
    if not price:
        return "-"
    text = f"{format_money(price['regular_price'])} (rrp)"
    if price.get("special_price") is not None:
        text += f" [red]{format_money(price['special_price'])} (special)[/red]"
    return text


class OutputFormatter:
    """Formats output for both Rich terminal and JSON modes."""

    def __init__(self, json_mode: bool = False):
        """Initialize formatter.

        Args:
            json_mode: If True, output JSON instead of Rich formatting
        """
        self.json_mode = json_mode
        self.console = Console()

    def output(self, data: dict[str, Any], message: str = "") -> None:
        """Output data in appropriate format.

        Args:
            data: Data to output
            message: Optional message for Rich mode
        """
        if self.json_mode:
            self._output_json(data)
        else:
            self._output_rich(data, message)

    def _output_json(self, data: dict[str, Any]) -> None:
        """Output as JSON to stdout."""
        print(json.dumps(data, cls=JSONEncoder, indent=2))

    def _output_rich(self, data: dict[str, Any], message: str) -> None:
        """Output with Rich formatting."""
        if message:
            self.console.print(f"[green]✓[/green] {message}")

        payload = data.get("data", {})
        if "foodstuffs" in payload:
            self._render_foodstuffs(data)
        elif "price_points" in payload:
            self._render_price_history(data)
        elif "foodstuff" in payload:
            self._render_foodstuff(data)
        elif "brands" in payload:
            self._render_brands(data)
        elif "export" in payload:
            self._render_export(data)
        elif "import" in payload:
            self._render_import(data)

    def _render_foodstuffs(self, data: dict) -> None:
        """Render a table of records."""
        records = data["data"]["foodstuffs"]

        if not records:
            self.console.print("[dim]No foodstuffs found[/dim]")
            return

        table = Table(title="Foodstuffs", show_header=True, header_style="bold cyan")
        table.add_column("Name", style="cyan", no_wrap=False)
        table.add_column("Brand", style="green")
        table.add_column("Price", justify="right")
        table.add_column("Enjoy", justify="center")
        table.add_column("Health", justify="center")
        table.add_column("ID", style="dim")

        for record in records:
            current = record.get("current_price")
            table.add_row(
                record["name"],
                record.get("brand") or "-",
                format_money(current["regular_price"]) if current else "-",
                "[green]✓[/green]" if record.get("enjoy") else "",
                "[green]✓[/green]" if record.get("health") else "",
                record["id"],
            )

        self.console.print(table)
        self.console.print(f"\nTotal: {len(records)}")

    def _render_foodstuff(self, data: dict) -> None:
        """Render a single record."""
        record = data["data"]["foodstuff"]

        panel_content = f"""[bold]{record["name"]}[/bold]

Brand: {record.get("brand") or "Not specified"}
Weight: {record.get("weight", 0):g} g
Barcode: {record.get("barcode") or "-"}
Added: {record["date"]}
Current price: {format_price(record.get("current_price"))}"""

        flags = [
            label for label, key in (("Enjoy", "enjoy"), ("Healthy", "health")) if record.get(key)
        ]
        if flags:
            panel_content += f"\nFlags: {', '.join(flags)}"

        if record.get("photos"):
            panel_content += "\nPhotos: " + ", ".join(p["filename"] for p in record["photos"])

        for label, key in (
            ("Last priced", "latest_price_date"),
            ("Last photo", "latest_photo_date"),
            ("Last reviewed", "latest_review_date"),
        ):
            if record.get(key):
                panel_content += f"\n{label}: {record[key]}"

        panel = Panel(panel_content, title="Foodstuff", border_style="green")
        self.console.print(panel)

        for review in record.get("reviews", []):
            self.console.print(f"  [dim]{review['date']}[/dim] {review['text']}")

    def _render_price_history(self, data: dict) -> None:
        """Render price history."""
        price_data = data["data"]

        self.console.print(f"\n[bold]Price History: {price_data['item']}[/bold]")
        self.console.print(f"Current: {format_price(price_data.get('current_price'))}")

        if price_data.get("price_points"):
            self.console.print("\n[dim]History:[/dim]")
            for pp in price_data["price_points"]:
                self.console.print(f"  {pp['date']}: {format_price(pp)}")

    def _render_brands(self, data: dict) -> None:
        brands = data["data"]["brands"]
        if not brands:
            self.console.print("[dim]No matching brands[/dim]")
        for brand in brands:
            self.console.print(f"  - {brand}")

    def _render_export(self, data: dict) -> None:
        result = data["data"]["export"]
        self.console.print(f"Archive: {result['archive_path']}")
        self.console.print(f"Records: {result['records']}")
        self.console.print(f"Photos: {result['photos_copied']}")
        if result.get("photos_missing"):
            self.console.print(
                f"[yellow]Missing photos ({len(result['photos_missing'])}):[/yellow]"
            )
            for filename in result["photos_missing"]:
                self.console.print(f"  - {filename}")

    def _render_import(self, data: dict) -> None:
        result = data["data"]["import"]

        table = Table(title="Import Summary", show_header=False)
        table.add_column("What")
        table.add_column("Count", justify="right")
        table.add_row("New records", str(len(result["inserted"])))
        table.add_row("Updated records", str(len(result["updated"])))
        table.add_row("Already present", str(len(result["unchanged"])))
        table.add_row("Photos copied", str(result["photos_copied"]))
        table.add_row("Photos already present", str(result["photos_present"]))
        self.console.print(table)

        if result.get("photos_missing"):
            self.console.print(
                f"\n[yellow]Photos missing from archive ({len(result['photos_missing'])}):[/yellow]"
            )
            for filename in result["photos_missing"]:
                self.console.print(f"  - {filename}")

        if result.get("failures"):
            self.console.print(f"\n[yellow]Skipped ({len(result['failures'])}):[/yellow]")
            for failure in result["failures"]:
                self.console.print(f"  - {failure}")

    def error(self, message: str, error_code: str | None = None) -> None:
        """Output error message.

        Args:
            message: Error message
            error_code: Optional error code
        """
        if self.json_mode:
            output = {"success": False, "error": message}
            if error_code:
                output["error_code"] = error_code
            print(json.dumps(output))
        else:
            self.console.print(f"[red]✗ Error:[/red] {message}")

    def success(self, message: str, data: dict | None = None) -> None:
        """Output success message.

        Args:
            message: Success message
            data: Optional data to include
        """
        if self.json_mode:
            output: dict[str, Any] = {"success": True, "message": message}
            if data:
                output["data"] = data
            print(json.dumps(output, cls=JSONEncoder))
        else:
            self.console.print(f"[green]✓[/green] {message}")

    def warning(self, message: str) -> None:
        """Output warning message.

        Args:
            message: Warning message
        """
        if self.json_mode:
            print(json.dumps({"warning": message}))
        else:
            self.console.print(f"[yellow]⚠[/yellow] {message}")
