"""Status display functionality for CLI"""

from typing import Iterable

from rich.table import Table

from utils.storage import TokenStore


def build_status_table(store: TokenStore, country: str, providers: Iterable[str]) -> Table:
    """
    Build a table with the connection status of each provider for a country

    Args:
        store: TokenStore instance
        country: Country half of the identity key
        providers: Provider names to include

    Returns:
        Rich table ready to print
    """
    table = Table(title=f"Email Connections ({country})")
    table.add_column("Provider", style="cyan")
    table.add_column("Account")
    table.add_column("Status")
    table.add_column("Expires")
    table.add_column("Refreshable")

    for provider in providers:
        status = store.get_status(country, provider)
        if not status["has_tokens"]:
            state = "[dim]NOT CONNECTED[/dim]"
        elif status["is_expired"]:
            state = "[red]EXPIRED[/red]"
        else:
            state = "[green]VALID[/green]"

        table.add_row(
            provider,
            status["email"] or "-",
            state,
            status["time_until_expiry"],
            "Yes" if status["has_refresh_token"] else "No",
        )

    return table
