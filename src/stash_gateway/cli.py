"""Typer CLI for Stash developer tasks (amount conversion, webhook checks, status lookups)."""

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

app = typer.Typer(name="stash", help="Stash: South African payment gateway adapters")
console = Console()


@app.command("to-minor")
def to_minor(
    amount: str = typer.Argument(..., help="Amount in major units (e.g. 25.00)"),
    currency: str = typer.Option("ZAR", help="ISO currency code"),
):
    """Convert a major-unit amount to integer minor units."""
    from stash_gateway.codec.amount import to_minor_units
    from stash_gateway.common.exceptions import StashError

    try:
        console.print(to_minor_units(amount, currency))
    except StashError as e:
        console.print(f"[bold red]{e.code}[/bold red] — {e.message}")
        raise typer.Exit(1)


@app.command("from-minor")
def from_minor(
    amount: str = typer.Argument(..., help="Amount in minor units (e.g. 2500)"),
    currency: str = typer.Option("ZAR", help="ISO currency code"),
):
    """Convert integer minor units to a major-unit amount."""
    from stash_gateway.codec.amount import from_minor_units
    from stash_gateway.common.exceptions import StashError

    try:
        console.print(str(from_minor_units(amount, currency)))
    except StashError as e:
        console.print(f"[bold red]{e.code}[/bold red] — {e.message}")
        raise typer.Exit(1)


@app.command("verify-webhook")
def verify_webhook(
    provider: str = typer.Argument(..., help="ozow, payfast or paystack"),
    body_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="File holding the raw body"),
    signature: Optional[str] = typer.Option(None, help="x-paystack-signature header value"),
):
    """Verify a captured notification body using STASH_* credentials."""
    from stash_gateway.common.config import get_settings
    from stash_gateway.common.exceptions import StashError
    from stash_gateway.common.schemas import WebhookParseInput
    from stash_gateway.providers.registry import get_adapter

    headers = {"x-paystack-signature": signature} if signature else None
    try:
        result = get_adapter(provider).parse_webhook(
            WebhookParseInput(
                raw_body=body_file.read_bytes(),
                headers=headers,
                secrets=get_settings().secrets(),
            )
        )
    except StashError as e:
        console.print(f"[bold red]{e.code}[/bold red] — {e.message}")
        raise typer.Exit(1)

    if not result.is_valid:
        console.print(f"[bold red]INVALID[/bold red] — {result.event.type}")
        raise typer.Exit(1)
    console.print(f"[bold green]VALID[/bold green] — {result.event.type}")


@app.command("ozow-status")
def ozow_status(
    reference: str = typer.Argument(..., help="Merchant transaction reference"),
    test: bool = typer.Option(False, "--test", help="Query the Ozow staging API"),
):
    """Look up Ozow transactions by merchant reference."""
    from stash_gateway.common.config import get_settings
    from stash_gateway.common.exceptions import StashError
    from stash_gateway.common.schemas import OzowTransactionQuery
    from stash_gateway.providers.ozow import get_ozow_transaction_by_reference, map_ozow_status

    settings = get_settings()
    try:
        result = get_ozow_transaction_by_reference(
            OzowTransactionQuery(
                site_code=settings.ozow_site_code or "",
                api_key=settings.ozow_api_key or "",
                transaction_reference=reference,
                test_mode=test or settings.test_mode,
            )
        )
    except StashError as e:
        console.print(f"[bold red]{e.code}[/bold red] — {e.message}")
        raise typer.Exit(1)

    if not result.transactions:
        console.print(f"No transactions found for {reference}")
        return
    for tx in result.transactions:
        console.print(f"{tx.get('TransactionId', '?')}  {tx.get('Status', '')}  -> {map_ozow_status(tx.get('Status'))}")


if __name__ == "__main__":
    app()
