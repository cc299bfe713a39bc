"""CLI for sol-wallet - manage Solana wallets from the terminal."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from sol_wallet.config import WalletConfig, get_config_path, load_config, save_config
from sol_wallet.exceptions import KeystoreNotFoundError, WalletError
from sol_wallet.wallet.manager import WalletManager
from sol_wallet.wallet.models import to_eur
from sol_wallet.wallet.networks import get_network, list_network_names

app = typer.Typer(
    name="sol-wallet",
    help="Manage Solana wallets: keys, balances, transfers, and history.",
    no_args_is_help=True,
)
console = Console()

_config_path: Path | None = None


def _version_callback(value: bool):
    if value:
        from importlib.metadata import version
        console.print(f"sol-wallet {version('sol-wallet')}")
        raise typer.Exit()


@app.callback()
def main(
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        help="Path to config.yaml",
        envvar="SOL_WALLET_CONFIG",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit",
        callback=_version_callback,
        is_eager=True,
    ),
):
    """Manage Solana wallets: keys, balances, transfers, and history."""
    global _config_path
    _config_path = config
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _run(coro):
    """Run an async function synchronously."""
    try:
        loop = asyncio.get_event_loop()
        if loop.is_running():
            import concurrent.futures
            with concurrent.futures.ThreadPoolExecutor() as pool:
                return pool.submit(asyncio.run, coro).result()
        return loop.run_until_complete(coro)
    except RuntimeError:
        return asyncio.run(coro)


def _load_config() -> WalletConfig:
    return load_config(_config_path)


def _manager() -> WalletManager:
    try:
        return WalletManager.from_config(_load_config())
    except (KeyError, ValueError) as e:
        console.print(f"[red]Invalid configuration: {escape(str(e))}[/red]")
        raise typer.Exit(1)


def _fail(message: str, e: Exception) -> None:
    console.print(f"[red]{message}: {escape(str(e))}[/red]")
    raise typer.Exit(1)


def _with_manager(fn):
    """Run *fn(manager)* as a coroutine and always close the RPC client."""
    manager = _manager()

    async def _go():
        try:
            return await fn(manager)
        finally:
            await manager.aclose()

    return _run(_go())


# ------------------------------------------------------------------
# init / switch / list
# ------------------------------------------------------------------


def _create_wallet(manager: WalletManager, alias: str | None, private_key: str | None) -> None:
    if not alias:
        alias = console.input("[bold]Create an alias for your wallet: [/bold]").strip() or None
    if private_key:
        address = manager.import_key(alias, private_key)
        action = "Imported"
    else:
        address = manager.create(alias)
        action = "Created"
    console.print(Panel(
        f"[bold green]New wallet {action.lower()}![/bold green]\n\n"
        f"Address: [cyan]{address}[/cyan]",
        title=f"Wallet {action}",
    ))


def _select_existing(manager: WalletManager) -> None:
    listings = manager.list_wallets()
    for i, entry in enumerate(listings, 1):
        console.print(f"  [cyan][{i}][/cyan] {entry.label}")
    raw = console.input("\nChoose a wallet: ").strip()
    try:
        chosen = listings[int(raw) - 1]
    except (ValueError, IndexError):
        console.print(f"[red]Invalid choice: {raw}[/red]")
        raise typer.Exit(1)
    manager.switch(chosen.alias)
    console.print(f"Switched to [bold]{chosen.alias}[/bold]. Address: [cyan]{chosen.public_key}[/cyan]")


def _paper_wallet(manager: WalletManager) -> None:
    console.print("  [cyan][1][/cyan] New paper wallet")
    console.print("  [cyan][2][/cyan] Import paper wallet")
    choice = console.input("Choose [1/2]: ").strip()
    if choice == "1":
        phrase, address = manager.create_paper_wallet()
        console.print(Panel(
            f"[bold green]New paper wallet created![/bold green]\n\n"
            f"Address: [cyan]{address}[/cyan]\n"
            f"Seed phrase: [bold]{phrase}[/bold]\n\n"
            "[yellow]Write the seed phrase down. It is not saved anywhere.[/yellow]",
            title="Paper Wallet",
        ))
    elif choice == "2":
        phrase = typer.prompt("Enter your seed phrase", hide_input=True)
        address = manager.paper_wallet_address(phrase)
        console.print(f"Paper wallet address: [cyan]{address}[/cyan]")
    else:
        console.print(f"[red]Invalid choice: {choice}[/red]")
        raise typer.Exit(1)


@app.command("init")
def init(
    alias: str = typer.Option(None, "--alias", "-a", help="Alias for the new wallet"),
    private_key: str = typer.Option(
        None, "--private-key", "-k", help="Import an existing key (base58 or solana-keygen array)"
    ),
    paper: bool = typer.Option(False, "--paper", help="Create or import a paper wallet (seed phrase, not stored)"),
):
    """Create a new wallet (or import one) and make it active."""
    manager = _manager()
    try:
        if paper:
            _paper_wallet(manager)
            return
        if private_key or not manager.has_wallets():
            _create_wallet(manager, alias, private_key)
            return

        console.print("[yellow]You already have wallets saved on this computer.[/yellow]")
        console.print("  [cyan][1][/cyan] Select existing wallet")
        console.print("  [cyan][2][/cyan] Create new wallet")
        choice = console.input("Choose [1/2]: ").strip()
        if choice == "1":
            _select_existing(manager)
        elif choice == "2":
            _create_wallet(manager, alias, None)
        else:
            console.print(f"[red]Invalid choice: {choice}[/red]")
            raise typer.Exit(1)
    except WalletError as e:
        _fail("Failed to initialise wallet", e)


@app.command("switch")
def switch(alias: str = typer.Argument(help="Alias of the wallet to activate")):
    """Make another stored wallet the active one."""
    manager = _manager()
    try:
        manager.switch(alias)
        address = manager.address()
    except WalletError as e:
        _fail("Failed to switch wallet", e)
    console.print(f"Active wallet: [bold]{alias}[/bold] ([cyan]{address}[/cyan])")


@app.command("list")
def list_wallets():
    """List all stored wallets with their recorded balance in EUR."""
    manager = _manager()
    try:
        listings = manager.list_wallets()
    except KeystoreNotFoundError:
        console.print("[yellow]No wallets yet.[/yellow] Run 'sol-wallet init' first.")
        return
    except WalletError as e:
        _fail("Failed to retrieve wallets", e)

    table = Table(title="Wallets")
    table.add_column("Wallet", style="cyan")
    table.add_column("Address")
    for entry in listings:
        table.add_row(entry.label, entry.public_key)
    console.print(table)


# ------------------------------------------------------------------
# address / balance / exchange
# ------------------------------------------------------------------


@app.command("address")
def address(
    all_: bool = typer.Option(False, "--all", help="List all wallet addresses"),
    alias: str = typer.Option(None, "--alias", "-a", help="Wallet alias (default: active wallet)"),
):
    """Print the public key of the active (or a named) wallet."""
    manager = _manager()
    try:
        if all_:
            for entry in manager.list_wallets():
                console.print(f"[bold blue]Public key of {entry.alias}:[/bold blue] {entry.public_key}")
            return
        key = manager.address(alias)
    except WalletError as e:
        _fail("Failed to retrieve public key", e)

    label = alias or "the active wallet"
    console.print(f"[bold blue]Public key of {label}:[/bold blue] {key}")


@app.command("balance")
def balance(
    alias: str = typer.Option(None, "--alias", "-a", help="Wallet alias (default: active wallet)"),
):
    """Print the ledger balance of a wallet in EUR."""
    try:
        eur = _with_manager(lambda m: m.balance_eur(alias))
    except WalletError as e:
        _fail("Failed to retrieve wallet balance", e)
    label = f"{alias} wallet" if alias else "the active wallet"
    console.print(f"Balance of {label}: [bold]€{eur}[/bold]")


@app.command("exchange")
def exchange():
    """Print the current SOL to EUR exchange rate."""
    manager = _manager()
    try:
        rate = manager.exchange_rate()
    except WalletError as e:
        _fail("Failed to fetch exchange rate", e)
    console.print(f"Current exchange rate of SOL to EUR: [bold]{rate}[/bold]")


# ------------------------------------------------------------------
# send / transactions
# ------------------------------------------------------------------


@app.command("send")
def send(
    amount: str = typer.Argument(help="Amount in EUR to send (e.g. 2.50)"),
    destination: str = typer.Argument(help="Recipient address (base58)"),
    alias: str = typer.Option(None, "--alias", "-a", help="Send from this wallet instead of the active one"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt"),
    paper: bool = typer.Option(False, "--paper", help="Sign with a paper wallet seed phrase"),
):
    """Send AMOUNT EUR worth of SOL to DESTINATION."""
    try:
        network = get_network(_load_config().network)
    except KeyError as e:
        console.print(f"[red]{escape(e.args[0])}[/red]")
        raise typer.Exit(1)

    console.print(f"\n[bold]Send €{amount} worth of SOL on {network.name}[/bold]")
    console.print(f"  To: {escape(destination)}\n")
    if not yes:
        typer.confirm("Confirm this transaction?", abort=True)

    seed_phrase = typer.prompt("Enter your seed phrase", hide_input=True) if paper else None

    try:
        signature = _with_manager(lambda m: m.send(amount, destination, alias, seed_phrase))
    except WalletError as e:
        _fail("Transaction failed", e)

    console.print(Panel(
        f"[bold green]Transaction confirmed![/bold green]\n\n"
        f"Signature: [cyan]{signature}[/cyan]\n"
        f"Explorer: {network.explorer_tx_url(signature)}",
        title="Transaction Sent",
    ))


@app.command("transactions")
def transactions(
    alias: str = typer.Option(None, "--alias", "-a", help="Wallet alias (default: active wallet)"),
):
    """Print the transfer history in EUR, newest first."""
    manager = _manager()

    async def _history():
        try:
            return await manager.transaction_history(alias)
        finally:
            await manager.aclose()

    try:
        events = _run(_history())
        if not events:
            console.print("No transactions to display.")
            return
        # the rate client blocks, so it runs outside the event loop
        rate = manager.exchange_rate()
    except WalletError as e:
        _fail("Error fetching transactions", e)

    table = Table(title="Transactions")
    table.add_column("Action", style="bold")
    table.add_column("From")
    table.add_column("To")
    table.add_column("Amount (EUR)", justify="right")
    table.add_column("Timestamp", style="dim")
    for event in events:
        table.add_row(
            f"[red]{event.direction}[/red]" if event.is_sender else f"[green]{event.direction}[/green]",
            event.sender,
            event.receiver,
            str(to_eur(event.amount_sol, rate)),
            event.timestamp.isoformat() if event.timestamp else "-",
        )
    console.print(table)


# ------------------------------------------------------------------
# config
# ------------------------------------------------------------------


@app.command("config")
def config_cmd(
    network: str = typer.Option(None, "--network", "-n", help=f"Cluster ({', '.join(list_network_names())})"),
    rpc_url: str = typer.Option(None, "--rpc-url", help="Custom RPC endpoint"),
    keystore: str = typer.Option(None, "--keystore", help="Path of the key-store file"),
):
    """Show or update the saved configuration."""
    path = _config_path or get_config_path()
    config = load_config(path)

    if network:
        try:
            get_network(network)
        except KeyError as e:
            console.print(f"[red]{escape(e.args[0])}[/red]")
            raise typer.Exit(1)
        config.network = network
    if rpc_url:
        config.rpc_url = rpc_url
    if keystore:
        config.keystore_path = keystore
    if network or rpc_url or keystore:
        save_config(config, path)
        console.print(f"[green]Saved configuration to {path}[/green]")

    table = Table(title="Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    table.add_row("network", config.network)
    table.add_row("rpc_url", config.rpc_url or get_network(config.network).rpc_url)
    table.add_row("keystore_path", config.keystore_path)
    table.add_row("history.max_concurrency", str(config.history.max_concurrency))
    table.add_row("history.task_timeout_seconds", str(config.history.task_timeout_seconds))
    table.add_row("rates.pair", config.rates.pair)
    console.print(table)


if __name__ == "__main__":
    app()
