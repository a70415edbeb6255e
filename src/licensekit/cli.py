"""Typer CLI for licensekit."""

import uuid
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

app = typer.Typer(name="licensekit", help="licensekit: license token activation and heartbeat client")
console = Console()


def _settings():
    from licensekit.common.config import get_settings
    from licensekit.common.logging import setup_logging

    settings = get_settings()
    setup_logging(settings.log_level)
    return settings


@app.command()
def decode(
    token: str = typer.Argument(..., help="Base64 license token"),
):
    """Decode a license token and show its fields (no signature check)."""
    from licensekit.tokens.license_token import decode_license_token

    decoded = decode_license_token(token)
    if decoded is None:
        console.print("[bold red]INVALID_FORMAT[/bold red] — token could not be decoded")
        raise typer.Exit(1)

    table = Table(show_header=False)
    table.add_row("Product", decoded.product_code)
    table.add_row("License key", str(decoded.license_key))
    table.add_row("Expiry", decoded.expiry_raw or "perpetual")
    table.add_row("Params", decoded.params or "")
    console.print(table)


@app.command()
def verify(
    token: str = typer.Argument(..., help="Base64 license token"),
    public_key: Optional[str] = typer.Option(None, help="Base64-encoded PEM public key"),
):
    """Verify a license token's signature offline."""
    from licensekit.deps import create_signature_verifier
    from licensekit.tokens.license_token import decode_license_token

    settings = _settings()
    key = public_key or settings.public_key
    if not key:
        console.print("[bold red]Error:[/bold red] no public key configured")
        raise typer.Exit(2)

    decoded = decode_license_token(token)
    if decoded is None:
        console.print("[bold red]INVALID_FORMAT[/bold red] — token could not be decoded")
        raise typer.Exit(1)

    verifier = create_signature_verifier(settings)
    if verifier.verify(decoded.signing_string(), decoded.signature, key):
        console.print(f"[bold green]VALID[/bold green] — signature verified ({verifier.backend})")
    else:
        console.print("[bold red]INVALID_SIGNATURE[/bold red] — signature does not match")
        raise typer.Exit(1)


@app.command()
def activate(
    token: str = typer.Argument(..., help="Base64 license token"),
    product: str = typer.Option(..., help="Expected product code"),
    fingerprint: Optional[str] = typer.Option(None, help="Machine fingerprint (generated if omitted)"),
):
    """Activate a license token on this machine."""
    from licensekit.deps import create_activation_protocol

    protocol = create_activation_protocol(_settings())
    try:
        result = protocol.activate(token, product, machine_fingerprint=fingerprint)
    finally:
        protocol.transport.close()

    if result.success:
        console.print(f"[bold green]ACTIVATED[/bold green] — {result.activation_id}")
        console.print(f"  Fingerprint: {result.machine_fingerprint}")
    elif result.requires_eula:
        eula = result.required_eula
        console.print(f"[bold yellow]EULA_REQUIRED[/bold yellow] — {eula.name} v{eula.version}")
        raise typer.Exit(3)
    else:
        console.print(f"[bold red]{result.stage.value.upper()}[/bold red] — {result.error}")
        raise typer.Exit(1)


@app.command()
def heartbeat(
    activation_id: uuid.UUID = typer.Argument(..., help="Activation ID"),
    email: str = typer.Option("", help="Customer email"),
    fingerprint: Optional[str] = typer.Option(None, help="Machine fingerprint (generated if omitted)"),
):
    """Send a heartbeat for an activation."""
    from licensekit.deps import create_heartbeat_protocol

    protocol = create_heartbeat_protocol(_settings())
    try:
        result = protocol.send(activation_id, email, fingerprint)
    finally:
        protocol.transport.close()

    if result.success:
        console.print(f"[bold green]VALID[/bold green] — {result.response.product_name or ''}")
    else:
        code = getattr(result.error_code, "value", result.error_code)
        console.print(f"[bold red]{code}[/bold red] — {result.error}")
        raise typer.Exit(1)


@app.command()
def validate(
    license_key: uuid.UUID = typer.Argument(..., help="License UUID"),
    secret: str = typer.Option(..., help="License secret"),
):
    """Ask the license server for a license's status."""
    from licensekit.deps import create_transport
    from licensekit.licensing.schemas import LicenseValidationRequest

    transport = create_transport(_settings())
    try:
        response = transport.validate_license(
            LicenseValidationRequest(license_key=license_key, secret_key=secret)
        )
    finally:
        transport.close()

    if response is None:
        console.print("[bold red]UNAVAILABLE[/bold red] — license could not be validated")
        raise typer.Exit(1)

    table = Table(show_header=False)
    table.add_row("Valid", "yes" if response.is_valid else "no")
    table.add_row("Status", response.status)
    table.add_row("Product", response.product_name or "")
    table.add_row("Licensed to", response.licensed_to or "")
    table.add_row("Expiry", response.expiry_type.name.lower())
    table.add_row("Activations", f"{response.current_activations}/{response.max_activations}")
    console.print(table)
    if not response.is_valid:
        raise typer.Exit(1)


@app.command()
def deactivate(
    license_key: uuid.UUID = typer.Argument(..., help="License UUID"),
    secret: str = typer.Option(..., help="License secret"),
    machine_id: Optional[str] = typer.Option(None, help="Machine ID (host name if omitted)"),
):
    """Release this machine's activation of a license."""
    import platform

    from licensekit.deps import create_transport
    from licensekit.licensing.schemas import LicenseDeactivationRequest

    request = LicenseDeactivationRequest(
        license_key=license_key, secret_key=secret, machine_id=machine_id or platform.node(),
    )
    transport = create_transport(_settings())
    try:
        released = transport.deactivate_license(request)
    finally:
        transport.close()

    if not released:
        console.print("[bold red]FAILED[/bold red] — license was not deactivated")
        raise typer.Exit(1)
    console.print(f"[bold green]DEACTIVATED[/bold green] — {license_key} on {request.machine_id}")


@app.command("heartbeat-token")
def heartbeat_token(
    activation_id: uuid.UUID = typer.Argument(..., help="Activation ID"),
    email: str = typer.Option("", help="Customer email"),
    fingerprint: str = typer.Option("", help="Machine fingerprint"),
):
    """Print the compact heartbeat token for an identity triple."""
    from licensekit.tokens.heartbeat import encode_heartbeat_token

    console.print(encode_heartbeat_token(activation_id, email, fingerprint), soft_wrap=True)


@app.command("parse-heartbeat")
def parse_heartbeat(
    token: str = typer.Argument(..., help="Compact heartbeat token"),
):
    """Decode a compact heartbeat token."""
    from licensekit.tokens.heartbeat import decode_heartbeat_token

    parsed = decode_heartbeat_token(token)
    if parsed is None:
        console.print("[bold red]INVALID_FORMAT[/bold red] — not a heartbeat token")
        raise typer.Exit(1)
    console.print(f"Activation:  {parsed.activation_id}")
    console.print(f"Email:       {parsed.customer_email}")
    console.print(f"Fingerprint: {parsed.machine_fingerprint}")


@app.command()
def fingerprint():
    """Print this machine's fingerprint."""
    from licensekit.fingerprint import generate_fingerprint

    console.print(generate_fingerprint().hash)


@app.command()
def issue(
    product: str = typer.Argument(..., help="Product code"),
    private_key: Path = typer.Option(..., exists=True, dir_okay=False, help="PEM RSA private key"),
    license_key: Optional[uuid.UUID] = typer.Option(None, help="License UUID (random if omitted)"),
    secret: str = typer.Option(..., help="License secret"),
    expires: Optional[str] = typer.Option(None, help="ISO-8601 expiry (perpetual if omitted)"),
    params: Optional[str] = typer.Option(None, help="Opaque license parameters"),
):
    """Issue a signed license token (issuer side)."""
    from licensekit.common.exceptions import SignatureError
    from licensekit.crypto.signer import issue_license_token, load_private_key
    from licensekit.tokens.signing import parse_timestamp

    try:
        expiry = parse_timestamp(expires) if expires else None
    except ValueError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(2)

    try:
        key = load_private_key(private_key.read_bytes())
    except SignatureError as e:
        console.print(f"[bold red]Error:[/bold red] {e.message}")
        raise typer.Exit(1)

    token = issue_license_token(
        product, license_key or uuid.uuid4(), secret, key, expiry_date=expiry, params=params
    )
    console.print(token, soft_wrap=True)


if __name__ == "__main__":
    app()
