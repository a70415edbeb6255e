"""EULA gate helpers for token activation."""

from typing import Optional

from licensekit.activation.schemas import TokenActivationResponse

EULA_REQUIRED_MARKER = "EULA acceptance required"


def is_eula_required(response: TokenActivationResponse) -> bool:
    """True when the server refused activation pending EULA acceptance."""
    return (
        response.required_eula is not None
        and bool(response.error)
        and EULA_REQUIRED_MARKER in response.error
    )


def resolve_acceptor(
    form_name: Optional[str],
    form_email: Optional[str],
    parameter_name: Optional[str] = None,
    parameter_email: Optional[str] = None,
) -> tuple[str, str]:
    """Pick the acceptor's name and email, preferring caller-supplied values."""
    name = parameter_name or form_name or ""
    email = parameter_email or form_email or ""
    return name, email


def validate_eula_acceptance(
    accepted_by_name: Optional[str],
    accepted_by_email: Optional[str],
    is_accepted: bool,
    parameter_name: Optional[str] = None,
    parameter_email: Optional[str] = None,
) -> tuple[bool, Optional[str]]:
    """
    Check that an EULA acceptance is complete.

    Returns:
        (True, None) or (False, reason)
    """
    name, email = resolve_acceptor(
        accepted_by_name, accepted_by_email, parameter_name, parameter_email
    )
    if not name.strip():
        return False, "Name is required for EULA acceptance"
    if not email.strip():
        return False, "Email is required for EULA acceptance"
    if not is_accepted:
        return False, "You must accept the EULA to continue"
    return True, None
