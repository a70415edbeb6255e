"""
LicenseServerClient — sync httpx transport to the license server.

The protocols never talk HTTP themselves; they hand requests to a
LicenseTransport and interpret the terminal outcome they get back.
"""

import json
import time
from dataclasses import dataclass
from typing import Any, Optional, Protocol, TypeVar

import httpx
from pydantic import ValidationError

from licensekit.activation.schemas import TokenActivationRequest, TokenActivationResponse
from licensekit.common.config import LicenseKitSettings
from licensekit.common.logging import get_logger
from licensekit.common.schemas import WireModel
from licensekit.heartbeat.schemas import HeartbeatRequest
from licensekit.licensing.schemas import (
    DuplicateCheckResponse,
    LicenseActivationRequest,
    LicenseDeactivationRequest,
    LicenseValidationRequest,
    LicenseValidationResponse,
)

logger = get_logger("client")

ResponseT = TypeVar("ResponseT", bound=WireModel)


@dataclass(frozen=True)
class TransportOutcome:
    """Terminal outcome of one network leg.

    status_code is None when no HTTP response was received.
    """

    status_code: Optional[int] = None
    body: Optional[dict[str, Any]] = None
    error_text: str = ""
    exception: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.status_code is not None and 200 <= self.status_code < 300


class LicenseTransport(Protocol):
    def activate_with_token(self, request: TokenActivationRequest) -> TokenActivationResponse:
        ...

    def send_heartbeat(self, request: HeartbeatRequest) -> TransportOutcome:
        ...

    def check_duplicate_activation(
        self, request: LicenseActivationRequest
    ) -> Optional[DuplicateCheckResponse]:
        ...

    def deactivate_license(self, request: LicenseDeactivationRequest) -> bool:
        ...

    def validate_license(self, request: LicenseValidationRequest) -> Optional[LicenseValidationResponse]:
        ...


def _error_text(resp: httpx.Response) -> str:
    """Pull the server's error message out of an error response."""
    content = resp.text
    try:
        data = resp.json()
    except (json.JSONDecodeError, ValueError):
        return content or resp.reason_phrase or "Unknown error"
    if isinstance(data, dict) and data.get("error"):
        return str(data["error"])
    return content or resp.reason_phrase or "Unknown error"


class LicenseServerClient:
    """
    Synchronous HTTP transport for the license server.

    Retries happen only here, and only for timeouts, 5xx and 429.
    """

    def __init__(
        self,
        server_url: str = "http://localhost:5000",
        timeout: int = 30,
        max_retries: int = 1,
        retry_backoff_base: float = 0.5,
        activate_path: str = "/api/license/activate",
        heartbeat_path: str = "/api/license/heartbeat",
        deactivate_path: str = "/api/license/deactivate",
        validate_path: str = "/api/license/validate",
        check_duplicate_path: str = "/api/license/check-duplicate",
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.server_url = server_url.rstrip("/")
        self.max_retries = max(1, max_retries)
        self.retry_backoff_base = retry_backoff_base
        self.activate_path = activate_path
        self.heartbeat_path = heartbeat_path
        self.deactivate_path = deactivate_path
        self.validate_path = validate_path
        self.check_duplicate_path = check_duplicate_path
        self._http = httpx.Client(
            base_url=self.server_url,
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings: LicenseKitSettings, **kwargs: Any) -> "LicenseServerClient":
        return cls(
            server_url=settings.api_base_url,
            timeout=settings.timeout,
            max_retries=settings.max_retries,
            activate_path=settings.activate_path,
            heartbeat_path=settings.heartbeat_path,
            deactivate_path=settings.deactivate_path,
            validate_path=settings.validate_path,
            check_duplicate_path=settings.check_duplicate_path,
            **kwargs,
        )

    def _post(self, path: str, payload: dict[str, Any]) -> httpx.Response:
        """POST with retry on timeouts, 5xx and 429. Raises httpx.HTTPError when exhausted."""
        for attempt in range(self.max_retries):
            last_attempt = attempt == self.max_retries - 1
            try:
                resp = self._http.post(path, json=payload)
            except httpx.TimeoutException:
                if last_attempt:
                    raise
                logger.info("Timeout on %s, retrying (attempt %d)", path, attempt + 1)
            else:
                retryable = resp.status_code >= 500 or resp.status_code == 429
                if not retryable or last_attempt:
                    return resp
                logger.info("HTTP %d on %s, retrying (attempt %d)", resp.status_code, path, attempt + 1)
            time.sleep(self.retry_backoff_base * (2 ** attempt))
        raise httpx.TransportError(f"No attempts made for {path}")

    # ── Activation ──

    def activate_with_token(self, request: TokenActivationRequest) -> TokenActivationResponse:
        """Submit a token activation. Failures come back as unsuccessful responses."""
        try:
            resp = self._post(self.activate_path, request.to_wire())
        except httpx.HTTPError as exc:
            return TokenActivationResponse(success=False, error=f"Network error: {exc}")

        try:
            data = resp.json()
        except (json.JSONDecodeError, ValueError):
            data = None

        if resp.is_success:
            try:
                return TokenActivationResponse.model_validate(data)
            except ValidationError:
                return TokenActivationResponse(success=False, error="Invalid response from server")

        try:
            parsed = TokenActivationResponse.model_validate(data)
        except ValidationError:
            parsed = None
        if parsed is not None and (parsed.error or parsed.required_eula is not None):
            return parsed.model_copy(update={"success": False})
        return TokenActivationResponse(
            success=False, error=f"Activation failed: {resp.status_code}"
        )

    # ── Heartbeat ──

    def send_heartbeat(self, request: HeartbeatRequest) -> TransportOutcome:
        """Submit a heartbeat and report whatever came back."""
        try:
            resp = self._post(self.heartbeat_path, request.to_wire())
        except httpx.HTTPError as exc:
            return TransportOutcome(error_text=f"Network error: {exc}")

        if not resp.is_success:
            return TransportOutcome(status_code=resp.status_code, error_text=_error_text(resp))

        try:
            data = resp.json()
        except (json.JSONDecodeError, ValueError):
            return TransportOutcome(status_code=resp.status_code, error_text="Invalid JSON response")
        if not isinstance(data, dict):
            return TransportOutcome(status_code=resp.status_code, error_text="Invalid JSON response")
        return TransportOutcome(status_code=resp.status_code, body=data)

    # ── License management ──

    def _fetch(self, path: str, request: WireModel, model: type[ResponseT]) -> Optional[ResponseT]:
        """POST a request and parse a 2xx body into model. None on any failure."""
        try:
            resp = self._post(path, request.to_wire())
        except httpx.HTTPError as exc:
            logger.warning("Request to %s failed: %s", path, exc)
            return None

        if not resp.is_success:
            logger.info("HTTP %d on %s: %s", resp.status_code, path, _error_text(resp))
            return None

        try:
            return model.model_validate(resp.json())
        except ValueError:
            # JSONDecodeError and pydantic.ValidationError are ValueErrors
            logger.warning("Invalid response body from %s", path)
            return None

    def check_duplicate_activation(
        self, request: LicenseActivationRequest
    ) -> Optional[DuplicateCheckResponse]:
        """Ask whether this license is already activated for the same client type."""
        return self._fetch(self.check_duplicate_path, request, DuplicateCheckResponse)

    def deactivate_license(self, request: LicenseDeactivationRequest) -> bool:
        """Release this machine's activation. True only on a 2xx response."""
        try:
            resp = self._post(self.deactivate_path, request.to_wire())
        except httpx.HTTPError as exc:
            logger.warning("Deactivation failed: %s", exc)
            return False
        if not resp.is_success:
            logger.info("Deactivation rejected: HTTP %d", resp.status_code)
        return resp.is_success

    def validate_license(self, request: LicenseValidationRequest) -> Optional[LicenseValidationResponse]:
        """Look up a license's server-side status."""
        return self._fetch(self.validate_path, request, LicenseValidationResponse)

    # ── Lifecycle ──

    def close(self) -> None:
        """Close the HTTP client."""
        self._http.close()

    def __enter__(self) -> "LicenseServerClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()
