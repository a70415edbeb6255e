"""licensekit configuration via pydantic-settings."""

import warnings
from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

VERIFIER_BACKENDS = ("cryptography", "pyjwt")


class LicenseKitSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="LICENSEKIT_")

    environment: str = "development"

    # License server
    api_base_url: str = "http://localhost:5000"
    activate_path: str = "/api/license/activate"
    heartbeat_path: str = "/api/license/heartbeat"
    deactivate_path: str = "/api/license/deactivate"
    validate_path: str = "/api/license/validate"
    check_duplicate_path: str = "/api/license/check-duplicate"
    timeout: int = 30
    max_retries: int = 1  # transport only; the protocols never retry

    # Signature checks — base64-encoded PEM. When empty, signatures are not verified.
    public_key: Optional[str] = None
    verifier_backend: str = "cryptography"

    # Client identification sent with activation requests
    application_version: str = ""

    log_level: str = "INFO"

    @property
    def signature_checks_enabled(self) -> bool:
        return bool(self.public_key)

    def validate_for_production(self) -> None:
        """Raise if the configuration is unsafe outside development."""
        if self.verifier_backend not in VERIFIER_BACKENDS:
            raise RuntimeError(
                f"Unknown verifier backend {self.verifier_backend!r}; "
                f"expected one of: {', '.join(VERIFIER_BACKENDS)}"
            )

        if self.signature_checks_enabled:
            return

        if self.environment != "development":
            raise RuntimeError(
                f"No public key configured in '{self.environment}' environment. "
                "Set LICENSEKIT_PUBLIC_KEY to the base64-encoded PEM public key "
                "so license token signatures are verified."
            )

        warnings.warn(
            "No public key configured — license token signatures will not be verified. "
            "Set LICENSEKIT_PUBLIC_KEY for production",
            UserWarning,
            stacklevel=2,
        )


@lru_cache
def get_settings() -> LicenseKitSettings:
    settings = LicenseKitSettings()
    settings.validate_for_production()
    return settings
