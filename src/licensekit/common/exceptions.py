"""licensekit exception hierarchy."""


class LicenseKitError(Exception):
    """Base exception for all licensekit errors."""

    def __init__(self, message: str = "", code: str = "LICENSEKIT_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class TokenFormatError(LicenseKitError):
    """Raised when a license or heartbeat token cannot be encoded."""

    def __init__(self, message: str = "Invalid token format"):
        super().__init__(message, code="INVALID_FORMAT")


class KeyImportFailure(LicenseKitError):
    """Raised when no supported format can import a public key."""

    def __init__(self, message: str = "Unsupported public key format", tried: tuple[str, ...] = ()):
        self.tried = tried
        if tried:
            message = f"{message} (tried: {', '.join(tried)})"
        super().__init__(message, code="KEY_IMPORT_FAILED")


class SignatureError(LicenseKitError):
    """Raised when a token cannot be signed with the supplied private key."""

    def __init__(self, message: str = "Unable to sign license token"):
        super().__init__(message, code="SIGNATURE_ERROR")


class ConfigurationError(LicenseKitError):
    """Raised when a protocol or verifier is constructed with bad settings."""

    def __init__(self, message: str = "Invalid configuration"):
        super().__init__(message, code="CONFIGURATION_ERROR")

