"""Custom exception classes for the dirsite service."""


class DirSiteError(Exception):
    """Base exception for dirsite."""

    def __init__(self, code: str, message: str, details=None, status_code: int = 500):
        self.code = code
        self.message = message
        self.details = details
        self.status_code = status_code
        super().__init__(message)


class ValidationError(DirSiteError):
    """Schema or request validation failure."""

    def __init__(self, message: str, details=None):
        super().__init__("VALIDATION_ERROR", message, details, status_code=400)


class NotFoundError(DirSiteError):
    """Resource not found."""

    def __init__(self, resource: str, resource_id: str):
        super().__init__(
            "NOT_FOUND",
            f"{resource} '{resource_id}' not found",
            status_code=404,
        )


class ConflictError(DirSiteError):
    """Resource state conflict."""

    def __init__(self, message: str, details=None):
        super().__init__("CONFLICT", message, details, status_code=409)


# --- Provisioning ---


class ProvisioningError(DirSiteError):
    """A provisioning step could not complete."""

    def __init__(self, message: str, details=None, code: str = "PROVISIONING_ERROR"):
        super().__init__(code, message, details, status_code=500)


class TenantNotFoundError(ProvisioningError):
    """The tenant being provisioned does not exist."""

    def __init__(self, tenant_id: str):
        super().__init__("Tenant not found", {"tenant_id": tenant_id}, code="TENANT_NOT_FOUND")


class ExternalRefConflictError(ProvisioningError):
    """A step tried to overwrite an external reference written by another step."""

    def __init__(self, key: str, existing, incoming):
        super().__init__(
            f"External reference '{key}' already set",
            {"key": key, "existing": existing, "incoming": incoming},
            code="EXTERNAL_REF_CONFLICT",
        )


class HostingError(ProvisioningError):
    """A hosting provider (build, CDN, search, domain) call failed."""

    def __init__(self, provider: str, message: str, details=None):
        self.provider = provider
        super().__init__(f"{provider}: {message}", details, code="HOSTING_ERROR")
