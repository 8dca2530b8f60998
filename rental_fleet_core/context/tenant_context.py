"""
Tenant logging context.

Holds the tenant currently being served so that log records can be tagged
with it. Nothing reads this context to authorize or scope data access; every
service receives the tenant id as an explicit argument.
"""

import threading
from contextlib import contextmanager
from typing import Generator, Optional

from ..exceptions import ErrorCode, ValidationError


class TenantContext:
    """Per-thread tenant id used by TenantContextFilter."""

    _local = threading.local()

    @classmethod
    def set_current_tenant(cls, tenant_id: str) -> None:
        """
        Raises:
            ValidationError: tenant_id is not a non-blank string
        """
        cleaned = tenant_id.strip() if isinstance(tenant_id, str) else ""
        if not cleaned:
            raise ValidationError(
                "tenant_id must be a non-empty string",
                error_code=ErrorCode.MISSING_REQUIRED,
                field="tenant_id",
                value=tenant_id,
            )
        cls._local.tenant_id = cleaned

    @classmethod
    def get_current_tenant_id(cls) -> Optional[str]:
        return getattr(cls._local, "tenant_id", None)

    @classmethod
    def clear_current_tenant(cls) -> None:
        cls._local.__dict__.pop("tenant_id", None)


@contextmanager
def tenant_context(tenant_id: str) -> Generator[None, None, None]:
    """Tag this thread's log records with ``tenant_id`` inside the block."""
    outer = TenantContext.get_current_tenant_id()
    TenantContext.set_current_tenant(tenant_id)
    try:
        yield
    finally:
        if outer is None:
            TenantContext.clear_current_tenant()
        else:
            TenantContext.set_current_tenant(outer)
