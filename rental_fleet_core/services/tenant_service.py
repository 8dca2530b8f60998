"""
Tenant service: resolves which tenant a principal acts for.

Tenant values supplied by clients are never trusted; the tenant is always
derived from the authenticated principal.
"""

from typing import Optional

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import exists
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .base_service import SessionManagedService
from ..context.operation_context import operation
from ..db.db_tenant_models import Tenant
from ..db.db_vehicle_models import Vehicle
from ..exceptions import (
    NotFoundError,
    TenantUnresolvedError,
    ValidationError,
    duplicate,
)
from ..schemas.tenant_schema import TenantCreate, TenantRead
from ..utils.logger import get_logger
from ..utils.timeout import store_timeout, timeout_for


class TenantService(SessionManagedService):
    """
    Service for resolving and onboarding tenants with direct SQLAlchemy access.
    """

    def __init__(self, session: Optional[Session] = None):
        super().__init__(logger=get_logger(), session=session)

    @operation()
    def resolve_tenant(self, principal_id: Optional[str]) -> str:
        """
        Find the tenant a principal acts for.

        The tenant the principal owns wins. Otherwise the tenant of any
        vehicle the principal created is used.

        Args:
            principal_id: Authenticated principal

        Returns:
            The tenant id

        Raises:
            TenantUnresolvedError: If the principal has no tenant
        """
        principal = (principal_id or "").strip()
        if not principal:
            raise TenantUnresolvedError(principal_id)

        tenant_id = None
        try:
            with store_timeout("resolve_tenant", timeout_for("query")):
                tenant_id = (
                    self.session.query(Tenant.id).filter(Tenant.owner_id == principal).scalar()
                )
                if tenant_id is None:
                    tenant_id = (
                        self.session.query(Vehicle.tenant_id)
                        .filter(Vehicle.created_by == principal)
                        .order_by(Vehicle.created_at)
                        .limit(1)
                        .scalar()
                    )
                    if tenant_id is not None:
                        self.logger.info(
                            "Tenant resolved from vehicle ownership",
                            extra={"principal_id": principal, "resolved_tenant": tenant_id},
                        )
        except Exception as e:
            self._handle_service_exception("resolve_tenant", e, principal)

        if tenant_id is None:
            raise TenantUnresolvedError(principal)
        return tenant_id

    @operation()
    def get_tenant(self, tenant_id: str) -> TenantRead:
        """
        Get a tenant by id.

        Raises:
            NotFoundError: If the tenant doesn't exist
        """
        try:
            with store_timeout("get_tenant", timeout_for("query")):
                tenant = self.session.query(Tenant).filter(Tenant.id == tenant_id).first()
        except Exception as e:
            self._handle_service_exception("get_tenant", e, tenant_id)

        if not tenant:
            raise NotFoundError("Tenant", tenant_id)
        return TenantRead.model_validate(tenant)

    @operation()
    def create_tenant(self, tenant_data: TenantCreate) -> TenantRead:
        """
        Create a new tenant.

        Args:
            tenant_data: Validated tenant data

        Returns:
            Created tenant data

        Raises:
            ServiceError: DUPLICATE if the owner already has a tenant
        """
        try:
            with store_timeout("create_tenant", timeout_for("insert")) as deadline, self.transaction(
                deadline
            ):
                if self.session.query(
                    exists().where(Tenant.owner_id == tenant_data.owner_id)
                ).scalar():
                    raise duplicate("Tenant", owner_id=tenant_data.owner_id)

                tenant = Tenant(
                    name=tenant_data.name,
                    owner_id=tenant_data.owner_id,
                    contact_email=tenant_data.contact_email,
                    is_active=tenant_data.is_active,
                )
                self.session.add(tenant)
                self.session.flush()

            self.logger.info(f"Created tenant: id={tenant.id}, owner_id={tenant_data.owner_id}")
            return TenantRead.model_validate(tenant)

        except IntegrityError as e:
            if "unique" in str(e).lower():
                raise duplicate("Tenant", cause=e, owner_id=tenant_data.owner_id) from e
            self._handle_service_exception("create_tenant", e)
        except Exception as e:
            self._handle_service_exception("create_tenant", e)

    @operation()
    def ensure_tenant(self, principal_id: str, contact_email: Optional[str] = None) -> TenantRead:
        """
        Return the tenant the principal owns, creating one on first use.

        New tenants are named after the contact email's local part, or after
        the principal when no email is known.
        """
        principal = (principal_id or "").strip()
        if not principal:
            raise TenantUnresolvedError(principal_id)

        try:
            with store_timeout("ensure_tenant", timeout_for("query")):
                tenant = self.session.query(Tenant).filter(Tenant.owner_id == principal).first()
        except Exception as e:
            self._handle_service_exception("ensure_tenant", e, principal)

        if tenant:
            return TenantRead.model_validate(tenant)

        if contact_email and "@" in contact_email:
            name = f"Company for {contact_email.split('@')[0]}"
        else:
            name = f"Company for User {principal[:8]}"

        try:
            tenant_data = TenantCreate(name=name, owner_id=principal, contact_email=contact_email)
        except PydanticValidationError as e:
            raise ValidationError(
                f"Invalid tenant data: {str(e)}",
                validation_errors=e.errors(),
            ) from e
        return self.create_tenant(tenant_data)
