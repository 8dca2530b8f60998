"""
Default location provisioning.

Every tenant gets a headquarters location that can serve both pickup and
dropoff, created the first time its locations are listed.

The provisioner works on the caller's session but only ever inside a
savepoint: it never commits or rolls back the caller's transaction, so work
the caller has pending survives a failed provisioning attempt. Committing
the headquarters is left to whoever owns the session.
"""

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..config import get_config
from ..db.db_location_models import Location
from ..db.db_tenant_models import Tenant
from ..utils.logger import get_logger
from ..utils.timeout import store_timeout, timeout_for


class HeadquartersProvisioner:
    """
    Ensures a tenant has exactly one headquarters location.

    ``ensure_headquarters`` never raises: listing locations must keep working
    even when provisioning fails, so failures are logged and dropped.
    """

    def __init__(self, session: Session):
        self.session = session
        self.logger = get_logger()

    def has_headquarters(self, tenant_id: str) -> bool:
        return (
            self.session.query(Location.id)
            .filter(Location.tenant_id == tenant_id, Location.is_headquarters.is_(True))
            .first()
            is not None
        )

    def ensure_headquarters(self, tenant_id: str) -> bool:
        """
        Create the tenant's headquarters location if it has none.

        Returns:
            True if a headquarters was added to the session (not yet committed)
        """
        location_config = get_config().locations
        try:
            with store_timeout("ensure_headquarters", timeout_for("insert")):
                if self.has_headquarters(tenant_id):
                    return False

                tenant_name = (
                    self.session.query(Tenant.name).filter(Tenant.id == tenant_id).scalar()
                )
                if tenant_name is None:
                    self.logger.warning(
                        "Cannot provision headquarters for unknown tenant",
                        extra={"tenant_id": tenant_id},
                    )
                    return False

                headquarters = Location(
                    tenant_id=tenant_id,
                    name=location_config.headquarters_name_template.format(tenant_name=tenant_name),
                    country=location_config.default_country,
                    is_pickup=True,
                    is_dropoff=True,
                    is_headquarters=True,
                    is_active=True,
                )
                with self.session.begin_nested():
                    self.session.add(headquarters)
                    self.session.flush()

        except IntegrityError:
            # Another request created it first
            self.logger.info(
                "Headquarters already provisioned concurrently", extra={"tenant_id": tenant_id}
            )
            return False
        except Exception as e:
            self.logger.warning(
                f"Headquarters provisioning failed: {type(e).__name__}",
                extra={"tenant_id": tenant_id, "error_type": type(e).__name__},
            )
            return False

        self.logger.info(
            "Created headquarters location",
            extra={"tenant_id": tenant_id, "location_id": headquarters.id},
        )
        return True
