"""
GDPR data subject rights: export, erasure and consent management
"""

import csv
import io
from datetime import datetime
from typing import Any, Dict, List, Optional
import uuid

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select
import structlog

from retail_api.models import (
    ConsentRecord,
    ConsentType,
    Order,
    SecurityAuditLog,
    Tenant,
    TenantFeatureOverride,
    User,
    UserTenant,
)
from retail_api.models.base import utcnow

logger = structlog.get_logger(__name__)

DELETE_CONFIRMATION = "DELETE_ALL_MY_DATA"


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


class GdprService:
    """Data subject operations for one user"""

    def __init__(self, session: Session):
        self.session = session

    def audit(self, user_id: Optional[uuid.UUID], action: str, ip_address: Optional[str] = None, **details: Any) -> None:
        self.session.add(SecurityAuditLog(
            user_id=user_id,
            action=action,
            ip_address=ip_address,
            details={k: v for k, v in details.items() if v is not None} or None,
        ))

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    def export_user_data(self, user: User, ip_address: Optional[str] = None) -> Dict[str, Any]:
        memberships = self.session.exec(
            select(UserTenant, Tenant)
            .join(Tenant, Tenant.id == UserTenant.tenant_id)
            .where(UserTenant.user_id == user.id)
        ).all()
        consents = self.session.exec(
            select(ConsentRecord)
            .where(ConsentRecord.user_id == user.id)
            .order_by(ConsentRecord.created_at)
        ).all()
        orders = self.session.exec(
            select(Order)
            .where(func.lower(Order.customer_email) == user.email.lower())
            .order_by(Order.created_at)
        ).all()

        export = {
            "userId": str(user.id),
            "email": user.email,
            "exportedAt": utcnow().isoformat(),
            "profile": {
                "firstName": user.first_name,
                "lastName": user.last_name,
                "phone": user.phone,
                "role": getattr(user.role, "value", user.role),
                "createdAt": _iso(user.created_at),
                "lastLoginAt": _iso(user.last_login_at),
            },
            "tenants": [
                {
                    "tenantId": str(tenant.id),
                    "name": tenant.name,
                    "role": getattr(membership.role, "value", membership.role),
                    "joinedAt": _iso(membership.created_at),
                }
                for membership, tenant in memberships
            ],
            "consents": [
                {
                    "type": getattr(c.consent_type, "value", c.consent_type),
                    "granted": c.granted,
                    "recordedAt": _iso(c.created_at),
                }
                for c in consents
            ],
            "orders": [
                {
                    "orderId": str(o.id),
                    "orderNumber": o.order_number,
                    "tenantId": str(o.tenant_id),
                    "totalCents": o.total_cents,
                    "currency": o.currency,
                    "status": getattr(o.order_status, "value", o.order_status),
                    "createdAt": _iso(o.created_at),
                }
                for o in orders
            ],
        }

        self.audit(user.id, "gdpr_data_export", ip_address, orders=len(orders), consents=len(consents))
        self.session.commit()
        logger.info(f"GDPR data export completed for user: {user.id}")
        return export

    @staticmethod
    def export_to_csv(export: Dict[str, Any]) -> str:
        """Flatten an export into section,field,value rows"""
        buffer = io.StringIO()
        writer = csv.writer(buffer)
        writer.writerow(["section", "field", "value"])
        writer.writerow(["profile", "userId", export["userId"]])
        writer.writerow(["profile", "email", export["email"]])
        writer.writerow(["profile", "exportedAt", export["exportedAt"]])
        for key, value in export["profile"].items():
            writer.writerow(["profile", key, "" if value is None else value])
        for section in ("tenants", "consents", "orders"):
            for index, row in enumerate(export[section], start=1):
                for key, value in row.items():
                    writer.writerow([f"{section}[{index}]", key, "" if value is None else value])
        return buffer.getvalue()

    # ------------------------------------------------------------------
    # Erasure
    # ------------------------------------------------------------------

    def delete_user_data(self, user: User, ip_address: Optional[str] = None) -> Dict[str, int]:
        """Anonymize orders, drop consents and memberships, delete the user; one transaction"""
        user_id = user.id
        try:
            orders = self.session.exec(
                select(Order).where(func.lower(Order.customer_email) == user.email.lower())
            ).all()
            for order in orders:
                order.customer_email = f"deleted-{order.id}@redacted.invalid"
                order.customer_name = None
                order.customer_phone = None
                order.shipping_address = None
                order.billing_address = None
                order.updated_at = utcnow()
                self.session.add(order)

            consents = self.session.exec(select(ConsentRecord).where(ConsentRecord.user_id == user_id)).all()
            for consent in consents:
                self.session.delete(consent)
            memberships = self.session.exec(select(UserTenant).where(UserTenant.user_id == user_id)).all()
            for membership in memberships:
                self.session.delete(membership)
            for grant in self.session.exec(
                select(TenantFeatureOverride).where(TenantFeatureOverride.granted_by == user_id)
            ).all():
                grant.granted_by = None
                self.session.add(grant)
            self.session.flush()
            self.session.delete(user)

            self.audit(
                user_id,
                "gdpr_data_deletion",
                ip_address,
                orders_anonymized=len(orders),
                consents_deleted=len(consents),
                memberships_deleted=len(memberships),
            )
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"GDPR deletion failed for user {user_id}: {e}")
            raise

        logger.info(f"GDPR data deletion completed for user: {user_id}")
        return {
            "ordersAnonymized": len(orders),
            "consentsDeleted": len(consents),
            "membershipsDeleted": len(memberships),
        }

    # ------------------------------------------------------------------
    # Consent
    # ------------------------------------------------------------------

    def record_consent(
        self,
        user_id: uuid.UUID,
        consent_type: ConsentType,
        granted: bool,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> ConsentRecord:
        record = ConsentRecord(
            user_id=user_id,
            consent_type=consent_type,
            granted=granted,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        self.session.add(record)
        self.audit(user_id, "gdpr_consent_recorded", ip_address, consent_type=consent_type.value, granted=granted)
        self.session.commit()
        self.session.refresh(record)
        return record

    def current_consents(self, user_id: uuid.UUID) -> List[ConsentRecord]:
        """Latest record per consent type"""
        rows = self.session.exec(
            select(ConsentRecord)
            .where(ConsentRecord.user_id == user_id)
            .order_by(ConsentRecord.created_at.desc())
        ).all()
        latest: Dict[str, ConsentRecord] = {}
        for row in rows:
            key = getattr(row.consent_type, "value", row.consent_type)
            latest.setdefault(key, row)
        return sorted(latest.values(), key=lambda r: getattr(r.consent_type, "value", r.consent_type))

    def has_consent(self, user_id: uuid.UUID, consent_type: ConsentType) -> bool:
        latest = self.session.exec(
            select(ConsentRecord)
            .where(ConsentRecord.user_id == user_id, ConsentRecord.consent_type == consent_type)
            .order_by(ConsentRecord.created_at.desc())
        ).first()
        return bool(latest and latest.granted)
