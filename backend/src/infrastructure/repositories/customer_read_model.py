"""Read-only customer projections for other modules.

Queries the ORM rows directly and returns plain dicts; no aggregate is
rebuilt. Soft-deleted customers are invisible.
"""

from typing import Any, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from models.customer import Customer as CustomerModel
from domain.customers.enums import CustomerStatus, CustomerType
from domain.customers.ports import CustomerReadModelPort
from domain.customers.value_objects import digits_only
from .customer_repository import search_clause, tenant_clause


def full_name(model: CustomerModel) -> str:
    if model.type == CustomerType.NATURAL.value:
        return " ".join(p for p in (model.first_name, model.last_name) if p)
    return model.business_name or ""


class SqlAlchemyCustomerReadModel(CustomerReadModelPort):

    def __init__(self, db: Session):
        self.db = db

    def get_customer_by_id(self, customer_id: int) -> Optional[dict[str, Any]]:
        model = self._get(customer_id)
        return self._summary(model) if model else None

    def get_customer_by_document(
        self, document_type: str, document_number: str, tenant_id: Optional[str] = None
    ) -> Optional[dict[str, Any]]:
        model = self.db.execute(
            self._live().where(
                tenant_clause(CustomerModel.tenant_id, tenant_id),
                CustomerModel.document_type == document_type,
                CustomerModel.document_normalized == digits_only(document_number),
            ).order_by(CustomerModel.id)
        ).scalars().first()
        return self._summary(model) if model else None

    def get_customer_basic_info(self, customer_id: int) -> Optional[dict[str, Any]]:
        model = self._get(customer_id)
        return self._basic(model) if model else None

    def get_customers_by_ids(self, customer_ids: List[int]) -> List[dict[str, Any]]:
        if not customer_ids:
            return []

        models = self.db.execute(
            self._live().where(CustomerModel.id.in_(customer_ids)).order_by(CustomerModel.id)
        ).scalars().all()
        return [self._summary(m) for m in models]

    def search_customers(
        self, query: str, tenant_id: Optional[str] = None, limit: int = 10
    ) -> List[dict[str, Any]]:
        if not (query or "").strip():
            return []

        models = self.db.execute(
            self._live()
            .where(tenant_clause(CustomerModel.tenant_id, tenant_id), search_clause(query))
            .order_by(CustomerModel.id)
            .limit(limit)
        ).scalars().all()
        return [self._basic(m) for m in models]

    def get_customer_contact_info(self, customer_id: int) -> Optional[dict[str, Any]]:
        model = self.db.execute(
            self._live()
            .where(CustomerModel.id == customer_id)
            .options(selectinload(CustomerModel.contacts), selectinload(CustomerModel.addresses))
        ).scalar_one_or_none()
        if model is None:
            return None

        return {
            "id": model.id,
            "email": model.email,
            "phone": model.phone,
            "contacts": [
                {
                    "id": c.id,
                    "role": c.role,
                    "name": c.name,
                    "email": c.email,
                    "phone": c.phone,
                    "is_primary": c.is_primary,
                }
                for c in model.contacts
            ],
            "addresses": [
                {
                    "id": a.id,
                    "type": a.type,
                    "line1": a.line1,
                    "line2": a.line2,
                    "city": a.city,
                    "state": a.state,
                    "postal_code": a.postal_code,
                    "country_code": a.country_code,
                    "is_default": a.is_default,
                }
                for a in model.addresses
            ],
        }

    def is_customer_active(self, customer_id: int) -> bool:
        model = self._get(customer_id)
        return model is not None and model.status == CustomerStatus.ACTIVE.value

    def get_customer_tax_info(self, customer_id: int) -> Optional[dict[str, Any]]:
        model = self.db.execute(
            self._live()
            .where(CustomerModel.id == customer_id)
            .options(selectinload(CustomerModel.tax_profile))
        ).scalar_one_or_none()
        if model is None or model.tax_profile is None:
            return None

        profile = model.tax_profile
        return {
            "customer_id": model.id,
            "tax_regime": profile.tax_regime,
            "tax_responsibilities": list(profile.tax_responsibilities or []),
            "activity_codes": list(profile.activity_codes or []),
            "is_retention_agent": profile.is_retention_agent,
            "is_self_retainer": profile.is_self_retainer,
        }

    @staticmethod
    def _live():
        return select(CustomerModel).where(CustomerModel.deleted_at.is_(None))

    def _get(self, customer_id: int) -> Optional[CustomerModel]:
        return self.db.execute(
            self._live().where(CustomerModel.id == customer_id)
        ).scalar_one_or_none()

    @staticmethod
    def _summary(model: CustomerModel) -> dict[str, Any]:
        return {
            "id": model.id,
            "tenant_id": model.tenant_id,
            "business_name": model.business_name,
            "full_name": full_name(model),
            "document_type": model.document_type,
            "document_number": model.document_number,
            "email": model.email,
            "phone": model.phone,
            "status": model.status,
            "type": model.type,
        }

    @staticmethod
    def _basic(model: CustomerModel) -> dict[str, Any]:
        return {
            "id": model.id,
            "business_name": model.business_name,
            "full_name": full_name(model),
            "status": model.status,
        }
