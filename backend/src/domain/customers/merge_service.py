"""Customer Merge Service

Merges a source customer into a destination customer of the same tenant:

    Requested -> idempotency check -> (already processed: return destination)
              -> validating -> merging -> committed | failed (rolled back)

The destination keeps its own data and only fills gaps from the source.
Contacts, addresses and the tax profile are transferred without creating
duplicates, and the source is soft-deleted. Every merge is recorded under an
idempotency key, so replaying the same request does nothing.
"""

import logging
from dataclasses import replace
from typing import Any, Optional

from .entities import Address, Contact, Customer
from .errors import DomainRuleViolation, IdempotencyKeyConflict, MergeFailedError, NotFoundError
from .events import CustomerMerged, DomainEvent, utcnow
from .ports import (
    CustomerRepositoryPort,
    EventRecorderPort,
    IdempotencyRepositoryPort,
    TransactionManagerPort,
)

logger = logging.getLogger(__name__)

MERGE_EVENT_TYPE = "customer.merge"

# Fields copied from the source when the destination has no value
FILLABLE_FIELDS = ("first_name", "last_name", "email", "phone", "segment")


def _field_value(value) -> Any:
    return getattr(value, "value", value)


def combine_notes(
    destination_notes: Optional[str],
    source_notes: Optional[str],
    reason: Optional[str],
) -> str:
    parts = []

    if destination_notes:
        parts.append(destination_notes)

    if source_notes:
        parts.append(f"Notes from merged customer: {source_notes}")

    if reason:
        parts.append(f"Merge reason: {reason}")

    parts.append(f"Merged on {utcnow().strftime('%Y-%m-%d %H:%M:%S')}")
    return "\n\n".join(parts)


def contacts_to_transfer(source: Customer, destination: Customer) -> list[Contact]:
    """Source contacts sharing neither e-mail nor phone with the destination.

    A contact counts as a duplicate when either its normalized e-mail or its
    normalized phone is already present.
    """
    emails = {c.email.normalized() for c in destination.contacts if c.email}
    phones = {c.phone.normalized() for c in destination.contacts if c.phone}

    transferable = []
    for contact in source.contacts:
        email = contact.email.normalized() if contact.email else None
        phone = contact.phone.normalized() if contact.phone else None

        if (email and email in emails) or (phone and phone in phones):
            continue

        transferable.append(contact)
        if email:
            emails.add(email)
        if phone:
            phones.add(phone)

    return transferable


def addresses_to_transfer(source: Customer, destination: Customer) -> list[Address]:
    """Source addresses whose full address is not on the destination yet."""
    known = {a.full_address() for a in destination.addresses}

    transferable = []
    for address in source.addresses:
        full = address.full_address()
        if full in known:
            continue
        transferable.append(address)
        known.add(full)

    return transferable


def fill_changes(source: Customer, destination: Customer) -> dict[str, Any]:
    """Fields the destination lacks and the source can provide."""
    changes = {}
    for name in FILLABLE_FIELDS:
        if not getattr(destination, name) and getattr(source, name):
            changes[name] = getattr(source, name)
    return changes


class MergeService:
    """Idempotent merge of two customers."""

    def __init__(
        self,
        repository: CustomerRepositoryPort,
        idempotency: IdempotencyRepositoryPort,
        transactions: TransactionManagerPort,
        events: EventRecorderPort,
        idempotency_ttl_seconds: int = 86400,
    ):
        self.repository = repository
        self.idempotency = idempotency
        self.transactions = transactions
        self.events = events
        self.idempotency_ttl_seconds = idempotency_ttl_seconds

    def merge_customers(
        self,
        source_id: int,
        destination_id: int,
        idempotency_key: str,
        actor_id: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> Customer:
        """Merge source into destination and return the merged destination.

        Args:
            source_id: Customer that disappears (soft-deleted)
            destination_id: Customer that survives
            idempotency_key: Key identifying this merge request
            actor_id: User performing the merge
            reason: Free-text reason, appended to the destination notes

        Returns:
            The destination customer. For an already processed key the
            current destination is returned and nothing is changed.

        Raises:
            NotFoundError: If a customer does not exist
            DomainRuleViolation: If the merge is not allowed
            MergeFailedError: If the merge transaction failed and was rolled back
        """
        log_extra = {
            "source_id": source_id,
            "destination_id": destination_id,
            "idempotency_key": idempotency_key,
            "actor_id": actor_id,
        }
        payload = {
            "event_type": MERGE_EVENT_TYPE,
            "source_id": source_id,
            "destination_id": destination_id,
            "actor_id": actor_id,
            "reason": reason,
        }

        if self.idempotency.exists(idempotency_key):
            return self._replay(idempotency_key, payload, destination_id, log_extra)

        if source_id == destination_id:
            raise DomainRuleViolation(
                "A customer cannot be merged with itself", rule="merge.same_customer"
            )

        source = self.repository.find_by_id(source_id)
        if source is None:
            raise NotFoundError("Customer", source_id)

        destination = self.repository.find_by_id(destination_id)
        if destination is None:
            raise NotFoundError("Customer", destination_id)

        violations = self.validate_merge(source, destination)
        if violations:
            raise DomainRuleViolation("; ".join(violations), rule="merge.not_allowed")

        merge_id = f"merge_{source_id}_to_{destination_id}_{int(utcnow().timestamp())}"
        source_data = source.to_dict()

        try:
            with self.transactions.transaction():
                self.idempotency.store(idempotency_key, payload, self.idempotency_ttl_seconds)

                events = self._perform_merge(source, destination, reason)
                events.extend(source.soft_delete(f"merged into #{destination_id}"))

                self.repository.save(source)
                destination = self.repository.save(destination)

                events.append(CustomerMerged(
                    customer_id=destination.id,
                    tenant_id=destination.tenant_id,
                    merge_id=merge_id,
                    source_customer_id=source_id,
                    merge_reason=reason,
                    source_data=source_data,
                    destination_data=destination.to_dict(),
                ))
                self.events.record(events, actor_id=actor_id)
                self.idempotency.store_result(idempotency_key, destination.to_dict())
        except IdempotencyKeyConflict:
            # A concurrent request recorded the key first; nothing was written here
            logger.info("Merge key recorded concurrently, replaying", extra=log_extra)
            return self._replay(idempotency_key, payload, destination_id, log_extra)
        except Exception as e:
            logger.error(
                f"Customer merge failed: {e}",
                extra={**log_extra, "tenant_id": destination.tenant_id},
                exc_info=True
            )
            raise MergeFailedError(f"Failed to merge customers: {e}", cause=e) from e

        logger.info(
            "Customer merge completed",
            extra={**log_extra, "merge_id": merge_id, "tenant_id": destination.tenant_id}
        )
        return destination

    def _replay(
        self,
        idempotency_key: str,
        payload: dict[str, Any],
        destination_id: int,
        log_extra: dict[str, Any],
    ) -> Customer:
        record = self.idempotency.get(idempotency_key) or {}
        stored = record.get("payload") or {}
        if (stored.get("source_id"), stored.get("destination_id")) != (
            payload["source_id"], payload["destination_id"]
        ):
            logger.warning(
                "Idempotency key reused with a different merge request",
                extra={**log_extra, "stored_payload": stored}
            )

        logger.info("Merge already processed, returning current destination", extra=log_extra)

        destination = self.repository.find_by_id(destination_id)
        if destination is None:
            raise NotFoundError("Customer", destination_id)
        return destination

    def _perform_merge(
        self, source: Customer, destination: Customer, reason: Optional[str]
    ) -> list[DomainEvent]:
        events: list[DomainEvent] = []
        changes = fill_changes(source, destination)

        events.extend(destination.update(
            business_name=destination.business_name,
            first_name=changes.get("first_name", destination.first_name),
            last_name=changes.get("last_name", destination.last_name),
            email=changes.get("email", destination.email),
            phone=changes.get("phone", destination.phone),
            segment=changes.get("segment", destination.segment),
            notes=combine_notes(destination.notes, source.notes, reason),
        ))

        for contact in contacts_to_transfer(source, destination):
            events.extend(destination.add_contact(replace(contact, customer_id=destination.id)))

        for address in addresses_to_transfer(source, destination):
            events.extend(destination.add_address(replace(address, customer_id=destination.id)))

        if destination.tax_profile is None and source.tax_profile is not None:
            events.extend(destination.set_tax_profile(
                replace(source.tax_profile, customer_id=destination.id)
            ))

        return events

    def validate_merge(self, source: Customer, destination: Customer) -> list[str]:
        """Reasons why source cannot be merged into destination (empty if allowed)."""
        violations = []

        if source.id == destination.id:
            violations.append("A customer cannot be merged with itself")

        if source.tenant_id != destination.tenant_id:
            violations.append("Only customers of the same tenant can be merged")

        if not source.status.can_be_updated():
            violations.append("The source customer is blacklisted and cannot be merged")

        if not destination.status.can_be_updated():
            violations.append("The destination customer is blacklisted and cannot receive a merge")

        if source.type is not destination.type:
            violations.append("Only customers of the same type (natural/juridical) can be merged")

        return violations

    def validate_merge_by_ids(self, source_id: int, destination_id: int) -> list[str]:
        source = self.repository.find_by_id(source_id)
        destination = self.repository.find_by_id(destination_id)

        violations = []
        if source is None:
            violations.append(f"Customer #{source_id} not found")
        if destination is None:
            violations.append(f"Customer #{destination_id} not found")
        if violations:
            return violations

        return self.validate_merge(source, destination)

    def preview_merge(self, source: Customer, destination: Customer) -> dict[str, Any]:
        """Describe the outcome of a merge without changing anything."""
        changes = {name: _field_value(value) for name, value in fill_changes(source, destination).items()}
        final_data = {**destination.to_dict(), **changes}

        return {
            "source": source.to_dict(),
            "destination": destination.to_dict(),
            "preview_result": {
                "final_data": final_data,
                "changes_applied": changes,
                "contacts_added": len(contacts_to_transfer(source, destination)),
                "addresses_added": len(addresses_to_transfer(source, destination)),
                "tax_profile_updated": destination.tax_profile is None and source.tax_profile is not None,
            },
            "validation_errors": self.validate_merge(source, destination),
        }

    def preview_merge_by_ids(self, source_id: int, destination_id: int) -> dict[str, Any]:
        source = self.repository.find_by_id(source_id)
        if source is None:
            raise NotFoundError("Customer", source_id)

        destination = self.repository.find_by_id(destination_id)
        if destination is None:
            raise NotFoundError("Customer", destination_id)

        return self.preview_merge(source, destination)
