"""Customer Deduplication Service

Finds probable duplicate customers inside a tenant and scores how similar two
customers are. Candidates come from four signals (identity document, e-mail,
phone, fuzzy name); the score weighs them as:

    identity document   short-circuits to 1.0
    e-mail              0.8
    phone               0.6
    name similarity     0.4 x ratio

E-mail and phone only count when both customers have one, so missing data is
never penalized. The final score is normalized by the weight that was
actually available.
"""

import logging
import re
from dataclasses import dataclass, field
from difflib import SequenceMatcher
from typing import Optional

from .entities import Customer
from .ports import CustomerRepositoryPort

logger = logging.getLogger(__name__)

EMAIL_WEIGHT = 0.8
PHONE_WEIGHT = 0.6
NAME_WEIGHT = 0.4

DEFAULT_THRESHOLD = 0.70
VERY_SIMILAR_NAMES = 0.8
SIMILAR_NAMES = 0.6

_PUNCTUATION = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")


def normalize_name(value: Optional[str]) -> str:
    """Lower-case, strip punctuation and collapse whitespace."""
    value = (value or "").lower()
    value = _PUNCTUATION.sub("", value)
    value = _WHITESPACE.sub(" ", value)
    return value.strip()


def string_similarity(a: str, b: str) -> float:
    """Character-level similarity ratio in [0, 1] on normalized strings."""
    a = normalize_name(a)
    b = normalize_name(b)

    if a == b:
        return 1.0 if a else 0.0

    if not a or not b:
        return 0.0

    return SequenceMatcher(None, a, b).ratio()


@dataclass
class DuplicateMatch:
    """One entry of a duplicate report."""
    customer: Customer
    score: float
    is_likely: bool
    match_reasons: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "customer": self.customer.to_dict(),
            "similarity_score": round(self.score, 4),
            "is_likely_duplicate": self.is_likely,
            "match_reasons": list(self.match_reasons),
        }


class DedupService:
    """Duplicate detection over a CustomerRepositoryPort."""

    def __init__(
        self,
        repository: CustomerRepositoryPort,
        threshold: float = DEFAULT_THRESHOLD,
        similar_names_limit: int = 50,
    ):
        self.repository = repository
        self.threshold = threshold
        self.similar_names_limit = similar_names_limit

    def find_potential_duplicates(
        self, tenant_id: Optional[str], customer: Customer
    ) -> list[Customer]:
        """Union of document, e-mail, phone and fuzzy-name matches.

        The customer itself is excluded and every candidate appears once, in
        the order it was first found.
        """
        candidates: list[Customer] = []
        candidates.extend(self.find_by_document(tenant_id, customer))

        if customer.email is not None:
            candidates.extend(self.repository.find_by_email(tenant_id, customer.email.normalized()))

        if customer.phone is not None:
            candidates.extend(self.repository.find_by_phone(tenant_id, customer.phone.normalized()))

        candidates.extend(self.find_by_similar_names(tenant_id, customer))

        seen: set = set()
        duplicates = []
        for candidate in candidates:
            if candidate.id is not None and candidate.id == customer.id:
                continue
            key = candidate.id if candidate.id is not None else id(candidate)
            if key in seen:
                continue
            seen.add(key)
            duplicates.append(candidate)

        logger.info(
            f"Found {len(duplicates)} potential duplicates",
            extra={
                "tenant_id": tenant_id,
                "customer_id": customer.id,
                "duplicate_ids": [d.id for d in duplicates],
            }
        )
        return duplicates

    def find_by_document(self, tenant_id: Optional[str], customer: Customer) -> list[Customer]:
        return self.repository.find_by_document_id(tenant_id, customer.document_id)

    def find_by_similar_names(self, tenant_id: Optional[str], customer: Customer) -> list[Customer]:
        if customer.type.is_natural():
            terms = [t.strip() for t in (customer.first_name, customer.last_name) if t and t.strip()]
        else:
            terms = [customer.business_name.strip()] if (customer.business_name or "").strip() else []

        if not terms:
            return []

        return self.repository.find_by_similar_names(
            tenant_id, terms, limit=self.similar_names_limit
        )

    def calculate_similarity_score(self, a: Customer, b: Customer) -> float:
        """Weighted similarity in [0, 1]. Same identity document returns 1.0."""
        if a.document_id == b.document_id:
            return 1.0

        score = 0.0
        max_score = 0.0

        if a.email is not None and b.email is not None:
            max_score += EMAIL_WEIGHT
            if a.email == b.email:
                score += EMAIL_WEIGHT

        if a.phone is not None and b.phone is not None:
            max_score += PHONE_WEIGHT
            if a.phone.normalized() == b.phone.normalized():
                score += PHONE_WEIGHT

        max_score += NAME_WEIGHT
        score += self.calculate_name_similarity(a, b) * NAME_WEIGHT

        return score / max_score if max_score > 0 else 0.0

    def calculate_name_similarity(self, a: Customer, b: Customer) -> float:
        # Names are only comparable within the same customer type
        if a.type is not b.type:
            return 0.0

        if a.type.is_natural():
            return string_similarity(
                f"{a.first_name or ''} {a.last_name or ''}",
                f"{b.first_name or ''} {b.last_name or ''}",
            )

        return string_similarity(a.business_name, b.business_name)

    def are_likely_duplicates(self, a: Customer, b: Customer) -> bool:
        return self.calculate_similarity_score(a, b) >= self.threshold

    def generate_duplicate_report(
        self, tenant_id: Optional[str], customer: Customer
    ) -> list[DuplicateMatch]:
        """Score every potential duplicate, highest score first."""
        report = []
        for duplicate in self.find_potential_duplicates(tenant_id, customer):
            score = self.calculate_similarity_score(customer, duplicate)
            report.append(DuplicateMatch(
                customer=duplicate,
                score=score,
                is_likely=score >= self.threshold,
                match_reasons=self.get_match_reasons(customer, duplicate),
            ))

        report.sort(key=lambda m: m.score, reverse=True)
        return report

    def get_match_reasons(self, a: Customer, b: Customer) -> list[str]:
        reasons = []

        if a.document_id == b.document_id:
            reasons.append("Same identity document")

        if a.email is not None and b.email is not None and a.email == b.email:
            reasons.append("Same email")

        if a.phone is not None and b.phone is not None and a.phone.normalized() == b.phone.normalized():
            reasons.append("Same phone")

        name_similarity = self.calculate_name_similarity(a, b)
        if name_similarity >= VERY_SIMILAR_NAMES:
            reasons.append("Very similar names")
        elif name_similarity >= SIMILAR_NAMES:
            reasons.append("Similar names")

        return reasons
