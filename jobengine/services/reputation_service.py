"""
Reputation service - per-contractor running aggregate of ratings.

Each rating is folded in with a read-modify-write guarded by the row
version, so concurrent ratings for one contractor cannot lose updates.
"""

import logging
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from jobengine.db.models import ContractorReputation
from jobengine.services import versioning
from jobengine.services.scoring import ScoreCard

logger = logging.getLogger(__name__)

AVERAGE_PLACES = Decimal("0.001")
RATE_PLACES = Decimal("0.01")
ZERO = Decimal("0")


def running_average(old_average: Decimal, old_count: int, value: int | Decimal) -> Decimal:
    """(old x n + value) / (n + 1)"""
    total = Decimal(old_average) * old_count + Decimal(value)
    return (total / (old_count + 1)).quantize(AVERAGE_PLACES, rounding=ROUND_HALF_UP)


def compliance_rate(compliant: int, total: int) -> Decimal:
    if total == 0:
        return ZERO
    return (Decimal(compliant) / total * 100).quantize(RATE_PLACES, rounding=ROUND_HALF_UP)


def empty_reputation(contractor_id: UUID) -> ContractorReputation:
    """Unsaved zero aggregate for contractors with no ratings yet."""
    return ContractorReputation(
        contractor_id=contractor_id,
        rating_count=0,
        avg_punctuality=ZERO,
        avg_customer_service=ZERO,
        avg_workmanship=ZERO,
        avg_overall_stars=ZERO,
        avg_overall_percentage=ZERO,
        ppe_compliant_count=0,
        procedure_compliant_count=0,
        ppe_compliance_rate=ZERO,
        procedure_compliance_rate=ZERO,
        version=0,
    )


def get_reputation(db: Session, contractor_id: UUID) -> ContractorReputation:
    return db.get(ContractorReputation, contractor_id) or empty_reputation(contractor_id)


def _folded_values(current: ContractorReputation, card: ScoreCard) -> dict:
    count = current.rating_count
    new_count = count + 1
    ppe_compliant = current.ppe_compliant_count + (1 if card.ppe_compliant else 0)
    procedure_compliant = current.procedure_compliant_count + (1 if card.procedure_compliant else 0)
    return {
        "rating_count": new_count,
        "avg_punctuality": running_average(current.avg_punctuality, count, card.punctuality),
        "avg_customer_service": running_average(
            current.avg_customer_service, count, card.customer_service
        ),
        "avg_workmanship": running_average(current.avg_workmanship, count, card.workmanship),
        "avg_overall_stars": running_average(current.avg_overall_stars, count, card.overall_stars),
        "avg_overall_percentage": running_average(
            current.avg_overall_percentage, count, card.overall_percentage
        ),
        "ppe_compliant_count": ppe_compliant,
        "procedure_compliant_count": procedure_compliant,
        "ppe_compliance_rate": compliance_rate(ppe_compliant, new_count),
        "procedure_compliance_rate": compliance_rate(procedure_compliant, new_count),
    }


def fold_rating(db: Session, contractor_id: UUID, card: ScoreCard) -> ContractorReputation:
    """
    Fold one scored rating into the contractor's aggregate. Does not commit.

    A first rating inserts the row; a racing insert surfaces as an
    IntegrityError at flush for the caller to turn into a retry.

    Raises:
        ConcurrentModificationError: the aggregate changed since it was read
    """
    current = db.get(ContractorReputation, contractor_id)
    if current is None:
        reputation = ContractorReputation(
            contractor_id=contractor_id,
            **_folded_values(empty_reputation(contractor_id), card),
            version=1,
        )
        db.add(reputation)
        db.flush()
        return reputation

    versioning.conditional_update(db, current, _folded_values(current, card))
    logger.info(
        "Reputation for contractor %s now %s rating(s)", contractor_id, current.rating_count
    )
    return current
