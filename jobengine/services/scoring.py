"""
Rating scoring engine.

Pure functions turning a rating checklist into category scores (0-5),
a weighted overall percentage (0-100) and a star value (1-5).

Weights:
    punctuality      25%
    PPE              25%
    customer service 20%
    workmanship      20%
    site procedures  10%

All arithmetic is Decimal with half-up rounding so .5 boundaries are stable.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from jobengine.schemas.rating import (
    CustomerServiceChecklist,
    PPEChecklist,
    PunctualityChecklist,
    RatingChecklist,
    SiteProceduresChecklist,
    WorkmanshipChecklist,
)

MAX_CATEGORY_SCORE = 5
MAX_STARS = 5
MIN_RECORDED_STARS = 1

WEIGHTS: dict[str, Decimal] = {
    "punctuality": Decimal("0.25"),
    "ppe": Decimal("0.25"),
    "customer_service": Decimal("0.20"),
    "workmanship": Decimal("0.20"),
    "site_procedures": Decimal("0.10"),
}

PARTIAL_PPE_SCORE = 3
LATE_WITH_NOTICE_SCORE = 3


@dataclass(frozen=True)
class ScoreCard:
    punctuality: int
    ppe: int
    customer_service: int
    workmanship: int
    site_procedures: int
    overall_percentage: int
    overall_stars: int

    @property
    def ppe_compliant(self) -> bool:
        return self.ppe == MAX_CATEGORY_SCORE

    @property
    def procedure_compliant(self) -> bool:
        return self.site_procedures == MAX_CATEGORY_SCORE


def _round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def score_punctuality(checklist: PunctualityChecklist) -> int:
    if checklist.scheduled_arrival is None or checklist.actual_arrival is None:
        return 0
    if checklist.actual_arrival <= checklist.scheduled_arrival:
        return MAX_CATEGORY_SCORE
    if checklist.notified_delay_in_advance:
        return LATE_WITH_NOTICE_SCORE
    return 0


def score_ppe(checklist: PPEChecklist) -> int:
    if checklist.compliant:
        return MAX_CATEGORY_SCORE
    if checklist.hard_hat and checklist.safety_boots and checklist.reflective_vest:
        return PARTIAL_PPE_SCORE
    return 0


def score_customer_service(checklist: CustomerServiceChecklist) -> int:
    score = 0
    if checklist.communicated_clearly:
        score += 2
    if checklist.professional_attitude:
        score += 1
    if checklist.respectful_to_staff:
        score += 1
    if checklist.patient_solution_oriented:
        score += 1
    return min(score, MAX_CATEGORY_SCORE)


def score_workmanship(checklist: WorkmanshipChecklist) -> int:
    score = 0
    if checklist.completed_as_requested:
        score += 2
    if checklist.no_shortcuts:
        score += 1
    if checklist.clean_work_area:
        score += 1
    if checklist.no_rework_needed:
        score += 1
    return min(score, MAX_CATEGORY_SCORE)


def score_site_procedures(checklist: SiteProceduresChecklist) -> int:
    if checklist.compliant:
        return MAX_CATEGORY_SCORE
    score = 0
    if checklist.permit_to_work_filled:
        score += 2
    if checklist.logged_job_card:
        score += 1
    if checklist.followed_isolation:
        score += 1
    if checklist.followed_waste_disposal:
        score += 1
    return min(score, MAX_CATEGORY_SCORE)


def overall_percentage(scores: dict[str, int]) -> int:
    """Weighted sum of category scores as a whole percentage."""
    total = sum(
        Decimal(scores[category]) / MAX_CATEGORY_SCORE * weight
        for category, weight in WEIGHTS.items()
    )
    return _round_half_up(total * 100)


def stars_from_percentage(percentage: int) -> int:
    """
    Convert a percentage to stars.

    A recorded rating never shows zero stars: a computed 0 is lifted to 1.
    """
    stars = _round_half_up(Decimal(percentage) / 100 * MAX_STARS)
    stars = max(0, min(MAX_STARS, stars))
    return max(stars, MIN_RECORDED_STARS)


def score_checklist(checklist: RatingChecklist) -> ScoreCard:
    scores = {
        "punctuality": score_punctuality(checklist.punctuality),
        "ppe": score_ppe(checklist.ppe),
        "customer_service": score_customer_service(checklist.customer_service),
        "workmanship": score_workmanship(checklist.workmanship),
        "site_procedures": score_site_procedures(checklist.site_procedures),
    }
    percentage = overall_percentage(scores)
    return ScoreCard(
        **scores,
        overall_percentage=percentage,
        overall_stars=stars_from_percentage(percentage),
    )
