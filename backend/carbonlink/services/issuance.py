"""Credit issuance gate: mint threshold and buffer-pool split."""

import math
from decimal import Decimal

from carbonlink.core.errors import ValidationError
from carbonlink.schemas.carbon import Assessment, CreditIssuance
from carbonlink.schemas.observations import RangeViolation

DEFAULT_THRESHOLD = 1000.0
DEFAULT_BUFFER_RATE = 0.15  # non-permanence reserve


def progress(current: float, threshold: float) -> float:
    """Percent of the mint threshold reached, clamped to [0, 100]."""
    return min(100.0, max(0.0, 100 * current / threshold))


def _floor_share(amount: float, rate: Decimal) -> int:
    # Exact decimal product of the shortest float repr, so 0.85 * 1000 is 850
    return math.floor(Decimal(repr(amount)) * rate)


def evaluate_amount(
    current: float,
    threshold: float = DEFAULT_THRESHOLD,
    buffer_rate: float = DEFAULT_BUFFER_RATE,
) -> CreditIssuance:
    violations: list[RangeViolation] = []
    if threshold <= 0:
        violations.append(RangeViolation(field="threshold", value=threshold, minimum=0))
    if not 0 <= buffer_rate <= 1:
        violations.append(RangeViolation(field="buffer_rate", value=buffer_rate, minimum=0, maximum=1))
    if violations:
        raise ValidationError(violations, context={"current": current})

    creditable = max(0.0, current)
    reserve = Decimal(repr(buffer_rate))
    return CreditIssuance(
        total_carbon=current,
        threshold=threshold,
        progress=progress(current, threshold),
        mint_eligible=current >= threshold,
        tradable_amount=_floor_share(creditable, 1 - reserve),
        reserved_amount=_floor_share(creditable, reserve),
    )


def evaluate(
    assessment: Assessment,
    threshold: float = DEFAULT_THRESHOLD,
    buffer_rate: float = DEFAULT_BUFFER_RATE,
) -> CreditIssuance:
    """Split an assessment's creditable carbon into tradable and reserved amounts."""
    return evaluate_amount(assessment.credit_basis, threshold, buffer_rate)
