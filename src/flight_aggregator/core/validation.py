# src/flight_aggregator/core/validation.py

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional

from flight_aggregator.core.models import (
    CABINS,
    TRIP_MULTI_CITY,
    TRIP_ROUND_TRIP,
    TRIP_TYPES,
    SearchParams,
)


IATA_RE = re.compile(r"^[A-Za-z]{3}$")

MIN_PASSENGERS = 1
MAX_PASSENGERS = 9


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    errors: List[str] = field(default_factory=list)


def _is_iata(code: Optional[str]) -> bool:
    return bool(code) and bool(IATA_RE.match(str(code)))


def _passenger_errors(params: SearchParams) -> List[str]:
    breakdown = params.passenger_breakdown
    if breakdown is None:
        if params.passengers is None or not (
            MIN_PASSENGERS <= params.passengers <= MAX_PASSENGERS
        ):
            return ["Number of passengers must be between 1 and 9"]
        return []

    errors: List[str] = []
    if not (1 <= breakdown.adults <= 9):
        errors.append("Number of adults must be between 1 and 9")
    if not (0 <= breakdown.children <= 8):
        errors.append("Number of children must be between 0 and 8")
    if not (0 <= breakdown.infants <= 4):
        errors.append("Number of infants must be between 0 and 4")
    if not (MIN_PASSENGERS <= breakdown.total <= MAX_PASSENGERS):
        errors.append("Number of passengers must be between 1 and 9")
    return errors


def validate_search_params(
    params: SearchParams, today: Optional[date] = None
) -> ValidationResult:
    """
    Check a request before it reaches the pipeline.
    Returns every violated constraint rather than stopping at the first.
    """
    today = today or date.today()
    errors: List[str] = []

    if not _is_iata(params.origin):
        errors.append("Invalid departure airport code")
    if not _is_iata(params.destination):
        errors.append("Invalid arrival airport code")

    if params.departure_date is None:
        errors.append("Departure date is required")
    elif params.departure_date < today:
        errors.append("Departure date cannot be in the past")

    if params.trip_type == TRIP_ROUND_TRIP:
        if params.return_date is None:
            errors.append("Return date is required for round-trip")
        elif params.departure_date is not None and params.return_date <= params.departure_date:
            errors.append("Return date must be after departure date")

    if params.trip_type == TRIP_MULTI_CITY:
        if not params.legs:
            errors.append("Multi-city searches require at least one segment")
        for idx, leg in enumerate(params.legs, start=1):
            if not (_is_iata(leg.origin) and _is_iata(leg.destination)):
                errors.append(f"Invalid airport code in segment {idx}")

    if params.trip_type not in TRIP_TYPES:
        errors.append(f"Invalid trip type: {params.trip_type}")
    if params.cabin is not None and params.cabin not in CABINS:
        errors.append(f"Invalid cabin class: {params.cabin}")

    errors.extend(_passenger_errors(params))

    return ValidationResult(valid=not errors, errors=errors)
