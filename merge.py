"""Combine a partial member update with the stored record."""
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from membership import membership_end_date, to_datetime
from schemas import PROTECTED_FIELDS

# Never taken from a client payload
SERVER_FIELDS = ('_id', 'id', 'createdAt', 'membershipEndDate', 'membershipStatus', 'previousWeights')


@dataclass
class MergeResult:
    fields: Dict[str, Any]
    replaced_photo: Optional[str] = None


def _same_weight(incoming: Any, existing: Any) -> bool:
    try:
        return float(incoming) == float(existing)
    except (TypeError, ValueError):
        return False


def merge_measurements(existing: Optional[Mapping[str, Any]], incoming: Any) -> Any:
    if incoming is None:
        return dict(existing or {})
    if not isinstance(incoming, Mapping):
        # left for schema validation to reject
        return incoming
    merged = dict(existing or {})
    merged.update(incoming)
    return merged


def merge_weights(existing: Mapping[str, Any], incoming: Mapping[str, Any], now: datetime):
    """Returns (bodyWeight, previousWeights) for the next state."""
    history: List[Dict[str, Any]] = [dict(entry) for entry in existing.get('previousWeights') or []]
    old_weight = existing.get('bodyWeight')

    if 'bodyWeight' not in incoming:
        return old_weight, history

    new_weight = incoming['bodyWeight']
    if old_weight is not None and not _same_weight(new_weight, old_weight):
        history.append({'date': now, 'weight': old_weight})
    return new_weight, history


def merge_update(
    incoming: Mapping[str, Any],
    existing: Mapping[str, Any],
    photo: Optional[str] = None,
    now: Optional[datetime] = None,
) -> MergeResult:
    now = now or datetime.now()
    data: Dict[str, Any] = {k: v for k, v in incoming.items() if k not in SERVER_FIELDS}
    result = MergeResult(fields=data)

    existing_photo = existing.get('photo')
    if photo:
        data['photo'] = photo
        if existing_photo and existing_photo != photo:
            result.replaced_photo = existing_photo
    else:
        data['photo'] = existing_photo

    data['bodyMeasurements'] = merge_measurements(existing.get('bodyMeasurements'), incoming.get('bodyMeasurements'))
    data['bodyWeight'], data['previousWeights'] = merge_weights(existing, incoming, now)

    for field in PROTECTED_FIELDS:
        if field not in data:
            data[field] = existing.get(field)

    if data.get('membershipDuration') is not None:
        if data.get('membershipStartDate') is not None:
            start = to_datetime(data['membershipStartDate'], 'membershipStartDate')
        elif existing.get('membershipStartDate') is not None:
            start = to_datetime(existing['membershipStartDate'], 'membershipStartDate')
        else:
            start = now
        data['membershipStartDate'] = start
        data['membershipEndDate'] = membership_end_date(start, data['membershipDuration'])
    else:
        data['membershipStartDate'] = existing.get('membershipStartDate')
        data['membershipEndDate'] = existing.get('membershipEndDate')
        data['membershipDuration'] = existing.get('membershipDuration')

    data['createdAt'] = existing.get('createdAt')
    return result
