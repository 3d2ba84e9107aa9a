import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional

from pydantic import ValidationError as PydanticValidationError

from config import Settings
from database import MemberStore
from errors import NotFoundError, ValidationError
from membership import is_expiring_soon, membership_end_date, membership_status, now_local, to_datetime
from merge import merge_update
from normalizer import normalize_fields
from photos import PhotoStorage
from schemas import Members

logger = logging.getLogger(__name__)

CREATE_IGNORED = ('_id', 'id', 'createdAt', 'membershipEndDate', 'membershipStatus')


def serialize_member(doc: Mapping[str, Any], now: Optional[datetime] = None) -> Dict[str, Any]:
    d = dict(doc)
    if '_id' in d:
        d['id'] = str(d.pop('_id'))
    d['membershipStatus'] = membership_status(d.get('membershipEndDate'), now)
    return d


def _describe(exc: PydanticValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = '.'.join(str(p) for p in err.get('loc', ()))
        parts.append(f"{loc}: {err.get('msg')}" if loc else err.get('msg', ''))
    return '; '.join(parts)


class MemberService:
    """Create, read, update and delete member records."""

    def __init__(
        self,
        store: MemberStore,
        photos: PhotoStorage,
        settings: Settings,
        clock: Callable[[], datetime] = now_local,
    ):
        self.store = store
        self.photos = photos
        self.settings = settings
        self.clock = clock

    def _validate(self, doc: Mapping[str, Any], action: str) -> Dict[str, Any]:
        try:
            model = Members.model_validate(doc, context={'allowed_durations': self.settings.allowed_durations})
        except PydanticValidationError as exc:
            raise ValidationError(
                f"Error {action} member: {_describe(exc)}",
                exc.errors(include_url=False, include_context=False, include_input=False),
            )
        return model.model_dump()

    def _release(self, reference: Optional[str]) -> None:
        if reference and self.settings.releases_photos:
            self.photos.release(reference)

    def list_members(self) -> List[Dict[str, Any]]:
        now = self.clock()
        return [serialize_member(m, now) for m in self.store.find_all()]

    def get_member(self, member_id: str) -> Dict[str, Any]:
        doc = self.store.find_by_id(member_id)
        if not doc:
            raise NotFoundError()
        return serialize_member(doc, self.clock())

    def create_member(self, fields: Mapping[str, Any], photo: Optional[str] = None) -> Dict[str, Any]:
        now = self.clock()
        data = {k: v for k, v in normalize_fields(fields).items() if k not in CREATE_IGNORED}

        if photo:
            data['photo'] = photo
        data['previousWeights'] = data.get('previousWeights') or []
        data['bodyMeasurements'] = data.get('bodyMeasurements') or {}

        start = data.get('membershipStartDate')
        start = to_datetime(start, 'membershipStartDate') if start is not None else now
        data['membershipStartDate'] = start
        if data.get('membershipDuration') is not None:
            data['membershipEndDate'] = membership_end_date(start, data['membershipDuration'])
        data['createdAt'] = now

        doc = self._validate(data, 'creating')
        saved = self.store.insert(doc)
        logger.info("created member %s", saved['_id'])
        return serialize_member(saved, now)

    def update_member(self, member_id: str, fields: Mapping[str, Any], photo: Optional[str] = None) -> Dict[str, Any]:
        existing = self.store.find_by_id(member_id)
        if not existing:
            raise NotFoundError()

        now = self.clock()
        merged = merge_update(normalize_fields(fields), existing, photo=photo, now=now)
        doc = self._validate(merged.fields, 'updating')

        updated = self.store.replace(member_id, doc)
        if not updated:
            raise NotFoundError()
        logger.info("updated member %s", member_id)

        self._release(merged.replaced_photo)
        return serialize_member(updated, now)

    def delete_member(self, member_id: str) -> Dict[str, str]:
        deleted = self.store.delete(member_id)
        if not deleted:
            raise NotFoundError()
        logger.info("deleted member %s", member_id)
        self._release(deleted.get('photo'))
        return {'message': 'Member deleted successfully'}

    def dashboard_stats(self) -> Dict[str, Any]:
        now = self.clock()
        stats = {
            'totalMembers': 0,
            'activeMembers': 0,
            'expiredMembers': 0,
            'unknownMembers': 0,
            'expiringSoon': 0,
            'totalPaidFees': 0.0,
            'totalPendingFees': 0.0,
            'membersWithPendingFees': 0,
        }
        for m in self.store.find_all():
            stats['totalMembers'] += 1
            end = m.get('membershipEndDate')
            status = membership_status(end, now)
            if status == 'Active':
                stats['activeMembers'] += 1
                if is_expiring_soon(end, self.settings.expiring_soon_days, now):
                    stats['expiringSoon'] += 1
            elif status == 'Expired':
                stats['expiredMembers'] += 1
            else:
                stats['unknownMembers'] += 1
            stats['totalPaidFees'] += float(m.get('paidFee') or 0)
            pending = float(m.get('pendingFee') or 0)
            stats['totalPendingFees'] += pending
            if pending > 0:
                stats['membersWithPendingFees'] += 1
        return stats
