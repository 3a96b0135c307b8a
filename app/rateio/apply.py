import hashlib
import json
import logging
from dataclasses import dataclass, field

from django.db import DatabaseError, transaction
from django.utils import timezone

from rateio.diff import ABSENT_FROM_SOURCE, CREATE, UPDATE
from rateio.errors import SyncError
from rateio.models import RateioClaro, SyncLog

logger = logging.getLogger(__name__)

INACTIVATE = 'INACTIVATE'
KEEP_ACTIVE = 'KEEP_ACTIVE'


@dataclass
class Selection:
    """Line numbers the operator approved, per diff type, plus lines to keep as-is."""
    criar: set = field(default_factory=set)
    atualizar: set = field(default_factory=set)
    ausentes: set = field(default_factory=set)
    manter: set = field(default_factory=set)

    @classmethod
    def from_payload(cls, payload):
        """None when the caller sent no selection (apply everything)."""
        if payload is None:
            return None
        if not isinstance(payload, dict):
            raise SyncError('Invalid selection', status=400)

        buckets = {}
        for name in ('criar', 'atualizar', 'ausentes', 'manter'):
            values = payload.get(name)
            if values is None:
                values = []
            if not isinstance(values, list):
                raise SyncError(f'Invalid selection.{name}', status=400)
            buckets[name] = {str(value) for value in values}
        return cls(**buckets)

    def applied_numeros(self):
        return self.criar | self.atualizar | self.ausentes

    def conflicts(self):
        return sorted(self.manter & self.applied_numeros())

    def includes(self, diff):
        bucket = {
            CREATE: self.criar,
            UPDATE: self.atualizar,
            ABSENT_FROM_SOURCE: self.ausentes,
        }[diff.tipo]
        return diff.numero_da_linha in bucket

    def to_dict(self):
        return {
            'criar': sorted(self.criar),
            'atualizar': sorted(self.atualizar),
            'ausentes': sorted(self.ausentes),
            'manter': sorted(self.manter),
        }


def select_diffs(diffs, selection):
    if selection is None:
        return list(diffs)
    return [diff for diff in diffs if selection.includes(diff)]


def parse_on_missing(options):
    if isinstance(options, dict) and options.get('onMissingInSheet') == KEEP_ACTIVE:
        return KEEP_ACTIVE
    return INACTIVATE


def build_batches(selected, user_id, on_missing):
    """
    Split approved diffs into insert / update / inactivate batches.
    Updates always re-activate; absent lines are only inactivated
    when on_missing is INACTIVATE.
    """
    now = timezone.now()

    inserts = [
        {
            'nome': diff.source['nome'] if diff.source else '',
            'numero_linha': diff.numero_da_linha,
            'user_id': user_id,
            'status': RateioClaro.STATUS_ACTIVE,
            'created_at': now,
            'updated_at': now,
        }
        for diff in selected if diff.tipo == CREATE
    ]

    updates = [
        {
            'id': diff.hub_id,
            'nome': diff.source['nome'] if diff.source else '',
            'status': RateioClaro.STATUS_ACTIVE,
            'updated_at': now,
        }
        for diff in selected if diff.tipo == UPDATE and diff.hub_id
    ]

    inactivations = []
    if on_missing == INACTIVATE:
        inactivations = [
            {'id': diff.hub_id}
            for diff in selected if diff.tipo == ABSENT_FROM_SOURCE and diff.hub_id
        ]

    return inserts, updates, inactivations


def apply_batches(inserts, updates, inactivations):
    """
    Write all three batches in one transaction; any failure rolls back
    the whole apply. Returns exact row counts.
    """
    with transaction.atomic():
        target_ids = [row['id'] for row in updates] + [row['id'] for row in inactivations]
        if target_ids:
            # Row locks serialize concurrent applies touching the same lines
            list(
                RateioClaro.objects.select_for_update()
                .filter(id__in=target_ids)
                .order_by('id')
                .values_list('id', flat=True)
            )

        created = RateioClaro.objects.bulk_create([RateioClaro(**row) for row in inserts])

        updated = 0
        for row in updates:
            updated += RateioClaro.objects.filter(id=row['id']).update(
                nome=row['nome'],
                status=row['status'],
                updated_at=row['updated_at'],
            )

        inactivated = 0
        if inactivations:
            inactivated = RateioClaro.objects.filter(
                id__in=[row['id'] for row in inactivations]
            ).update(status=RateioClaro.STATUS_INACTIVE, updated_at=timezone.now())

    return {'inserted': len(created), 'updated': updated, 'inactivated': inactivated}


def hash_planilha(planilha_rows):
    """SHA256 of the canonical sheet rows, for the audit trail."""
    canonical_json = json.dumps(
        [row.to_dict() for row in planilha_rows],
        separators=(',', ':'),
        ensure_ascii=False,
    )
    return hashlib.sha256(canonical_json.encode('utf-8')).hexdigest()


def write_sync_log(user_id, counts, options, checksum, payload):
    try:
        SyncLog.objects.create(
            user_id=user_id,
            inserted=counts['inserted'],
            updated=counts['updated'],
            inactivated=counts['inactivated'],
            options=options,
            checksum_planilha=checksum,
            payload=payload,
        )
    except DatabaseError as e:
        # Hub writes are already committed at this point
        logger.error('Failed to write sync log: %s', e)
