"""
Operator overrides: "I already reconciled this line, stop flagging it".

An override pins a line number to the hash of what the sheet said about
it when it was dismissed. Preview hides the diff only while the live hash
still matches, so any later edit to that line in the sheet brings the
diff back. Stale overrides are left in place; they just stop matching.

Override storage is best-effort: read/write failures are logged and the
sync carries on without them.
"""

import logging

from django.db import DatabaseError, transaction
from django.utils import timezone

from rateio.models import SyncOverride
from rateio.normalize import normalize_name

logger = logging.getLogger(__name__)

ABSENT_HASH = 'ABSENT'


def planilha_hash(numero, planilha_by_numero):
    row = planilha_by_numero.get(numero)
    if row is None:
        return ABSENT_HASH
    return f'PRESENT:{normalize_name(row.nome)}'


def load_overrides(numeros):
    if not numeros:
        return {}
    try:
        rows = SyncOverride.objects.filter(numero_linha__in=list(numeros)).values_list(
            'numero_linha', 'planilha_hash'
        )
        return {numero: stored for numero, stored in rows if numero and stored}
    except DatabaseError as e:
        logger.error('Failed to load overrides: %s', e)
        return {}


def filter_overridden(diffs, overrides, planilha_by_numero):
    """Drop diffs whose stored override still matches the live sheet content."""
    if not overrides:
        return diffs
    return [
        diff for diff in diffs
        if overrides.get(diff.numero_da_linha) != planilha_hash(diff.numero_da_linha, planilha_by_numero)
    ]


def remember_overrides(numeros, planilha_by_numero, user_id):
    """Upsert an override for each kept line, pinned to its current sheet hash."""
    now = timezone.now()
    try:
        with transaction.atomic():
            for numero in sorted(numeros):
                SyncOverride.objects.update_or_create(
                    numero_linha=numero,
                    defaults={
                        'planilha_hash': planilha_hash(numero, planilha_by_numero),
                        'updated_at': now,
                        'user_id': user_id,
                    }
                )
    except DatabaseError as e:
        logger.error('Failed to upsert overrides: %s', e)


def forget_overrides(numeros):
    """Applying a line supersedes any earlier dismissal of it."""
    if not numeros:
        return
    try:
        SyncOverride.objects.filter(numero_linha__in=list(numeros)).delete()
    except DatabaseError as e:
        logger.error('Failed to clear overrides: %s', e)
