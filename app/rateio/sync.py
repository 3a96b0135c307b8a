"""
Rateio Claro sync: reconcile the Claro lines spreadsheet against the hub.

Flow per call (no state survives between calls):
    source rows -> validation -> hub read -> diff
        preview: hide overridden diffs, return diffs + summary + warnings
        apply:   overrides upsert/delete -> transactional write -> audit log
"""

import logging
from dataclasses import dataclass

from django.conf import settings
from django.db import DatabaseError

from rateio.apply import (
    KEEP_ACTIVE, Selection, apply_batches, build_batches, hash_planilha,
    parse_on_missing, select_diffs, write_sync_log,
)
from rateio.diff import ABSENT_FROM_SOURCE, build_summary, compute_diffs
from rateio.errors import SyncError
from rateio.hub import load_hub_rows
from rateio.normalize import POSITIONAL_FIELDS, build_planilha_rows, map_header
from rateio.overrides import filter_overridden, forget_overrides, load_overrides, remember_overrides
from sheets.client import SheetsConfigError, SheetsFetchError, fetch_sheet_values
from sheets.rows import rows_from_values

logger = logging.getLogger(__name__)

MODULE_KEY = 'rateio_claro'
ALLOWED_ROLES = ('admin', 'financeiro')
DIFFS_SAMPLE_SIZE = 25


@dataclass
class SyncState:
    batch: object
    hub_rows: list
    status_supported: bool
    diffs: list
    summary: dict

    @property
    def planilha_by_numero(self):
        return self.batch.rows_by_numero()


def resolve_planilha_rows(body_rows):
    """
    Raw rows to reconcile, and whether they came from the spreadsheet.
    A list in the request body replaces the spreadsheet entirely.
    """
    if isinstance(body_rows, list):
        return body_rows, False

    sheet_id = (settings.RATEIO_CLARO_SHEET_ID or '').strip()
    sheet_range = (settings.RATEIO_CLARO_SHEET_RANGE or '').strip()
    if not sheet_id or not sheet_range:
        logger.error('Missing sheet settings: has_sheet_id=%s has_sheet_range=%s',
                     bool(sheet_id), bool(sheet_range))
        raise SyncError('Missing RATEIO_CLARO_SHEET_ID/RATEIO_CLARO_SHEET_RANGE', status=400)

    try:
        values = fetch_sheet_values(sheet_id, sheet_range)
    except (SheetsConfigError, SheetsFetchError) as e:
        logger.error('Failed to load planilha: %s', e)
        raise SyncError(str(e) or 'Failed to load planilha', status=400)

    return rows_from_values(values, sheet_range, map_header, POSITIONAL_FIELDS), True


def prepare_sync(body_rows=None):
    raw_rows, from_sheet = resolve_planilha_rows(body_rows)

    batch = build_planilha_rows(raw_rows)
    if not batch.is_valid:
        raise SyncError('Invalid planilhaRows', status=400, details=batch.error_details())

    if from_sheet and not batch.rows:
        logger.error('Planilha vazia')
        raise SyncError('Planilha vazia', status=400)

    hub_rows, status_supported = load_hub_rows()
    diffs, summary = compute_diffs(batch.rows, hub_rows)
    return SyncState(
        batch=batch,
        hub_rows=hub_rows,
        status_supported=status_supported,
        diffs=diffs,
        summary=summary,
    )


def run_preview(state):
    overrides = load_overrides([diff.numero_da_linha for diff in state.diffs])
    visible = filter_overridden(state.diffs, overrides, state.planilha_by_numero)
    return {
        'diffs': [diff.to_dict() for diff in visible],
        'summary': build_summary(visible),
        'warnings': {'nomesVazios': state.batch.empty_names},
    }


def _zero_counts():
    return {'inserted': 0, 'updated': 0, 'inactivated': 0}


def run_apply(state, user_id, selection_payload=None, options=None):
    selection = Selection.from_payload(selection_payload)
    selected = select_diffs(state.diffs, selection)
    manter = selection.manter if selection else set()

    if selection is not None:
        conflicts = selection.conflicts()
        if conflicts:
            raise SyncError('Selection conflict', status=400, details={'conflicts': conflicts})
        if not selected and not manter:
            raise SyncError('Nenhuma linha selecionada para aplicar.', status=400)

    keep_only = bool(manter) and not selected
    if not state.status_supported and not keep_only:
        raise SyncError(
            'Migration required: coluna status ausente em rateio_claro. Rode a migration de sync.',
            status=400,
        )

    planilha_by_numero = state.planilha_by_numero
    if manter:
        remember_overrides(manter, planilha_by_numero, user_id)
    if selection is not None:
        forget_overrides(selection.applied_numeros())

    checksum = hash_planilha(state.batch.rows)
    diffs_sample = [diff.to_dict() for diff in state.diffs[:DIFFS_SAMPLE_SIZE]]

    if keep_only:
        write_sync_log(
            user_id,
            _zero_counts(),
            options={'onMissingInSheet': KEEP_ACTIVE, 'selection': selection.to_dict()},
            checksum=checksum,
            payload={
                'summary': state.summary,
                'diffs_sample': diffs_sample,
                'selection': selection.to_dict(),
            },
        )
        return {**_zero_counts(), 'keptActive': 0, 'total': 0}

    on_missing = parse_on_missing(options)
    inserts, updates, inactivations = build_batches(selected, user_id, on_missing)

    try:
        result = apply_batches(inserts, updates, inactivations)
    except DatabaseError as e:
        logger.error('Apply sync error: %s', e)
        raise SyncError('Failed to apply sync', status=500)

    counts = {
        'inserted': result.get('inserted', len(inserts)),
        'updated': result.get('updated', len(updates)),
        'inactivated': result.get('inactivated', len(inactivations)),
    }
    kept_active = 0
    if on_missing == KEEP_ACTIVE:
        kept_active = sum(1 for diff in selected if diff.tipo == ABSENT_FROM_SOURCE)
    total = counts['inserted'] + counts['updated'] + counts['inactivated'] + kept_active

    write_sync_log(
        user_id,
        counts,
        options={'onMissingInSheet': on_missing},
        checksum=checksum,
        payload={'summary': state.summary, 'diffs_sample': diffs_sample},
    )
    logger.info(
        'Sync applied: %s inserted, %s updated, %s inactivated, %s kept active',
        counts['inserted'], counts['updated'], counts['inactivated'], kept_active,
    )

    return {**counts, 'keptActive': kept_active, 'total': total}
