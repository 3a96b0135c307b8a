from dataclasses import dataclass
from typing import Optional

from rateio.normalize import normalize_name, normalize_numero

CREATE = 'CREATE'
UPDATE = 'UPDATE'
ABSENT_FROM_SOURCE = 'ABSENT_FROM_SOURCE'

SUMMARY_KEYS = {
    CREATE: 'criar',
    UPDATE: 'atualizar',
    ABSENT_FROM_SOURCE: 'ausentes',
}


@dataclass
class DiffItem:
    numero_da_linha: str
    tipo: str
    source: Optional[dict]
    hub: Optional[dict]

    @property
    def hub_id(self):
        return self.hub['id'] if self.hub else None

    def to_dict(self):
        return {
            'numero_da_linha': self.numero_da_linha,
            'tipo': self.tipo,
            'source': self.source,
            'hub': self.hub,
        }


def _hub_ref(hub_row):
    return {
        'id': str(hub_row['id']),
        'nome': hub_row.get('nome') or '',
        'status': hub_row.get('status'),
    }


def build_summary(diffs):
    summary = {'criar': 0, 'atualizar': 0, 'ausentes': 0}
    for item in diffs:
        summary[SUMMARY_KEYS[item.tipo]] += 1
    return summary


def index_hub_rows(hub_rows):
    """
    Key hub rows by normalized line number.
    Rows with unparseable numbers are skipped; on duplicate keys the first
    row wins (the hub is trusted to be consistent).
    """
    hub_by_numero = {}
    for row in hub_rows:
        parsed = normalize_numero(row.get('numero_linha'))
        if not parsed.ok:
            continue
        hub_by_numero.setdefault(parsed.numero, row)
    return hub_by_numero


def compute_diffs(planilha_rows, hub_rows):
    """
    Classify every line number present in the sheet or the hub:
    - CREATE: in the sheet, not in the hub
    - UPDATE: in both, and the names differ or the hub row is inactive
    - ABSENT_FROM_SOURCE: in the hub, not in the sheet
    Lines present in both with the same name and an active row produce no diff.

    planilha_rows must already be free of duplicate keys.
    Returns (diffs, summary).
    """
    hub_by_numero = index_hub_rows(hub_rows)
    planilha_by_numero = {row.numero_da_linha: row for row in planilha_rows}

    diffs = []

    for row in planilha_rows:
        hub = hub_by_numero.get(row.numero_da_linha)
        if hub is None:
            diffs.append(DiffItem(
                numero_da_linha=row.numero_da_linha,
                tipo=CREATE,
                source={'nome': row.nome},
                hub=None,
            ))
            continue

        # Reactivation is an update even when the names already agree
        needs_update = (
            normalize_name(row.nome) != normalize_name(hub.get('nome'))
            or hub.get('status') == 'inactive'
        )
        if needs_update:
            diffs.append(DiffItem(
                numero_da_linha=row.numero_da_linha,
                tipo=UPDATE,
                source={'nome': row.nome},
                hub=_hub_ref(hub),
            ))

    for numero, hub in hub_by_numero.items():
        if numero not in planilha_by_numero:
            diffs.append(DiffItem(
                numero_da_linha=numero,
                tipo=ABSENT_FROM_SOURCE,
                source=None,
                hub=_hub_ref(hub),
            ))

    return diffs, build_summary(diffs)
