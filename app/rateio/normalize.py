import math
import re
import unicodedata
from dataclasses import dataclass, field
from numbers import Number

_COMBINING_RE = re.compile(r'[\u0300-\u036f]')
_WS_RE = re.compile(r'\s+')
_NON_DIGIT_RE = re.compile(r'[^0-9]')
_LEADING_ZEROS_RE = re.compile(r'^0+(?=[0-9])')
_DIGITS_RE = re.compile(r'^[0-9]+$')

NUMERO_FIELDS = ('numero_da_linha', 'numero_linha', 'numero', 'linha')
NOME_FIELDS = ('nome', 'nome_completo', 'name', 'full_name')


@dataclass(frozen=True)
class NumeroResult:
    ok: bool
    numero: str


INVALID_NUMERO = NumeroResult(ok=False, numero='')


def strip_accents(value):
    return _COMBINING_RE.sub('', unicodedata.normalize('NFD', value))


def normalize_name(value):
    """
    Comparison form of a person's name:
    lowercase, accents stripped, whitespace collapsed and trimmed.
    Never stored; two names are the same iff these forms are equal.
    """
    if not value:
        return ''
    normalized = strip_accents(str(value).lower())
    return _WS_RE.sub(' ', normalized).strip()


def _normalize_digits(digits):
    normalized = _LEADING_ZEROS_RE.sub('', digits)
    # Drop the Brazilian country code when what remains is a local number
    if normalized.startswith('55') and len(normalized) > 11:
        local = normalized[2:]
        if 10 <= len(local) <= 11:
            normalized = _LEADING_ZEROS_RE.sub('', local)
    if not normalized or normalized == '0':
        return ''
    return normalized


def _finite_int(text):
    try:
        number = float(text)
    except ValueError:
        return None
    if not math.isfinite(number):
        return None
    return math.trunc(number)


def _parse_numeric_text(compact):
    """
    Recover an integer from spreadsheet-mangled numbers: scientific
    notation, locale-formatted thousands/decimals, or a long digit string
    coerced into a decimal. Returns None when the text is not one of those.
    """
    candidate = compact

    if 'e' in candidate.lower():
        if ',' in candidate and '.' not in candidate:
            candidate = candidate.replace(',', '.')
        parsed = _finite_int(candidate)
        if parsed is not None:
            return parsed

    if '.' in candidate and ',' in candidate:
        # Whichever separator comes last is the decimal one
        if candidate.rfind(',') > candidate.rfind('.'):
            candidate = candidate.replace('.', '').replace(',', '.')
        else:
            candidate = candidate.replace(',', '')
        parsed = _finite_int(candidate)
        if parsed is not None:
            return parsed

    if ',' in candidate or '.' in candidate:
        sep = ',' if ',' in candidate else '.'
        parts = candidate.split(sep)
        if len(parts) == 2 and _DIGITS_RE.match(parts[0]) and _DIGITS_RE.match(parts[1]):
            return _finite_int(f'{parts[0]}.{parts[1]}')

    return None


def normalize_numero(value):
    """
    Canonical digits of a phone line number, or ok=False.

    Accepts ints, floats and strings with formatting noise. Leading zeros
    and a '55' country code are removed; '' and '0' are invalid.
    """
    if value is None:
        return INVALID_NUMERO

    if isinstance(value, Number) and not isinstance(value, bool):
        try:
            number = float(value)
        except (TypeError, ValueError, OverflowError):
            return INVALID_NUMERO
        if not math.isfinite(number):
            return INVALID_NUMERO
        int_value = math.trunc(number)
        if int_value <= 0:
            return INVALID_NUMERO
        normalized = _normalize_digits(str(int_value))
        return NumeroResult(True, normalized) if normalized else INVALID_NUMERO

    raw = str(value).strip()
    if not raw:
        return INVALID_NUMERO
    compact = _WS_RE.sub('', raw)

    parsed = _parse_numeric_text(compact)
    if parsed is not None and parsed > 0:
        normalized = _normalize_digits(str(parsed))
        return NumeroResult(True, normalized) if normalized else INVALID_NUMERO

    digits = _NON_DIGIT_RE.sub('', compact)
    if not digits:
        return INVALID_NUMERO
    normalized = _normalize_digits(digits)
    return NumeroResult(True, normalized) if normalized else INVALID_NUMERO


# ============================================================
# SHEET HEADERS
# ============================================================

def normalize_header(value):
    normalized = strip_accents(value.lower())
    normalized = re.sub(r'[^a-z0-9]+', ' ', normalized)
    return _WS_RE.sub(' ', normalized).strip()


# Ordered: first matching predicate decides the field
HEADER_PATTERNS = [
    (lambda h: 'nome completo' in h or h == 'nome' or 'nomecompleto' in h, 'nome'),
    (lambda h: 'numero' in h and 'linha' in h, 'numero_da_linha'),
    (lambda h: 'numero_da_linha' in h, 'numero_da_linha'),
]

POSITIONAL_FIELDS = ('nome', 'numero_da_linha')


def map_header(value):
    """Sheet header cell -> 'nome' | 'numero_da_linha' | None"""
    normalized = normalize_header(value)
    for predicate, field_name in HEADER_PATTERNS:
        if predicate(normalized):
            return field_name
    return None


# ============================================================
# ROW VALIDATION
# ============================================================

@dataclass
class PlanilhaRow:
    numero_da_linha: str
    nome: str
    line: int

    def to_dict(self):
        return {'numero_da_linha': self.numero_da_linha, 'nome': self.nome, 'line': self.line}


@dataclass
class InvalidRow:
    line: int
    value: object

    def to_dict(self):
        return {'line': self.line, 'value': self.value}


@dataclass
class PlanilhaBatch:
    rows: list = field(default_factory=list)
    duplicates: list = field(default_factory=list)
    invalid_rows: list = field(default_factory=list)
    empty_names: list = field(default_factory=list)

    @property
    def is_valid(self):
        return not self.duplicates and not self.invalid_rows

    def error_details(self):
        return {
            'duplicates': self.duplicates,
            'invalidRows': [row.to_dict() for row in self.invalid_rows],
            'emptyNames': self.empty_names,
        }

    def rows_by_numero(self):
        return {row.numero_da_linha: row for row in self.rows}


def _first_present(record, keys):
    for key in keys:
        value = record.get(key)
        if value is not None:
            return value
    return None


def classify_row(raw, index):
    """
    Validate one raw row (arbitrary JSON / sheet record).
    Returns PlanilhaRow or InvalidRow, never raises.
    """
    if not isinstance(raw, dict):
        return InvalidRow(line=index + 1, value=raw)

    line = raw.get('_line')
    if not isinstance(line, int) or isinstance(line, bool):
        line = index + 1

    numero_raw = _first_present(raw, NUMERO_FIELDS)
    parsed = normalize_numero(numero_raw)
    if not parsed.ok:
        return InvalidRow(line=line, value=numero_raw)

    nome_raw = _first_present(raw, NOME_FIELDS)
    nome = '' if nome_raw is None else str(nome_raw).strip()
    return PlanilhaRow(numero_da_linha=parsed.numero, nome=nome, line=line)


def build_planilha_rows(raw_rows):
    """
    Validate a whole sheet. Problems are collected, not raised:
    - invalid_rows: key could not be parsed (row dropped)
    - duplicates: every line sharing a key; only the first is kept
    - empty_names: warning only, row kept
    Callers must reject the batch when batch.is_valid is False.
    """
    batch = PlanilhaBatch()
    seen = {}

    for index, raw in enumerate(raw_rows):
        result = classify_row(raw, index)
        if isinstance(result, InvalidRow):
            batch.invalid_rows.append(result)
            continue

        lines = seen.setdefault(result.numero_da_linha, [])
        lines.append(result.line)
        if len(lines) > 1:
            continue

        if not result.nome:
            batch.empty_names.append({'line': result.line, 'numero_da_linha': result.numero_da_linha})
        batch.rows.append(result)

    batch.duplicates = [
        {'numero': numero, 'lines': lines}
        for numero, lines in seen.items()
        if len(lines) > 1
    ]
    return batch
