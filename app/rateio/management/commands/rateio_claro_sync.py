import csv
import uuid

from django.core.management.base import BaseCommand, CommandError

from rateio.apply import INACTIVATE, KEEP_ACTIVE
from rateio.errors import SyncError
from rateio.normalize import POSITIONAL_FIELDS, map_header
from rateio.sync import prepare_sync, run_apply, run_preview
from sheets.rows import rows_from_values

# A CSV export starts at the first row of the sheet
CSV_RANGE = 'A1:B'


class Command(BaseCommand):
    help = 'Preview (and optionally apply) the Rateio Claro spreadsheet sync against the hub'

    def add_arguments(self, parser):
        parser.add_argument('--csv', type=str, help='Read rows from a local CSV instead of the spreadsheet')
        parser.add_argument('--apply', action='store_true', help='Apply every diff after previewing')
        parser.add_argument('--user', type=str, help='Auth uid recorded as owner/author (required with --apply)')
        parser.add_argument('--keep-active', action='store_true',
                            help='Keep lines missing from the sheet active instead of inactivating them')

    def handle(self, *args, **options):
        if options['apply']:
            try:
                user_id = str(uuid.UUID(options['user'] or ''))
            except ValueError:
                raise CommandError('--apply requires --user <auth uid>')

        body_rows = None
        if options['csv']:
            body_rows = self.read_csv(options['csv'])
            if not body_rows:
                raise CommandError(f"No rows found in {options['csv']}")

        try:
            state = prepare_sync(body_rows)
        except SyncError as e:
            raise CommandError(self.describe_error(e))

        preview = run_preview(state)
        summary = preview['summary']
        self.stdout.write(self.style.WARNING('=== Rateio Claro Preview ==='))
        for diff in preview['diffs']:
            nome = (diff['source'] or diff['hub'] or {}).get('nome', '')
            self.stdout.write(f"  {diff['tipo']:<18} {diff['numero_da_linha']:<14} {nome}")
        for warning in preview['warnings']['nomesVazios']:
            self.stdout.write(self.style.WARNING(
                f"  Line {warning['line']}: empty name for {warning['numero_da_linha']}"
            ))
        self.stdout.write(self.style.SUCCESS(
            f"  Criar: {summary['criar']}, Atualizar: {summary['atualizar']}, Ausentes: {summary['ausentes']}"
        ))

        if not options['apply']:
            return

        on_missing = KEEP_ACTIVE if options['keep_active'] else INACTIVATE
        try:
            result = run_apply(state, user_id, options={'onMissingInSheet': on_missing})
        except SyncError as e:
            raise CommandError(self.describe_error(e))

        self.stdout.write(self.style.SUCCESS(
            f"Applied: {result['inserted']} inserted, {result['updated']} updated, "
            f"{result['inactivated']} inactivated, {result['keptActive']} kept active"
        ))

    def read_csv(self, file_path):
        """Rows keyed like the spreadsheet, with or without a header row."""
        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                reader = csv.reader(f)
                values = list(reader)
        except FileNotFoundError:
            raise CommandError(f'File not found: {file_path}')
        except (OSError, UnicodeDecodeError) as e:
            raise CommandError(f'Error reading CSV: {e}')

        return rows_from_values(values, CSV_RANGE, map_header, POSITIONAL_FIELDS)

    def describe_error(self, error):
        if not error.details:
            return error.message
        return f'{error.message}: {error.details}'
