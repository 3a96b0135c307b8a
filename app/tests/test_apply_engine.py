import uuid
from unittest.mock import patch

import pytest
from django.db import DatabaseError
from django.db.models.query import QuerySet

from rateio.apply import Selection, apply_batches, hash_planilha
from rateio.errors import SyncError
from rateio.models import RateioClaro, SyncLog, SyncOverride
from rateio.sync import prepare_sync, run_apply


@pytest.fixture
def user_id():
    return str(uuid.uuid4())


@pytest.fixture
def hub_lines(make_hub_row):
    return {
        'renamed': make_hub_row('85911110000', 'Bruno Costa'),
        'inactive': make_hub_row('85922220000', 'Carla Dias', status='inactive'),
        'absent': make_hub_row('85933330000', 'Diego Reis'),
        'untouched': make_hub_row('85944440000', 'Elisa Melo'),
    }


SHEET = [
    {'numero': '85900000000', 'nome': 'Ana Silva'},
    {'numero': '85911110000', 'nome': 'Bruno Costa Neto'},
    {'numero': '85922220000', 'nome': 'Carla Dias'},
    {'numero': '85944440000', 'nome': 'Elisa Melo'},
]


class TestSelection:
    """Test parsing of the caller's selection."""

    def test_missing_selection_means_everything(self):
        assert Selection.from_payload(None) is None

    def test_missing_buckets_are_empty(self):
        selection = Selection.from_payload({'criar': ['85900000000', 85911110000]})
        assert selection.criar == {'85900000000', '85911110000'}
        assert selection.atualizar == set()
        assert selection.manter == set()

    def test_invalid_bucket_rejected(self):
        with pytest.raises(SyncError) as excinfo:
            Selection.from_payload({'criar': '85900000000'})
        assert excinfo.value.status == 400

    def test_conflicts(self):
        selection = Selection.from_payload({'atualizar': ['2', '1'], 'manter': ['1', '2', '3']})
        assert selection.conflicts() == ['1', '2']


@pytest.mark.django_db
class TestApplyEngine:
    """Test the apply phase against the hub table."""

    def test_full_apply_mutates_all_diffs(self, hub_lines, user_id):
        """Without a selection every diff is applied."""
        state = prepare_sync(SHEET)
        result = run_apply(state, user_id)

        assert result == {'inserted': 1, 'updated': 2, 'inactivated': 1, 'keptActive': 0, 'total': 4}
        created = RateioClaro.objects.get(numero_linha='85900000000')
        assert created.nome == 'Ana Silva'
        assert created.status == 'active'
        assert str(created.user_id) == user_id
        hub_lines['renamed'].refresh_from_db()
        assert hub_lines['renamed'].nome == 'Bruno Costa Neto'
        hub_lines['absent'].refresh_from_db()
        assert hub_lines['absent'].status == 'inactive'

    def test_update_reactivates_inactive_row(self, hub_lines, user_id):
        """An UPDATE for an inactive row with the same name re-activates it."""
        state = prepare_sync(SHEET)
        with patch('rateio.sync.apply_batches',
                   return_value={'inserted': 0, 'updated': 1, 'inactivated': 0}) as procedure:
            run_apply(state, user_id, selection_payload={'atualizar': ['85922220000']})

        inserts, updates, inactivations = procedure.call_args.args
        assert inserts == []
        assert inactivations == []
        assert len(updates) == 1
        assert updates[0]['id'] == str(hub_lines['inactive'].id)
        assert updates[0]['nome'] == 'Carla Dias'
        assert updates[0]['status'] == 'active'

    def test_selection_scopes_mutations(self, hub_lines, user_id):
        """Only selected lines reach the write batches."""
        state = prepare_sync(SHEET)
        with patch('rateio.sync.apply_batches',
                   return_value={'inserted': 1, 'updated': 0, 'inactivated': 0}) as procedure:
            result = run_apply(state, user_id, selection_payload={'criar': ['85900000000']})

        inserts, updates, inactivations = procedure.call_args.args
        assert [row['numero_linha'] for row in inserts] == ['85900000000']
        assert updates == []
        assert inactivations == []
        assert result['total'] == 1

    def test_selection_scoping_leaves_other_rows_untouched(self, hub_lines, user_id):
        state = prepare_sync(SHEET)
        run_apply(state, user_id, selection_payload={'ausentes': ['85933330000']})

        hub_lines['absent'].refresh_from_db()
        hub_lines['renamed'].refresh_from_db()
        hub_lines['inactive'].refresh_from_db()
        assert hub_lines['absent'].status == 'inactive'
        assert hub_lines['renamed'].nome == 'Bruno Costa'
        assert hub_lines['inactive'].status == 'inactive'
        assert not RateioClaro.objects.filter(numero_linha='85900000000').exists()

    def test_keep_active_reports_without_mutating(self, hub_lines, user_id):
        state = prepare_sync(SHEET)
        result = run_apply(
            state, user_id,
            selection_payload={'ausentes': ['85933330000']},
            options={'onMissingInSheet': 'KEEP_ACTIVE'},
        )

        assert result == {'inserted': 0, 'updated': 0, 'inactivated': 0, 'keptActive': 1, 'total': 1}
        hub_lines['absent'].refresh_from_db()
        assert hub_lines['absent'].status == 'active'

    def test_counts_fall_back_to_batch_sizes(self, hub_lines, user_id):
        """Counts missing from the write result fall back to batch lengths."""
        state = prepare_sync(SHEET)
        with patch('rateio.sync.apply_batches', return_value={'inserted': 1}):
            result = run_apply(state, user_id)
        assert result == {'inserted': 1, 'updated': 2, 'inactivated': 1, 'keptActive': 0, 'total': 4}

    def test_nothing_selected_rejected(self, hub_lines, user_id):
        state = prepare_sync(SHEET)
        with pytest.raises(SyncError) as excinfo:
            run_apply(state, user_id, selection_payload={'criar': ['85977777777']})
        assert excinfo.value.status == 400
        assert SyncLog.objects.count() == 0

    def test_keep_and_apply_same_line_rejected(self, hub_lines, user_id):
        """A line cannot be kept and applied in the same call."""
        state = prepare_sync(SHEET)
        with pytest.raises(SyncError) as excinfo:
            run_apply(state, user_id, selection_payload={
                'criar': ['85900000000'],
                'manter': ['85900000000'],
            })
        assert excinfo.value.status == 400
        assert excinfo.value.details == {'conflicts': ['85900000000']}
        assert SyncOverride.objects.count() == 0
        assert not RateioClaro.objects.filter(numero_linha='85900000000').exists()

    def test_keep_only_apply_stores_overrides_and_logs(self, hub_lines, user_id):
        state = prepare_sync(SHEET)
        result = run_apply(state, user_id, selection_payload={'manter': ['85911110000', '85933330000']})

        assert result == {'inserted': 0, 'updated': 0, 'inactivated': 0, 'keptActive': 0, 'total': 0}
        assert SyncOverride.objects.get(numero_linha='85911110000').planilha_hash == 'PRESENT:bruno costa neto'
        assert SyncOverride.objects.get(numero_linha='85933330000').planilha_hash == 'ABSENT'
        log = SyncLog.objects.get()
        assert log.options['onMissingInSheet'] == 'KEEP_ACTIVE'
        assert log.options['selection']['manter'] == ['85911110000', '85933330000']
        hub_lines['renamed'].refresh_from_db()
        assert hub_lines['renamed'].nome == 'Bruno Costa'

    def test_applying_a_line_clears_its_override(self, hub_lines, user_id):
        SyncOverride.objects.create(numero_linha='85911110000', planilha_hash='PRESENT:bruno costa neto')
        state = prepare_sync(SHEET)
        run_apply(state, user_id, selection_payload={'atualizar': ['85911110000']})
        assert not SyncOverride.objects.filter(numero_linha='85911110000').exists()

    def test_audit_log_summarizes_full_diff(self, hub_lines, user_id):
        """The log records the whole diff, not just the selection."""
        state = prepare_sync(SHEET)
        run_apply(state, user_id, selection_payload={'criar': ['85900000000']})

        log = SyncLog.objects.get()
        assert str(log.user_id) == user_id
        assert (log.inserted, log.updated, log.inactivated) == (1, 0, 0)
        assert log.options == {'onMissingInSheet': 'INACTIVATE'}
        assert log.payload['summary'] == {'criar': 1, 'atualizar': 2, 'ausentes': 1}
        assert len(log.payload['diffs_sample']) == 4
        assert log.checksum_planilha == hash_planilha(state.batch.rows)

    def test_legacy_schema_refuses_apply(self, hub_lines, user_id):
        """Without the status column nothing is written."""
        with patch('rateio.hub.hub_has_status_column', return_value=False):
            state = prepare_sync(SHEET)

        assert state.status_supported is False
        with pytest.raises(SyncError) as excinfo:
            run_apply(state, user_id)
        assert excinfo.value.status == 400
        assert 'Migration required' in excinfo.value.message
        assert not RateioClaro.objects.filter(numero_linha='85900000000').exists()
        assert SyncLog.objects.count() == 0

    def test_legacy_schema_refuses_apply_without_diffs(self, user_id):
        """An apply with nothing to change is still refused without the status column."""
        with patch('rateio.hub.hub_has_status_column', return_value=False):
            state = prepare_sync([])

        assert state.diffs == []
        with pytest.raises(SyncError) as excinfo:
            run_apply(state, user_id)
        assert excinfo.value.status == 400
        assert 'Migration required' in excinfo.value.message
        assert SyncLog.objects.count() == 0

    def test_legacy_schema_allows_keep_only_apply(self, hub_lines, user_id):
        with patch('rateio.hub.hub_has_status_column', return_value=False):
            state = prepare_sync(SHEET)

        result = run_apply(state, user_id, selection_payload={'manter': ['85933330000']})

        assert result['total'] == 0
        assert SyncOverride.objects.get(numero_linha='85933330000').planilha_hash == 'ABSENT'
        assert SyncLog.objects.count() == 1

    def test_write_failure_rolls_back_whole_batch(self, hub_lines, user_id):
        """An error mid-apply leaves no partial inserts behind."""
        state = prepare_sync(SHEET)
        with patch.object(QuerySet, 'update', side_effect=DatabaseError('boom')):
            with pytest.raises(SyncError) as excinfo:
                run_apply(state, user_id)

        assert excinfo.value.status == 500
        assert not RateioClaro.objects.filter(numero_linha='85900000000').exists()
        assert SyncLog.objects.count() == 0


@pytest.mark.django_db
class TestApplyBatches:
    """Test the transactional writer directly."""

    def test_returns_exact_row_counts(self, make_hub_row):
        existing = make_hub_row('85911110000', 'Bruno')
        result = apply_batches(
            [{'nome': 'Ana', 'numero_linha': '85900000000', 'status': 'active'}],
            [
                {'id': existing.id, 'nome': 'Bruno Costa', 'status': 'active', 'updated_at': existing.updated_at},
                {'id': uuid.uuid4(), 'nome': 'Fantasma', 'status': 'active', 'updated_at': existing.updated_at},
            ],
            [],
        )
        assert result == {'inserted': 1, 'updated': 1, 'inactivated': 0}
