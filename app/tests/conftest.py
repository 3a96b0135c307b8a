import uuid
from unittest.mock import patch

import pytest
from django.test import Client

from accounts.models import UserProfile
from rateio.models import RateioClaro

SYNC_URL = '/functions/v1/rateio-claro-sync'


@pytest.fixture(autouse=True)
def sync_settings(settings):
    settings.SUPABASE_URL = 'https://hub.supabase.test'
    settings.SUPABASE_SERVICE_ROLE_KEY = 'service-role-key'
    settings.RATEIO_CLARO_SHEET_ID = ''
    settings.RATEIO_CLARO_SHEET_RANGE = ''
    settings.GOOGLE_SHEETS_API_KEY = ''
    settings.GOOGLE_SHEETS_CLIENT_EMAIL = ''
    settings.GOOGLE_SHEETS_PRIVATE_KEY = ''
    return settings


@pytest.fixture
def auth_uid():
    return str(uuid.uuid4())


@pytest.fixture
def profile(db, auth_uid):
    return UserProfile.objects.create(
        auth_uid=auth_uid,
        nome='Fernanda Lima',
        email='fernanda@example.com',
        role='Financeiro',
        modules=['rateio_claro', 'contas_a_pagar'],
        is_active=True,
    )


@pytest.fixture
def signed_in(auth_uid):
    """Session validation accepts any token and resolves it to auth_uid."""
    with patch('accounts.auth.fetch_auth_user', return_value={'id': auth_uid}) as mocked:
        yield mocked


@pytest.fixture
def api(profile, signed_in):
    client = Client()

    def post(action=None, body=None, path_suffix=None, token='session-token'):
        url = SYNC_URL
        if path_suffix:
            url = f'{SYNC_URL}/{path_suffix}'
        elif action:
            url = f'{SYNC_URL}/{action}'
        headers = {'HTTP_AUTHORIZATION': f'Bearer {token}'} if token else {}
        return client.post(url, data=body or {}, content_type='application/json', **headers)

    return post


@pytest.fixture
def make_hub_row(db):
    def make(numero_linha, nome, status='active'):
        return RateioClaro.objects.create(nome=nome, numero_linha=numero_linha, status=status)
    return make
