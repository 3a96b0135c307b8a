"""
Google Sheets access for spreadsheet-driven syncs.

Two ways in:
- GOOGLE_SHEETS_API_KEY: plain API-key access (sheet shared by link).
- GOOGLE_SHEETS_CLIENT_EMAIL + GOOGLE_SHEETS_PRIVATE_KEY: service account;
  google-auth signs the RS256 assertion and exchanges it for a bearer
  token at the OAuth token endpoint.

With neither configured the client refuses to run instead of returning
an empty sheet.
"""

import logging
import re

from django.conf import settings
from google.auth.exceptions import GoogleAuthError
from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

logger = logging.getLogger(__name__)

SHEETS_SCOPE = 'https://www.googleapis.com/auth/spreadsheets.readonly'
TOKEN_URI = 'https://oauth2.googleapis.com/token'


class SheetsConfigError(Exception):
    """Spreadsheet access is not configured."""


class SheetsFetchError(Exception):
    """The Sheets API (or the token exchange before it) failed."""


def parse_sheet_range(sheet_range):
    """
    Split an A1 range into (sheet_name, start_row).

    'Linhas!A3:B' -> ('Linhas', 3); 'A:B' -> ('', 1)
    """
    trimmed = (sheet_range or '').strip()
    if '!' in trimmed:
        sheet_name, a1 = trimmed.split('!', 1)
        sheet_name = sheet_name.strip()
    else:
        sheet_name, a1 = '', trimmed

    start = a1.split(':')[0]
    match = re.search(r'\d+', start)
    start_row = int(match.group(0)) if match else 1
    return sheet_name, start_row


def normalize_private_key(raw):
    """PEM keys pasted into env vars often carry literal '\\n' sequences."""
    trimmed = (raw or '').strip()
    if not trimmed:
        return ''
    return trimmed.replace('\\n', '\n') if '\\n' in trimmed else trimmed


def build_service_account_credentials(client_email, private_key):
    info = {
        'type': 'service_account',
        'client_email': client_email,
        'private_key': private_key,
        'token_uri': TOKEN_URI,
    }
    try:
        return service_account.Credentials.from_service_account_info(info, scopes=[SHEETS_SCOPE])
    except (ValueError, GoogleAuthError) as e:
        raise SheetsConfigError(f'Invalid Google service account credentials: {e}')


def build_sheets_service():
    api_key = (settings.GOOGLE_SHEETS_API_KEY or '').strip()
    if api_key:
        return build('sheets', 'v4', developerKey=api_key, cache_discovery=False)

    client_email = (settings.GOOGLE_SHEETS_CLIENT_EMAIL or '').strip()
    private_key = normalize_private_key(settings.GOOGLE_SHEETS_PRIVATE_KEY)
    if not client_email or not private_key:
        raise SheetsConfigError(
            'Missing GOOGLE_SHEETS_CLIENT_EMAIL/GOOGLE_SHEETS_PRIVATE_KEY or GOOGLE_SHEETS_API_KEY'
        )

    credentials = build_service_account_credentials(client_email, private_key)
    return build('sheets', 'v4', credentials=credentials, cache_discovery=False)


def fetch_sheet_values(sheet_id, sheet_range):
    """Fetch the raw cell grid (list of row lists) for a range."""
    logger.info(
        'sheets config: has_api_key=%s sheet_id_length=%s range=%s',
        bool((settings.GOOGLE_SHEETS_API_KEY or '').strip()), len(sheet_id), sheet_range or None,
    )
    service = build_sheets_service()

    try:
        result = service.spreadsheets().values().get(
            spreadsheetId=sheet_id,
            range=sheet_range
        ).execute()
    except HttpError as e:
        content = e.content.decode('utf-8', 'replace') if isinstance(e.content, bytes) else e.content
        raise SheetsFetchError(f'Sheets API error ({e.resp.status}): {content}')
    except GoogleAuthError as e:
        raise SheetsFetchError(f'Google token error: {e}')

    return result.get('values', [])
