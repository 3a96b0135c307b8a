"""
HTTP entry point of the Rateio Claro sync.

POST .../rateio-claro-sync/preview | /apply (or ?action= / body "action")
OPTIONS answers the CORS preflight; any other method gets 405.
Errors always answer {"ok": false, "error": ..., "details"?: ...}.
"""

import json
import logging

from django.http import HttpResponse, JsonResponse
from django.views.decorators.csrf import csrf_exempt

from accounts.auth import AuthGateError, authenticate_caller, require_auth_config
from rateio.errors import SyncError
from rateio.sync import ALLOWED_ROLES, MODULE_KEY, prepare_sync, run_apply, run_preview

logger = logging.getLogger(__name__)

ACTIONS = ('preview', 'apply')

CORS_HEADERS = {
    'Access-Control-Allow-Origin': '*',
    'Access-Control-Allow-Headers': 'authorization, x-client-info, apikey, content-type',
    'Access-Control-Allow-Methods': 'POST, OPTIONS',
}


def _with_cors(response):
    for header, value in CORS_HEADERS.items():
        response[header] = value
    return response


def json_response(body, status=200):
    return _with_cors(JsonResponse(body, status=status, safe=False))


def error_response(message, status, details=None):
    body = {'ok': False, 'error': message}
    if details is not None:
        body['details'] = details
    return json_response(body, status=status)


def action_from_request(request, path_action):
    if path_action in ACTIONS:
        return path_action
    query_action = request.GET.get('action')
    if query_action in ACTIONS:
        return query_action
    return ''


@csrf_exempt
def rateio_claro_sync(request, path_action=None):
    if request.method == 'OPTIONS':
        return _with_cors(HttpResponse('ok'))

    if request.method != 'POST':
        return error_response('Method not allowed', 405)

    try:
        require_auth_config()
    except AuthGateError as e:
        return error_response(e.message, e.status)

    try:
        body = json.loads(request.body or b'')
    except (ValueError, UnicodeDecodeError) as e:
        logger.error('Invalid JSON body: %s', e)
        return error_response('Invalid request body', 400)
    if not isinstance(body, dict):
        return error_response('Invalid request body', 400)

    try:
        caller = authenticate_caller(
            request.headers.get('Authorization'), body, MODULE_KEY, ALLOWED_ROLES
        )
    except AuthGateError as e:
        return error_response(e.message, e.status)

    action = action_from_request(request, path_action)
    if not action and body.get('action') in ACTIONS:
        action = body['action']
    if not action:
        return error_response('Route not found', 404)

    try:
        state = prepare_sync(body.get('planilhaRows'))
        if action == 'preview':
            return json_response(run_preview(state))
        result = run_apply(
            state,
            caller.auth_uid,
            selection_payload=body.get('selection'),
            options=body.get('options'),
        )
        return json_response(result)
    except SyncError as e:
        return error_response(e.message, e.status, e.details)
