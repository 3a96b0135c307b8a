import logging

from django.db import DatabaseError, connection

from rateio.errors import SyncError
from rateio.models import RateioClaro

logger = logging.getLogger(__name__)


def hub_has_status_column():
    """Legacy databases predate the status column; detect it instead of assuming."""
    table = RateioClaro._meta.db_table
    with connection.cursor() as cursor:
        columns = connection.introspection.get_table_description(cursor, table)
    return any(column.name == 'status' for column in columns)


def load_hub_rows():
    """
    Read every hub row as dicts {id, nome, numero_linha, status}.
    Returns (rows, status_supported); status is None on legacy schemas.
    """
    try:
        status_supported = hub_has_status_column()
        fields = ['id', 'nome', 'numero_linha']
        if status_supported:
            fields.append('status')
        rows = list(RateioClaro.objects.order_by('created_at', 'id').values(*fields))
    except DatabaseError as e:
        logger.error('Error fetching rateio_claro: %s', e)
        raise SyncError('Failed to load hub data', status=500)

    if not status_supported:
        for row in rows:
            row['status'] = None
    return rows, status_supported
