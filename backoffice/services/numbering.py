"""Sequential document numbers such as ``PB-20250101-0001``."""
import logging
from datetime import date
from typing import Any, Dict, Mapping

from backoffice.exceptions import IntegrityConflict

logger = logging.getLogger(__name__)

NUMBERING_ATTEMPTS = 5


def next_document_number(store, table: str, field: str, prefix: str, day: date) -> str:
    stem = f'{prefix}-{day:%Y%m%d}-'
    taken = [row[field] for row in store.fetch_rows(table, {f'{field}__startswith': stem})]
    last = max((int(n[len(stem):]) for n in taken if n[len(stem):].isdigit()), default=0)
    return f'{stem}{last + 1:04d}'


def insert_numbered(store, table: str, field: str, prefix: str, day: date,
                    row: Mapping[str, Any]) -> Dict[str, Any]:
    """Insert ``row`` under the next free number.

    Another writer may take the same number between the read and the
    insert; the unique column rejects the second insert and the number
    is read again.
    """
    for attempt in range(1, NUMBERING_ATTEMPTS + 1):
        number = next_document_number(store, table, field, prefix, day)
        try:
            return store.insert_row(table, {**row, field: number})
        except IntegrityConflict:
            if attempt == NUMBERING_ATTEMPTS:
                raise
            logger.info('%s %s already taken, renumbering', field, number)
