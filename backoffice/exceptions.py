"""
Error types shared by the back-office services and the DRF exception
handler that normalises everything the views do not translate
themselves.
"""
from rest_framework.views import exception_handler as drf_exception_handler
from rest_framework.response import Response


class DataAccessError(Exception):
    """A read or write against the store failed."""


class RowNotFound(DataAccessError):
    def __init__(self, table: str, row_id) -> None:
        super().__init__(f'{table} row {row_id} not found')
        self.table = table
        self.row_id = row_id


class UnknownTable(DataAccessError):
    pass


class IntegrityConflict(DataAccessError):
    """A write collided with a unique value or a constraint."""


class BillingError(ValueError):
    """A bill mutation or commit was rejected before anything was written."""


class StockExceeded(BillingError):
    pass


class DuplicateLineItem(BillingError):
    pass


class EmptyBill(BillingError):
    pass


class InsufficientStock(DataAccessError):
    """Stored stock no longer covers a sold quantity."""

    def __init__(self, item_name: str, available: int, requested: int) -> None:
        super().__init__(f'only {available} units of {item_name} left, {requested} requested')
        self.item_name = item_name
        self.available = available
        self.requested = requested


class InvalidTransition(ValueError):
    def __init__(self, current: str, new: str) -> None:
        super().__init__(f'cannot move purchase order from {current} to {new}')
        self.current = current
        self.new = new


class ScheduleValidationError(ValueError):
    def __init__(self, violation) -> None:
        super().__init__(violation.message)
        self.violation = violation


def api_exception_handler(exc, context):
    if isinstance(exc, RowNotFound):
        return Response({'ok': False, 'error': {'code': 'not_found', 'message': str(exc)}}, status=404)
    if isinstance(exc, IntegrityConflict):
        return Response({'ok': False, 'error': {'code': 'conflict', 'message': str(exc)}}, status=409)
    resp = drf_exception_handler(exc, context)
    if resp is None:
        return Response({'ok': False, 'error': {'code': 'server_error', 'message': str(exc)}}, status=500)
    detail = None
    if isinstance(resp.data, dict):
        detail = resp.data.get('detail') or resp.data
    else:
        detail = str(resp.data)
    return Response({'ok': False, 'error': {'code': 'api_error', 'message': detail}}, status=resp.status_code)
