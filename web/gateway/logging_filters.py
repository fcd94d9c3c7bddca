"""Logging filter adding the current request id to log records.

Attach ``RequestIdFilter`` to a handler so formatters (plain or
``pythonjsonlogger``) can reference ``%(request_id)s`` on every record,
including records emitted outside a request, which get ``"-"``.
"""

from logging import Filter, LogRecord

from .middleware import REQUEST_ID_CTX


class RequestIdFilter(Filter):
    def filter(self, record: LogRecord) -> bool:
        record.request_id = REQUEST_ID_CTX.get()
        return True
