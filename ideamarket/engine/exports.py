"""
CSV export of the five log tables for the admin back office.

Each log type has its own column set. Rows are joined with the acting user's
profile so exports carry a display name and email next to the raw user id.
"""

import csv
import io
import json
import logging
from datetime import datetime, time, timedelta, timezone

from sqlalchemy import select

from ..errors import NotFound
from ..models import AccessLog, BlogViewHistory, ErrorLog, LoginHistory, Profile, SystemLog

logger = logging.getLogger(__name__)

# (header, attribute) pairs. Attributes prefixed with "user_" that are not
# columns of the log table come from the joined profile.
COLUMNS = {
    'login': (LoginHistory, 'login_at', [
        ('ID', 'id'),
        ('User ID', 'user_id'),
        ('User display name', 'user_display_name'),
        ('User email', 'user_email'),
        ('Login status', 'login_status'),
        ('IP address', 'ip_address'),
        ('User-Agent', 'user_agent'),
        ('Failure reason', 'failure_reason'),
        ('Logged in at', 'login_at'),
        ('Created at', 'created_at'),
    ]),
    'blog_view': (BlogViewHistory, 'created_at', [
        ('ID', 'id'),
        ('Blog ID', 'blog_id'),
        ('User ID', 'user_id'),
        ('User display name', 'user_display_name'),
        ('User email', 'user_email'),
        ('Session ID', 'session_id'),
        ('IP address', 'ip_address'),
        ('User-Agent', 'user_agent'),
        ('View date', 'view_date'),
        ('Created at', 'created_at'),
    ]),
    'access': (AccessLog, 'created_at', [
        ('ID', 'id'),
        ('User ID', 'user_id'),
        ('User display name', 'user_display_name'),
        ('User email', 'user_email'),
        ('Session ID', 'session_id'),
        ('Request method', 'request_method'),
        ('Request path', 'request_path'),
        ('Query parameters', 'request_query'),
        ('Response status', 'response_status'),
        ('Response time (ms)', 'response_time_ms'),
        ('IP address', 'ip_address'),
        ('User-Agent', 'user_agent'),
        ('Referer', 'referer'),
        ('Created at', 'created_at'),
    ]),
    'error': (ErrorLog, 'created_at', [
        ('ID', 'id'),
        ('User ID', 'user_id'),
        ('User display name', 'user_display_name'),
        ('User email', 'user_email'),
        ('Error level', 'error_level'),
        ('Error code', 'error_code'),
        ('Error message', 'error_message'),
        ('Stack trace', 'error_stack'),
        ('Request path', 'request_path'),
        ('Request method', 'request_method'),
        ('IP address', 'ip_address'),
        ('User-Agent', 'user_agent'),
        ('Additional info', 'additional_info'),
        ('Created at', 'created_at'),
    ]),
    'system': (SystemLog, 'created_at', [
        ('ID', 'id'),
        ('User ID', 'user_id'),
        ('User display name', 'user_display_name'),
        ('User email', 'user_email'),
        ('Log type', 'log_type'),
        ('Action', 'action'),
        ('Target table', 'target_table'),
        ('Target ID', 'target_id'),
        ('Description', 'description'),
        ('Before', 'before_data'),
        ('After', 'after_data'),
        ('IP address', 'ip_address'),
        ('Created at', 'created_at'),
    ]),
}

JSON_FIELDS = {'additional_info', 'before_data', 'after_data'}


def date_bounds(start_date=None, end_date=None):
    """UTC datetime bounds for an inclusive [start_date, end_date] range.

    The upper bound is exclusive: midnight after ``end_date``.
    """
    start = datetime.combine(start_date, time.min, tzinfo=timezone.utc) if start_date else None
    end = (datetime.combine(end_date, time.min, tzinfo=timezone.utc) + timedelta(days=1)
           if end_date else None)
    return start, end


def export_filename(log_type, start_date=None, end_date=None):
    start = start_date.isoformat() if start_date else 'all'
    end = end_date.isoformat() if end_date else 'all'
    return f"{log_type}_logs_{start}_{end}.csv"


def format_value(field, value):
    if value is None:
        return ''
    if field in JSON_FIELDS:
        return json.dumps(value, ensure_ascii=False, sort_keys=True)
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if hasattr(value, 'isoformat'):
        return value.isoformat()
    return str(value)


def fetch_rows(session, log_type, start_date=None, end_date=None, limit=10000):
    model, time_field, columns = COLUMNS[log_type]
    time_column = getattr(model, time_field)
    start, end = date_bounds(start_date, end_date)

    stmt = (
        select(model, Profile.display_name, Profile.email)
        .outerjoin(Profile, Profile.id == model.user_id)
        .order_by(time_column.desc())
        .limit(limit)
    )
    if start is not None:
        stmt = stmt.where(time_column >= start)
    if end is not None:
        stmt = stmt.where(time_column < end)

    rows = []
    for entry, display_name, email in session.execute(stmt):
        joined = {'user_display_name': display_name, 'user_email': email}
        rows.append([
            format_value(attr, joined[attr] if attr in joined else getattr(entry, attr))
            for _, attr in columns
        ])
    return rows


def iter_csv(headers, rows):
    """Yield CSV text line by line: every field quoted, LF line endings."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator='\n')
    for line in [headers] + rows:
        writer.writerow(line)
        yield buffer.getvalue()
        buffer.seek(0)
        buffer.truncate(0)


def export_logs(session, log_type, start_date=None, end_date=None, limit=10000):
    """
    Build a CSV export of one log table.

    Returns ``(filename, chunks)`` where ``chunks`` is an iterator of CSV
    text. Raises NotFound when no row matches.
    """
    if log_type not in COLUMNS:
        raise NotFound(f"Unknown log type {log_type}")
    rows = fetch_rows(session, log_type, start_date, end_date, limit)
    if not rows:
        raise NotFound("No logs match the given conditions")

    headers = [header for header, _ in COLUMNS[log_type][2]]
    logger.info("Exporting %d %s log row(s)", len(rows), log_type)
    return export_filename(log_type, start_date, end_date), iter_csv(headers, rows)
