"""
CSV input for batch submissions.

Accepts either a header row naming the columns (message/text/msg and
keyword/theme/k, case-insensitive) or headerless rows of
"message,keyword". Rows with a blank message are skipped.
"""

import csv
import io
from typing import List

from src.engines.batch.schemas import BatchItem

MESSAGE_HEADERS = {"message", "text", "msg"}
KEYWORD_HEADERS = {"keyword", "theme", "k"}


def _find_column(header: List[str], names: set, default: int) -> int:
    for index, cell in enumerate(header):
        if cell.strip().lower() in names:
            return index
    return default


def read_csv_items(text: str, default_keyword: str = "") -> List[BatchItem]:
    rows = [row for row in csv.reader(io.StringIO(text)) if any(cell.strip() for cell in row)]
    if not rows:
        return []

    message_col, keyword_col = 0, 1
    if any(cell.strip().lower() in MESSAGE_HEADERS for cell in rows[0]):
        header, rows = rows[0], rows[1:]
        message_col = _find_column(header, MESSAGE_HEADERS, 0)
        keyword_col = _find_column(header, KEYWORD_HEADERS, 1)

    items = []
    for row in rows:
        message = row[message_col].strip() if message_col < len(row) else ""
        keyword = row[keyword_col].strip() if keyword_col < len(row) else ""
        if not message:
            continue
        items.append(BatchItem(message=message, keyword=keyword or default_keyword))
    return items
