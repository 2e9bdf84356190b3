"""
Text Parser Module

Turns free text (from a PDF text layer or OCR) into a table.

Detection order, first success wins:
1. Delimited: tab, then comma, then pipe
2. Key-value lines ("Name: Alice" / "Name = Alice")
3. Columns separated by runs of two or more spaces
4. Fallback: a single "Content" column, one row per line

The 50% (delimited) and 60% (key-value) agreement thresholds are fixed;
callers depend on exactly these cut-offs.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

import pandas as pd
from dateutil import parser as date_parser
from loguru import logger


LINE_SPLIT = re.compile(r'\r?\n')
KEY_VALUE_LINE = re.compile(r'^([^:=]+)[=:](.+)$')
MULTI_SPACE = re.compile(r'\s{2,}')
LEADING_PIPE = re.compile(r'^\s*\|')
TRAILING_PIPE = re.compile(r'\|\s*$')

DELIMITED_THRESHOLD = 0.5
KEY_VALUE_THRESHOLD = 0.6
COLUMN_TYPE_THRESHOLD = 0.7

CONTENT_HEADER = 'Content'


@dataclass
class ParsedTable:
    """
    Table recovered from unstructured text.

    Every row has exactly len(headers) cells. A delimited header line with
    no data lines yields headers and zero rows.
    """

    headers: List[str] = field(default_factory=list)
    rows: List[List[str]] = field(default_factory=list)
    strategy: str = 'empty'

    @property
    def is_empty(self) -> bool:
        return not self.headers

    def column(self, name: str) -> List[str]:
        idx = self.headers.index(name)
        return [row[idx] for row in self.rows]

    def column_types(self) -> Dict[str, 'ColumnType']:
        return {name: detect_column_type(self.column(name)) for name in self.headers}

    def to_dataframe(self):
        """Export to a pandas DataFrame (all cells as strings)."""
        return pd.DataFrame(self.rows, columns=self.headers)


def _fit_row(parts: List[str], width: int) -> List[str]:
    """Pad with "" or truncate to `width`, trimming every cell."""
    return [parts[i].strip() if i < len(parts) else '' for i in range(width)]


class TextTableParser:
    """
    Detects tabular structure in plain text.

    Usage:
        parser = TextTableParser()
        table = parser.parse("Name,Age\\nAlice,30")
        print(table.headers, table.rows, table.strategy)
    """

    DELIMITERS = [('\t', 'tab'), (',', 'comma'), ('|', 'pipe')]

    def parse(self, text: str) -> ParsedTable:
        if not text or not text.strip():
            return ParsedTable()

        lines = [line for line in LINE_SPLIT.split(text) if line.strip()]
        if not lines:
            return ParsedTable()

        for delimiter, name in self.DELIMITERS:
            table = self._try_delimited(lines, delimiter, name)
            if table:
                return table

        table = self._try_key_value(lines)
        if table:
            return table

        table = self._try_multi_space(lines)
        if table:
            return table

        logger.debug(f"No structure detected in {len(lines)} lines; using single column")
        return ParsedTable(
            headers=[CONTENT_HEADER],
            rows=[[line.strip()] for line in lines],
            strategy='content',
        )

    @staticmethod
    def _split(line: str, delimiter: str) -> List[str]:
        if delimiter == '|':
            line = TRAILING_PIPE.sub('', LEADING_PIPE.sub('', line, count=1), count=1)
        return line.split(delimiter)

    def _try_delimited(self, lines: List[str], delimiter: str, name: str) -> Optional[ParsedTable]:
        header_parts = self._split(lines[0], delimiter)
        if len(header_parts) < 2:
            return None

        headers = [h.strip() for h in header_parts]
        data_lines = lines[1:]
        if not data_lines:
            return ParsedTable(headers=headers, rows=[], strategy=name)

        split_lines = [self._split(line, delimiter) for line in data_lines]
        matching = sum(1 for parts in split_lines if len(parts) == len(header_parts))
        if matching / len(data_lines) < DELIMITED_THRESHOLD:
            return None

        logger.debug(f"Detected {name}-delimited table: {len(headers)} columns, {len(data_lines)} rows")
        return ParsedTable(
            headers=headers,
            rows=[_fit_row(parts, len(headers)) for parts in split_lines],
            strategy=name,
        )

    def _try_key_value(self, lines: List[str]) -> Optional[ParsedTable]:
        pairs = []
        for line in lines:
            match = KEY_VALUE_LINE.match(line)
            if match:
                pairs.append((match.group(1).strip(), match.group(2).strip()))

        if len(pairs) < 2 or len(pairs) / len(lines) < KEY_VALUE_THRESHOLD:
            return None

        # dict keeps first-seen order
        headers = list(dict.fromkeys(key for key, _ in pairs))

        rows = []
        current: Dict[str, str] = {}
        for key, value in pairs:
            if key in current:
                rows.append([current.get(h, '') for h in headers])
                current = {}
            current[key] = value

        if current:
            rows.append([current.get(h, '') for h in headers])

        logger.debug(f"Detected key-value table: {len(headers)} keys, {len(rows)} rows")
        return ParsedTable(headers=headers, rows=rows, strategy='key_value')

    @staticmethod
    def _split_spaces(line: str) -> List[str]:
        return [part for part in MULTI_SPACE.split(line) if part.strip()]

    def _try_multi_space(self, lines: List[str]) -> Optional[ParsedTable]:
        header_parts = self._split_spaces(lines[0])
        if len(header_parts) < 2:
            return None

        data_lines = lines[1:]
        if not data_lines:
            return None

        split_lines = [self._split_spaces(line) for line in data_lines]
        matching = sum(1 for parts in split_lines if len(parts) == len(header_parts))
        if matching / len(data_lines) < DELIMITED_THRESHOLD:
            return None

        headers = [h.strip() for h in header_parts]
        return ParsedTable(
            headers=headers,
            rows=[_fit_row(parts, len(headers)) for parts in split_lines],
            strategy='multi_space',
        )


def parse_unstructured_text(text: str) -> ParsedTable:
    return TextTableParser().parse(text)


# =============================================================================
# Column type detection
# =============================================================================

class ColumnType(Enum):
    CHECKBOX = 'checkbox'
    NUMBER = 'number'
    EMAIL = 'email'
    URL = 'url'
    DATE = 'date'
    TEXT = 'text'


BOOLEAN_VALUE = re.compile(r'^(true|false|yes|no)$', re.IGNORECASE)
PLAIN_NUMBER = re.compile(r'^-?\d+(\.\d+)?$')
GROUPED_NUMBER = re.compile(r'^-?\d{1,3}(,\d{3})*(\.\d+)?$')
EMAIL_VALUE = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')
URL_VALUE = re.compile(r'^https?://.+')

DATE_PATTERNS = [
    re.compile(r'^\d{4}[-/]\d{1,2}[-/]\d{1,2}$'),     # 2024-01-15
    re.compile(r'^\d{1,2}[-/]\d{1,2}[-/]\d{2,4}$'),   # 01/15/2024
    re.compile(r'^\w+ \d{1,2},?\s*\d{4}$'),           # January 15, 2024
    re.compile(r'^\d{1,2} \w+ \d{4}$'),               # 15 January 2024
    re.compile(r'^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}'),    # ISO 8601
]

DATE_FORMATS = ['%d %b %Y', '%b %d %Y', '%Y.%m.%d', '%d.%m.%Y']


def is_date_like(value: str) -> bool:
    """Heuristic date check; short strings never count."""
    if any(p.match(value) for p in DATE_PATTERNS):
        return True

    if len(value) <= 5:
        return False

    for fmt in DATE_FORMATS:
        try:
            datetime.strptime(value, fmt)
            return True
        except ValueError:
            continue

    try:
        date_parser.parse(value)
        return True
    except (ValueError, OverflowError):
        return False


def _classify(value: str) -> ColumnType:
    if BOOLEAN_VALUE.match(value):
        return ColumnType.CHECKBOX
    if PLAIN_NUMBER.match(value) or GROUPED_NUMBER.match(value):
        return ColumnType.NUMBER
    if EMAIL_VALUE.match(value):
        return ColumnType.EMAIL
    if URL_VALUE.match(value):
        return ColumnType.URL
    if is_date_like(value):
        return ColumnType.DATE
    return ColumnType.TEXT


def detect_column_type(values: List[str]) -> ColumnType:
    """
    Most specific type shared by at least 70% of the non-blank values.

    Checked in order: checkbox, number, email, url, date. Falls back to text.
    """
    non_empty = [v.strip() for v in values if v.strip()]
    if not non_empty:
        return ColumnType.TEXT

    counts = {t: 0 for t in ColumnType}
    for value in non_empty:
        counts[_classify(value)] += 1

    total = len(non_empty)
    for column_type in (ColumnType.CHECKBOX, ColumnType.NUMBER, ColumnType.EMAIL,
                        ColumnType.URL, ColumnType.DATE):
        if counts[column_type] / total >= COLUMN_TYPE_THRESHOLD:
            return column_type

    return ColumnType.TEXT
