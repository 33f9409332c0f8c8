"""
Streaming CSV reader for the upload pipeline.

Yields (line_number, row) pairs lazily; the file is re-opened on every call to
rows(), so one reader can serve any number of uploads.
"""
import csv
import logging
from pathlib import Path
from typing import Dict, Iterator, Optional, Tuple, Union

import chardet

logger = logging.getLogger(__name__)

# Bytes sampled from the head of the file for encoding detection
ENCODING_SAMPLE_SIZE = 64 * 1024

# Inserted by the "replace" error handler for undecodable bytes
REPLACEMENT_CHARACTER = "\ufffd"

Row = Tuple[int, Dict[str, str]]


class CSVReader:
    """
    Header-aware delimited file reader.

    Line numbers are 1-based and count data lines only: with headers the first
    line after the header is line 1.
    """

    def __init__(self, separator: str = ",", encoding: Optional[str] = None):
        """
        Initialize CSV reader.

        Args:
            separator: Field delimiter (single character)
            encoding: File encoding; detected with chardet when None
        """
        self.separator = separator
        self.encoding = encoding

    def detect_encoding(self, path: Union[str, Path]) -> str:
        """
        Detect file encoding from a leading sample using chardet.

        Args:
            path: File to sample

        Returns:
            Detected encoding (utf-8, iso-8859-1, windows-1252, etc.)
        """
        with open(path, "rb") as f:
            sample = f.read(ENCODING_SAMPLE_SIZE)

        result = chardet.detect(sample)
        encoding = result['encoding'] or 'utf-8'

        # Normalize encoding names; utf-16/utf-32 keep their BOM-aware codecs
        encoding_lower = encoding.lower()
        if encoding_lower.startswith(('utf-16', 'utf-32')):
            return encoding_lower
        if encoding_lower.startswith('utf-8') or 'ascii' in encoding_lower:
            return 'utf-8'
        elif 'iso-8859' in encoding_lower or 'latin' in encoding_lower:
            return 'iso-8859-1'
        elif 'windows' in encoding_lower or 'cp125' in encoding_lower:
            return 'windows-1252'

        return encoding

    def rows(self, path: Union[str, Path], with_headers: bool = True) -> Iterator[Row]:
        """
        Iterate over data rows.

        Args:
            path: CSV file
            with_headers: Treat the first line as column names; otherwise
                keys are column positions ("0", "1", ...)

        Yields:
            (line_number, {column: raw value})
        """
        encoding = self.encoding or self.detect_encoding(path)

        # utf-8-sig drops a leading BOM from the first header name
        if encoding == 'utf-8':
            encoding = 'utf-8-sig'

        with open(path, newline="", encoding=encoding, errors="replace") as f:
            reader = csv.reader(f, delimiter=self.separator)

            headers = None
            if with_headers:
                first = next(reader, None)
                if first is None:
                    return
                headers = [name.strip() for name in first]

            line_number = 0
            for values in reader:
                if not values:
                    continue
                line_number += 1

                if any(REPLACEMENT_CHARACTER in value for value in values):
                    logger.warning(
                        f"Line {line_number} has bytes that are not valid {encoding}, "
                        f"replaced with U+FFFD"
                    )

                if headers is None:
                    yield line_number, {str(i): value for i, value in enumerate(values)}
                    continue

                if len(values) > len(headers):
                    logger.warning(
                        f"Line {line_number} has {len(values)} values for "
                        f"{len(headers)} columns, extra values dropped"
                    )
                values = values[:len(headers)] + [""] * (len(headers) - len(values))
                yield line_number, dict(zip(headers, values))
