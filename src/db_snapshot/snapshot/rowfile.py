"""Row file (``<table>.csv``) reading and writing.

The first record is the header (column names in schema order); every other
record is one row of codec-encoded fields.

Usage:
    from db_snapshot.snapshot.rowfile import open_row_file, write_rows

    write_rows("snap/users.csv", ["id", "email"], [["1", "a@example.com"]])
    with open_row_file("snap/users.csv") as (header, records):
        for line, fields in records:
            ...
"""

import csv
from contextlib import contextmanager
from pathlib import Path
from typing import Iterable, Iterator, Sequence

from db_snapshot.exceptions import RowFormatError, SerializationError

ROW_FILE_SUFFIX = ".csv"


def row_file_path(directory: str | Path, table: str) -> Path:
    return Path(directory) / f"{table}{ROW_FILE_SUFFIX}"


def write_rows(
    path: str | Path,
    columns: Sequence[str],
    rows: Iterable[Sequence[str]],
) -> int:
    """Write a header and encoded rows.

    Returns:
        Number of data rows written.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    count = 0
    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(columns)
        for row in rows:
            writer.writerow(row)
            count += 1
    return count


@contextmanager
def open_row_file(path: str | Path) -> Iterator[tuple[list[str], Iterator[tuple[int, list[str]]]]]:
    """Open a row file for streaming.

    Yields:
        ``(header, records)`` where ``records`` yields ``(line_number, fields)``.

    Raises:
        SerializationError: If the file cannot be opened.
        RowFormatError: If the file has no header or is not valid CSV.
    """
    path = Path(path)
    try:
        f = path.open("r", newline="", encoding="utf-8")
    except OSError as e:
        raise SerializationError(f"Cannot read row file {path}: {e}") from e

    with f:
        reader = csv.reader(f)
        try:
            header = next(reader)
        except StopIteration:
            raise RowFormatError(f"Row file {path} is empty", table=path.stem) from None
        except csv.Error as e:
            raise RowFormatError(f"Invalid header in {path}: {e}", table=path.stem, line=1) from e

        def records() -> Iterator[tuple[int, list[str]]]:
            try:
                for record in reader:
                    if not record:
                        continue
                    yield reader.line_num, record
            except csv.Error as e:
                raise RowFormatError(
                    f"Invalid CSV in {path}: {e}", table=path.stem, line=reader.line_num
                ) from e

        yield header, records()


def read_rows(path: str | Path) -> tuple[list[str], list[list[str]]]:
    """Read a whole row file: ``(header, rows)``."""
    with open_row_file(path) as (header, records):
        return header, [fields for _, fields in records]
