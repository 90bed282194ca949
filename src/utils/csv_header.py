"""
AccessGB - In-place CSV header rewrite

Externally produced travel time matrices ship with column names that do not
match the ones the query builder expects (e.g. ``fromId`` instead of
``from_id``). Rewriting the header in place avoids copying a multi-gigabyte
file: the new header is padded with spaces to the old header's byte length so
every following byte stays where it is.
"""

from pathlib import Path
from typing import Sequence, Union

from src.utils.errors import HeaderTooLong
from src.utils.logging import get_logger

logger = get_logger(__name__)


def _strip_line_ending(line: bytes) -> bytes:
    if line.endswith(b"\r\n"):
        return line[:-2]
    if line.endswith(b"\n") or line.endswith(b"\r"):
        return line[:-1]
    return line


def rewrite_header(
    input_file: Union[str, Path],
    new_header: Sequence[str],
    delimiter: str = ",",
    encoding: str = "utf-8",
) -> None:
    """
    Replace the header line of a delimited file without changing its length.

    Args:
        input_file: Path to the CSV file
        new_header: Column names for the new header
        delimiter: Field delimiter used to join the names
        encoding: Encoding used for the new header

    Raises:
        HeaderTooLong: If the new header needs more bytes than the old one.
            The file is not modified.
    """
    path = Path(input_file)

    with open(path, "r+b") as f:
        old_header = _strip_line_ending(f.readline())
        new_header_line = delimiter.join(new_header).encode(encoding)

        if len(new_header_line) > len(old_header):
            raise HeaderTooLong(
                f"New header is {len(new_header_line)} bytes but the old header of {path} "
                f"is {len(old_header)} bytes. In-place replacement is not possible."
            )

        padded = new_header_line + b" " * (len(old_header) - len(new_header_line))

        f.seek(0)
        f.write(padded)

    logger.info(f"Rewrote header of {path}: {delimiter.join(new_header)}")
