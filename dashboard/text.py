"""Text Normalization and Local Search.

Helpers shared by the mock engine (upstream free-text filter) and the
drilldown drawer (local search over already-loaded rows):
1. Trim and casefold
2. Strip diacritics ("São Paulo" matches "sao paulo")
3. Substring match

Examples:
    "  São Paulo " -> "sao paulo"
    includes_normalized("Goiânia ATIVA", "goiania") -> True
"""

import unicodedata
from typing import Iterable, List, Optional, Sequence

from models.dashboard import CellValue, DrilldownRow


def strip_diacritics(text: str) -> str:
    """Remove combining marks after NFKD decomposition."""
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize_text(value: Optional[str]) -> str:
    """Normalize text for case- and diacritic-insensitive matching.

    Args:
        value: Raw text (None is treated as empty)

    Returns:
        Trimmed, casefolded text without diacritics
    """
    if not value:
        return ""
    return strip_diacritics(value.strip()).casefold()


def includes_normalized(haystack: str, needle: str) -> bool:
    """True when the normalized needle occurs in the normalized haystack.

    An empty needle matches everything.
    """
    n = normalize_text(needle)
    if not n:
        return True
    return n in normalize_text(haystack)


def row_search_text(row: DrilldownRow) -> str:
    """Concatenation matched by local search: id, title, subtitle, status."""
    return f"{row.id} {row.title} {row.subtitle or ''} {row.status or ''}"


def filter_rows(rows: Sequence[DrilldownRow], search: str) -> List[DrilldownRow]:
    """Filter already-loaded rows by a free-text search term.

    Pure function: no network effect, input order preserved.
    """
    q = normalize_text(search)
    if not q:
        return list(rows)
    return [r for r in rows if includes_normalized(row_search_text(r), q)]


def uniq_by_id(rows: Iterable[DrilldownRow]) -> List[DrilldownRow]:
    """Deduplicate rows by id, first occurrence wins."""
    seen = set()
    out: List[DrilldownRow] = []
    for row in rows:
        if row.id in seen:
            continue
        seen.add(row.id)
        out.append(row)
    return out


def get_row_field(row: DrilldownRow, key: str) -> CellValue:
    """Read a top-level row attribute or a value from ``row.fields``."""
    if key == "id":
        return row.id
    if key == "title":
        return row.title
    if key == "subtitle":
        return row.subtitle
    if key == "status":
        return row.status
    if key in ("amountCents", "amount_cents"):
        return row.amount_cents
    return row.fields.get(key) if row.fields else None
