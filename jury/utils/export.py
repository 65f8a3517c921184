"""
CSV export of poll results.
"""

import csv
import io
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from jury.utils.dates import utcnow
from jury.utils.results import percentage


def escape_csv_field(value: str) -> str:
    if any(ch in value for ch in (",", '"', "\n")):
        return '"' + value.replace('"', '""') + '"'
    return value


def iso_timestamp(value: datetime) -> str:
    """UTC ISO-8601 with millisecond precision and a ``Z`` suffix."""
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"


def export_filename(code: str, now: Optional[datetime] = None) -> str:
    now = now or utcnow()
    return f"poll-results-{code}-{now.strftime('%Y-%m-%d')}.csv"


def results_to_csv(
    poll: Dict[str, Any],
    results: List[Dict[str, Any]],
    total_voters: int,
    exported_at: Optional[datetime] = None,
) -> str:
    """
    Render option results as CSV.

    Layout::

        # Poll: <question> | Code: <code> | Total Voters: <n> | Exported: <iso>
        Option,Votes,Percentage
        <text>,<count>,<pct>%
        Total,<sum>,

    Percentages are a share of voters (multi-select polls can exceed 100% in
    sum). Fields with a comma, quote or newline are wrapped in quotes with
    inner quotes doubled.
    """
    exported_at = exported_at or utcnow()
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n", quoting=csv.QUOTE_MINIMAL)

    # Comment row is written raw so it keeps its leading "#"; only the question is escaped
    buffer.write(
        f"# Poll: {escape_csv_field(poll.get('question') or '')} | Code: {poll.get('code', '')} | "
        f"Total Voters: {total_voters} | Exported: {iso_timestamp(exported_at)}\n"
    )
    writer.writerow(["Option", "Votes", "Percentage"])

    total_votes = 0
    for row in results:
        count = int(row.get("vote_count", 0))
        total_votes += count
        writer.writerow([row.get("option_text", ""), count, f"{percentage(count, total_voters):.1f}%"])

    writer.writerow(["Total", total_votes, ""])
    return buffer.getvalue()
