from dataclasses import dataclass
from dataclasses import replace


@dataclass(frozen=True)
class LogEntry:
    term: int
    value: str
    committed: bool = False

    def as_dict(self) -> dict:
        return {
            "term": self.term,
            "value": self.value,
            "committed": self.committed,
        }


def last_log_index(log) -> int:
    """-1 for an empty log, like the commit index."""
    return len(log) - 1


def mark_committed(log: list[LogEntry], commit_index: int) -> list[LogEntry]:
    """Return a copy of the log where every entry up to commit_index is committed.

    Entries are values: committing replaces an entry rather than flipping a flag on an object
    another node might also hold.
    """
    if commit_index >= len(log):
        # better crash than do something hard to debug
        raise ValueError(f"commit index {commit_index} out of range for a log of {len(log)} entries")
    return [
        entry if entry.committed or i > commit_index else replace(entry, committed=True)
        for i, entry in enumerate(log)
    ]


def log_to_str(log) -> str:
    """Debug/testing utility: one term per entry, '*' after committed entries."""
    if all(entry.term < 10 for entry in log):
        return "".join(f"{entry.term}{'*' if entry.committed else ''}" for entry in log)
    else:
        # not as nice but less ambiguous for when one wants to read very long logs.
        return ".".join(f"{entry.term}{'*' if entry.committed else ''}" for entry in log)
