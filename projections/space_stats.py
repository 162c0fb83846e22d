"""Per-space activity totals."""

from __future__ import annotations

from dataclasses import dataclass

from storage.repositories import CompletionLogRepository, DataEntryLogRepository


@dataclass
class SpaceStats:
    total_points_earned: int = 0
    actions_logged_count: int = 0
    data_entries_count: int = 0
    full_completions_count: int = 0


def space_stats(
    space_id: str,
    completion_logs: CompletionLogRepository,
    data_entries: DataEntryLogRepository,
) -> SpaceStats:
    stats = SpaceStats()
    for log in completion_logs.find_by_space_id(space_id):
        stats.actions_logged_count += 1
        stats.total_points_earned += log.points_awarded
        if log.is_multi_step_full_completion:
            stats.full_completions_count += 1
    for entry in data_entries.find_by_space_id(space_id):
        stats.data_entries_count += 1
        stats.total_points_earned += entry.points_awarded
    return stats
