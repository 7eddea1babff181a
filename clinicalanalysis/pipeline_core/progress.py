"""
Progress Aggregator - blends discrete stage completion with streaming sub-progress.

Progress is never stored; it is recomputed from the status map on every
status change and every sub-progress tick.
"""

import math
from typing import Iterable, Mapping, Optional, Tuple

from .status import StageStatus

SubProgress = Tuple[str, float]


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def compute_progress(
    status_map: Mapping[str, StageStatus],
    active_stage_ids: Iterable[str],
    running_sub_progress: Optional[SubProgress] = None,
) -> int:
    """Compute the 0..100 progress value shown for a run.

    Each active stage owns an equal share of 100. A stage in a terminal
    status contributes its whole share. The one stage reporting sub-progress
    ``(stage_id, percent)`` contributes ``percent`` of its share while it is
    running.

    Parameters
    ----------
    status_map : Mapping[str, StageStatus]
        Current status of every stage
    active_stage_ids : Iterable[str]
        Stages that were active when the run started
    running_sub_progress : tuple of (str, float), optional
        Sub-progress reported by the running stage

    Returns
    -------
    int
        Progress between 0 and 100. It is 100 only when every active stage
        is terminal, and always 100 when no stage is active
    """
    active = list(active_stage_ids)
    if not active:
        return 100

    share = 100.0 / len(active)
    finished = sum(1 for stage_id in active if status_map.get(stage_id, StageStatus.PENDING).is_terminal)
    value = finished * share

    if running_sub_progress is not None:
        stage_id, percent = running_sub_progress
        if stage_id in active and status_map.get(stage_id) is StageStatus.RUNNING:
            percent = min(max(float(percent), 0.0), 100.0)
            value += percent / len(active)

    result = min(100, max(0, _round_half_up(value)))
    if finished < len(active):
        # 100 is reserved for a run whose active stages are all terminal
        result = min(result, 99)
    return result
