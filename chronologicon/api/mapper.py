"""
API Mapper
==========

Transforms internal contract types into JSON-ready response DTOs.
Field names follow the public API (camelCase envelopes, snake_case
event records).
"""
from typing import Any, Dict, List

from ..contracts.base import to_iso
from ..contracts.events import HistoricalEvent, SearchPage, TimelineNode
from ..contracts.jobs import JobStatus
from ..core.intervals import GapReport, OverlapPair
from ..core.paths import PathResult
from ..query import EventStatistics
from ..temporal.state_machine import JobState


def map_event_to_dto(event: HistoricalEvent) -> Dict[str, Any]:
    return {
        "event_id": event.event_id,
        "event_name": event.event_name,
        "description": event.description,
        "start_date": to_iso(event.start_date),
        "end_date": to_iso(event.end_date),
        "duration_minutes": event.duration_minutes,
        "parent_event_id": event.parent_event_id,
        "metadata": dict(event.metadata),
    }


def map_ticket_to_dto(job_id: str) -> Dict[str, Any]:
    return {
        "status": "Ingestion initiated",
        "jobId": job_id,
        "message": f"Check /api/events/ingestion-status/{job_id} for updates.",
    }


def map_job_to_dto(job: JobState) -> Dict[str, Any]:
    """Job snapshot. Start/end times are only reported once the job completed."""
    dto = {
        "jobId": job.job_id,
        "status": job.status.value,
        "processedLines": job.processed_lines,
        "errorLines": job.error_lines,
        "totalLines": job.total_lines if job.total_lines is not None else 0,
        "errors": [
            {"lineNumber": e.line_number, "message": e.message}
            for e in job.errors
        ],
    }
    if job.status is JobStatus.COMPLETED:
        dto["startTime"] = to_iso(job.start_time)
        dto["endTime"] = to_iso(job.end_time)
    return dto


def map_search_page_to_dto(page: SearchPage) -> Dict[str, Any]:
    return {
        "events": [map_event_to_dto(e) for e in page.events],
        "totalEvents": page.total_events,
        "page": page.page,
        "limit": page.limit,
    }


def map_timeline_to_dto(node: TimelineNode) -> Dict[str, Any]:
    dto = map_event_to_dto(node.event)
    dto["level"] = node.level
    dto["children"] = [map_timeline_to_dto(child) for child in node.children]
    return dto


def _overlap_member(event: HistoricalEvent) -> Dict[str, Any]:
    return {
        "event_id": event.event_id,
        "event_name": event.event_name,
        "start_date": to_iso(event.start_date),
        "end_date": to_iso(event.end_date),
    }


def map_overlaps_to_dto(pairs: List[OverlapPair]) -> List[Dict[str, Any]]:
    return [
        {
            "overlappingEventPairs": [_overlap_member(p.first), _overlap_member(p.second)],
            "overlap_duration_minutes": p.overlap_duration_minutes,
        }
        for p in pairs
    ]


def map_gap_report_to_dto(report: GapReport) -> Dict[str, Any]:
    gap = report.largest_gap
    if gap is None:
        return {"largestGap": None, "message": report.message}
    return {
        "largestGap": {
            "startOfGap": to_iso(gap.start_of_gap),
            "endOfGap": to_iso(gap.end_of_gap),
            "durationMinutes": gap.duration_minutes,
            "precedingEvent": {
                "event_id": gap.preceding_event.event_id,
                "event_name": gap.preceding_event.event_name,
                "end_date": to_iso(gap.preceding_event.end_date),
            },
            "succeedingEvent": {
                "event_id": gap.succeeding_event.event_id,
                "event_name": gap.succeeding_event.event_name,
                "start_date": to_iso(gap.succeeding_event.start_date),
            },
        },
        "message": report.message,
    }


def map_path_to_dto(result: PathResult) -> Dict[str, Any]:
    return {
        "sourceEventId": result.source_event_id,
        "targetEventId": result.target_event_id,
        "shortestPath": [
            {
                "event_id": e.event_id,
                "event_name": e.event_name,
                "duration_minutes": e.duration_minutes,
            }
            for e in result.path
        ],
        "totalDurationMinutes": result.total_duration_minutes,
        "message": result.message,
    }


def map_statistics_to_dto(stats: EventStatistics) -> Dict[str, Any]:
    return {
        "statistics": {
            "total_events": stats.total_events,
            "root_events": stats.root_events,
            "child_events": stats.child_events,
            "avg_duration_minutes": stats.avg_duration_minutes,
            "earliest_event": to_iso(stats.earliest_event),
            "latest_event": to_iso(stats.latest_event),
            "longest_event_duration": stats.longest_event_duration,
            "shortest_event_duration": stats.shortest_event_duration,
            "max_hierarchy_depth": stats.max_hierarchy_depth,
            "is_forest": stats.is_forest,
        },
        "message": "Database statistics retrieved successfully",
    }
