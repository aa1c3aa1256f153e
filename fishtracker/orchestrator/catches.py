from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from fishtracker.orchestrator.contracts import TrackedFish

RECENT_HOURS = 24

TODAY = "Today"
YESTERDAY = "Yesterday"
OLDER = "Older catches"


@dataclass
class CatchSummary:
    id: str                  # fish id, for the details page
    name: str
    image_url: Optional[str]
    tracked_time: str        # "3 hours ago" / "2 days ago"
    show_recent_icon: bool


def parse_timestamp(value: str) -> datetime:
    # the service sends ISO-8601, sometimes with a trailing Z and sometimes naive (UTC)
    ts = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def format_tracked_time(ts: datetime, now: datetime) -> str:
    hours = (now - ts).total_seconds() / 3600
    if hours < RECENT_HOURS:
        return f"{int(hours)} hours ago"
    return f"{int(hours // 24)} days ago"


def summarize_catches(history: List[TrackedFish], base_url: str = "",
                      now: Optional[datetime] = None) -> List[CatchSummary]:
    now = now or datetime.now(timezone.utc)
    dated = sorted(((parse_timestamp(t.timestamp), t) for t in history), key=lambda p: p[0], reverse=True)
    out = []
    for ts, tracked in dated:
        out.append(CatchSummary(
            id=tracked.fish_id,
            name=tracked.fish.name,
            image_url=resolve_image_url(tracked.image_url, base_url),
            tracked_time=format_tracked_time(ts, now),
            show_recent_icon=(now - ts).total_seconds() < RECENT_HOURS * 3600,
        ))
    return out


def resolve_image_url(image_url: Optional[str], base_url: str) -> Optional[str]:
    if image_url and base_url and not image_url.startswith(("http://", "https://")):
        return f"{base_url.rstrip('/')}/{image_url.lstrip('/')}"
    return image_url


@dataclass
class CatchGroup:
    title: str
    catches: List[CatchSummary] = field(default_factory=list)


def group_catches(history: List[TrackedFish], base_url: str = "",
                  now: Optional[datetime] = None) -> List[CatchGroup]:
    """Split history into Today / Yesterday / Older catches by calendar day.

    Days are taken in the timezone of `now` (local time by default). Today's
    catches are labelled with their time of day, yesterday's with "Yesterday"
    and older ones with their date. Every group is returned, even when empty.
    """
    now = now or datetime.now().astimezone()
    today = now.date()
    yesterday = today - timedelta(days=1)
    groups = [CatchGroup(TODAY), CatchGroup(YESTERDAY), CatchGroup(OLDER)]

    dated = sorted(((parse_timestamp(t.timestamp).astimezone(now.tzinfo), t) for t in history),
                   key=lambda p: p[0], reverse=True)
    for ts, tracked in dated:
        day = ts.date()
        if day == today:
            group, label = groups[0], ts.strftime("%H:%M:%S")
        elif day == yesterday:
            group, label = groups[1], YESTERDAY
        else:
            group, label = groups[2], day.isoformat()
        group.catches.append(CatchSummary(
            id=tracked.fish_id,
            name=tracked.fish.name,
            image_url=resolve_image_url(tracked.image_url, base_url),
            tracked_time=label,
            show_recent_icon=False,
        ))
    return groups
