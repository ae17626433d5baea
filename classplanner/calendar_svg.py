"""
SVG weekly calendar.

Turns a list of courses into a Monday-Friday grid:
1. one color per (subject, catalog_nbr), so a lecture and its discussion/lab
   share a color
2. every meeting is dropped into the bucket of each weekday it meets on
3. blocks are positioned on the grid (config-driven geometry)
4. the grid and blocks are written out as an SVG document

Everything here is a pure function of (courses, config). Course order matters
for color assignment and is never re-sorted, so equal input gives
byte-identical output.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence
from xml.sax.saxutils import escape, quoteattr

from classplanner.model import CalendarBlock, CalendarLayout, Course

DAYS = ["M", "T", "W", "R", "F"]
DAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday"]
COLORS = [
    "#3b82f6",
    "#ef4444",
    "#10b981",
    "#f59e0b",
    "#8b5cf6",
    "#ec4899",
    "#14b8a6",
]

BLOCK_MARGIN = 5


@dataclass(frozen=True)
class CalendarConfig:
    width: int = 900
    height: int = 700
    header_height: int = 50
    time_column_width: int = 80
    hour_height: int = 50
    start_hour: int = 8
    end_hour: int = 20

    @property
    def day_width(self) -> float:
        return (self.width - self.time_column_width) / len(DAYS)


DEFAULT_CONFIG = CalendarConfig()


def _num(value: float) -> str:
    """
    Format a coordinate: '164' not '164.0', at most two decimals.
    """
    rounded = round(float(value), 2)
    if rounded == int(rounded):
        return str(int(rounded))
    return f"{rounded:.2f}".rstrip("0")


def format_hour_label(hour: int) -> str:
    """
    Format an hour of the day as '8AM', '12PM', '7PM' (midnight is '12AM').
    """
    h = hour % 24
    if h == 0:
        return "12AM"
    if h < 12:
        return f"{h}AM"
    if h == 12:
        return "12PM"
    return f"{h - 12}PM"


# ---------------------------------------------------------------------------
# Layout
# ---------------------------------------------------------------------------


def assign_colors(courses: Sequence[Course]) -> dict[tuple[str, str], str]:
    """
    Map each distinct (subject, catalog_nbr) to a palette color, in input order.
    """
    colors: dict[tuple[str, str], str] = {}
    for course in courses:
        if course.key not in colors:
            colors[course.key] = COLORS[len(colors) % len(COLORS)]
    return colors


def bucket_by_day(
    courses: Sequence[Course],
    colors: Optional[dict[tuple[str, str], str]] = None,
) -> dict[str, list[CalendarBlock]]:
    """
    Day code -> blocks (unpositioned), in course/meeting input order.
    """
    if colors is None:
        colors = assign_colors(courses)

    day_map: dict[str, list[CalendarBlock]] = {day: [] for day in DAYS}

    for course in courses:
        color = colors.get(course.key, COLORS[0])
        for meeting in course.meetings:
            for day_code in meeting.days:
                if day_code not in day_map:
                    continue
                day_map[day_code].append(
                    CalendarBlock(
                        course=course.label,
                        title=course.title,
                        start=meeting.time.start,
                        end=meeting.time.end,
                        color=color,
                        start_minutes=meeting.time.start_minutes,
                        end_minutes=meeting.time.end_minutes,
                        day=day_code,
                    )
                )
    return day_map


def build_layout(courses: Sequence[Course], config: CalendarConfig = DEFAULT_CONFIG) -> CalendarLayout:
    """
    Compute the positioned calendar layout for a list of courses.
    """
    colors = assign_colors(courses)
    day_map = bucket_by_day(courses, colors)
    day_width = config.day_width

    layout = CalendarLayout(colors=colors)
    for day_idx, day in enumerate(DAYS):
        positioned: list[CalendarBlock] = []
        for block in day_map[day]:
            start_min = block.start_minutes
            end_min = block.end_minutes
            # skip empty or inverted ranges
            if end_min <= start_min:
                continue

            block.y = config.header_height + (start_min / 60 - config.start_hour) * config.hour_height
            block.height = ((end_min - start_min) / 60) * config.hour_height
            block.x = config.time_column_width + day_idx * day_width + BLOCK_MARGIN
            block.width = day_width - 2 * BLOCK_MARGIN
            positioned.append(block)
        layout.days[day] = positioned

    return layout


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------

_STYLES = (
    ".course-block { rx:4; stroke:#fff; stroke-width:2 } "
    ".course-text { fill:#fff; font-family:Arial,sans-serif; font-size:11px; font-weight:600 } "
    ".time-text { fill:#64748b; font-family:Arial,sans-serif; font-size:12px } "
    ".header-text { fill:#1e293b; font-family:Arial,sans-serif; font-size:14px; font-weight:700 }"
)


def _svg_open(config: CalendarConfig) -> list[str]:
    return [
        f'<svg width="{config.width}" height="{config.height}" xmlns="http://www.w3.org/2000/svg">',
        f"<defs><style>{_STYLES}</style></defs>",
        f'<rect width="{config.width}" height="{config.height}" fill="#f8fafc"/>',
    ]


def _header(config: CalendarConfig) -> list[str]:
    day_width = config.day_width
    out = [f'<rect width="{config.width}" height="{config.header_height}" fill="#e2e8f0"/>']
    y = config.header_height / 2 + 5
    for i, day_name in enumerate(DAY_NAMES):
        x = config.time_column_width + i * day_width + day_width / 2
        out.append(f'<text x="{_num(x)}" y="{_num(y)}" text-anchor="middle" class="header-text">{day_name}</text>')
    return out


def _time_grid(config: CalendarConfig) -> list[str]:
    out: list[str] = []
    day_width = config.day_width

    # horizontal hour lines
    for hour in range(config.start_hour, config.end_hour + 1):
        y = config.header_height + (hour - config.start_hour) * config.hour_height
        out.append(f'<text x="10" y="{_num(y + 15)}" class="time-text">{format_hour_label(hour)}</text>')
        out.append(
            f'<line x1="{config.time_column_width}" y1="{_num(y)}" x2="{config.width}" y2="{_num(y)}" '
            f'stroke="#e2e8f0" stroke-width="1"/>'
        )

    # vertical day dividers
    for i in range(len(DAYS)):
        x = config.time_column_width + i * day_width
        out.append(
            f'<line x1="{_num(x)}" y1="{config.header_height}" x2="{_num(x)}" y2="{config.height}" '
            f'stroke="#e2e8f0" stroke-width="1"/>'
        )
    return out


def _short_time(text: str) -> str:
    return text.replace("AM", "").replace("PM", "").strip()


def _blocks(layout: CalendarLayout) -> list[str]:
    out: list[str] = []
    for day in DAYS:
        for block in layout.days.get(day, []):
            text_x = block.x + block.width / 2
            out.append(
                f'<rect x="{_num(block.x)}" y="{_num(block.y)}" width="{_num(block.width)}" '
                f'height="{_num(block.height)}" fill={quoteattr(block.color)} class="course-block"/>'
            )
            out.append(
                f'<text x="{_num(text_x)}" y="{_num(block.y + 18)}" text-anchor="middle" '
                f'class="course-text">{escape(block.course)}</text>'
            )
            out.append(
                f'<text x="{_num(text_x)}" y="{_num(block.y + 32)}" text-anchor="middle" '
                f'class="course-text" opacity="0.9">'
                f"{escape(_short_time(block.start))}-{escape(_short_time(block.end))}</text>"
            )
    return out


def render_svg(layout: CalendarLayout, config: CalendarConfig = DEFAULT_CONFIG) -> str:
    """
    Render a computed layout as an SVG document string.
    """
    parts: list[str] = []
    parts.extend(_svg_open(config))
    parts.extend(_header(config))
    parts.extend(_time_grid(config))
    parts.extend(_blocks(layout))
    parts.append("</svg>")
    return "\n".join(parts)


def generate_svg_calendar(courses: Sequence[Course], config: Optional[CalendarConfig] = None) -> str:
    """
    Layout + render in one step.
    """
    config = config or DEFAULT_CONFIG
    return render_svg(build_layout(courses, config), config)
