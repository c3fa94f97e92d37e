from __future__ import annotations

from importlib import metadata
from pathlib import Path
from typing import Sequence
from xml.sax.saxutils import escape

import pandas as pd
from reportlab.lib import colors
from reportlab.lib.pagesizes import letter
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from .metrics import drill_usage_frame, shooting_history_frame
from .models import Player, Session
from .views import player_names, total_duration

HEADER_STYLE = [
    ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#2C5282")),
    ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
    ("ALIGN", (0, 0), (-1, -1), "LEFT"),
    ("VALIGN", (0, 0), (-1, -1), "TOP"),
    ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
    ("FONTSIZE", (0, 0), (-1, -1), 9),
    ("BOTTOMPADDING", (0, 0), (-1, 0), 6),
    ("BACKGROUND", (0, 1), (-1, -1), colors.whitesmoke),
    ("GRID", (0, 0), (-1, -1), 0.5, colors.lightgrey),
]


def slugify(value: str, fallback: str = "session") -> str:
    cleaned = "".join(char.lower() if char.isalnum() else "_" for char in value.strip())
    slug = "_".join(token for token in cleaned.split("_") if token)
    return slug or fallback


def _app_version() -> str:
    try:
        return metadata.version("allball-planner")
    except metadata.PackageNotFoundError:  # pragma: no cover - local dev fallback
        return "0.0.0"


def _styled_table(rows: list[list[str]], widths: Sequence[float]) -> Table:
    table = Table(rows, hAlign="LEFT", colWidths=list(widths), repeatRows=1)
    table.setStyle(TableStyle(HEADER_STYLE))
    return table


def build_session_plan_pdf(session: Session, players: Sequence[Player], destination: Path) -> Path:
    """Printable practice plan: header, notes, drill table and recorded shooting."""
    styles = getSampleStyleSheet()
    story = [
        Paragraph(escape(session.name or "Practice Plan"), styles["Title"]),
        Paragraph(
            f"Date: <b>{escape(session.date or 'unscheduled')}</b> | Category: {escape(session.category)} | "
            f"Total: {total_duration(session.drills):g} min",
            styles["BodyText"],
        ),
    ]
    if session.notes:
        story.append(Paragraph(f"Notes: {escape(session.notes)}", styles["BodyText"]))
    story.append(Spacer(1, 0.2 * inch))

    story.append(Paragraph("Drills", styles["Heading2"]))
    if session.drills:
        rows = [["#", "Drill", "Min", "Skill", "Difficulty", "Players", "Video"]]
        for position, drill in enumerate(session.drills, start=1):
            rows.append(
                [
                    str(position),
                    drill.title,
                    f"{drill.duration:g}",
                    drill.skill,
                    drill.difficulty,
                    ", ".join(player_names(drill.assigned_players, players)) or "All",
                    "yes" if drill.video_url else "",
                ]
            )
        widths = [0.3 * inch, 1.9 * inch, 0.5 * inch, 0.9 * inch, 0.9 * inch, 1.8 * inch, 0.5 * inch]
        story.append(_styled_table(rows, widths))
    else:
        story.append(Paragraph("No drills planned.", styles["BodyText"]))

    videos = [drill for drill in session.drills if drill.video_url]
    if videos:
        story.append(Spacer(1, 0.2 * inch))
        story.append(Paragraph("Videos", styles["Heading3"]))
        for drill in videos:
            url = escape(drill.video_url)
            story.append(
                Paragraph(f'{escape(drill.title)}: <link href="{url}">{url}</link>', styles["BodyText"])
            )

    results = _shooting_rows(session, players)
    if results:
        story.append(Spacer(1, 0.3 * inch))
        story.append(Paragraph("Shooting Results", styles["Heading2"]))
        widths = [1.8 * inch, 2.2 * inch, 1.2 * inch, 1.0 * inch]
        story.append(_styled_table([["Player", "Drill", "Made/Att", "%"]] + results, widths))

    story.append(Spacer(1, 0.3 * inch))
    story.append(Paragraph(f"AllBall Practice Planner v{_app_version()}", styles["Italic"]))

    destination = Path(destination)
    destination.parent.mkdir(parents=True, exist_ok=True)
    doc = SimpleDocTemplate(str(destination), pagesize=letter, title=session.name or "Practice Plan")
    doc.build(story)
    return destination


def _shooting_rows(session: Session, players: Sequence[Player]) -> list[list[str]]:
    names = {player.id: player.name for player in players}
    rows: list[list[str]] = []
    for drill in session.drills:
        for player_id, entry in session.performance_metrics.get(drill.unique_id, {}).items():
            if entry.shots_attempted <= 0:
                continue
            rows.append(
                [
                    names.get(player_id, player_id),
                    drill.title,
                    f"{entry.shots_made}/{entry.shots_attempted}",
                    f"{entry.percentage:.1f}",
                ]
            )
    return rows


def plot_shooting_progress(player: Player, destination: Path) -> Path:
    """Line chart of shooting percentage per recorded date."""
    import matplotlib

    matplotlib.use("Agg", force=False)
    import matplotlib.pyplot as plt

    history = shooting_history_frame(player)
    if history.empty:
        raise ValueError(f"No shooting data recorded for {player.name}.")

    labels = pd.to_datetime(history["date"]).dt.strftime("%Y-%m-%d").fillna("undated").tolist()
    destination = Path(destination)
    destination.parent.mkdir(parents=True, exist_ok=True)
    fig, ax = plt.subplots()
    ax.plot(range(len(labels)), history["percentage"], marker="o", linewidth=2, label="Shooting Percentage")
    ax.set_xticks(range(len(labels)))
    ax.set_xticklabels(labels)
    ax.set_ylim(0, 100)
    ax.set_title(f"{player.name}'s Shooting Progress")
    ax.set_xlabel("Date")
    ax.set_ylabel("Percentage (%)")
    ax.legend()
    plt.setp(ax.get_xticklabels(), rotation=45, ha="right")
    fig.tight_layout()
    fig.savefig(destination, dpi=150)
    plt.close(fig)
    return destination


def export_sessions_csv(sessions: Sequence[Session], destination: Path) -> Path:
    """One CSV row per drill instance of every session."""
    frame = drill_usage_frame(sessions)
    destination = Path(destination)
    destination.parent.mkdir(parents=True, exist_ok=True)
    frame.to_csv(destination, index=False)
    return destination
