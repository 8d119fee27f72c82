"""ICS calendar import -- parse an uploaded event and match its attendees.

parse_ics() reads the first VEVENT of an ICS document with icalendar and
reduces it to a ParsedIcsEvent. match_attendees() resolves attendee and
organizer emails to people of the importing organization: exact email match
first, then a loose name match on the email local part.

Neither function touches the database; MeetingService loads the candidate
people and calls these.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from datetime import date, datetime, time, timedelta, timezone
from typing import Any

import structlog
from icalendar import Calendar

from src.manageros.core.errors import IcsParseError
from src.manageros.meetings.schemas import (
    ImportedParticipant,
    MatchedAttendees,
    ParsedIcsEvent,
    PersonRef,
)

logger = structlog.get_logger(__name__)

DEFAULT_TITLE = "Untitled Meeting"

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_MAILTO_RE = re.compile(r"^mailto:", re.IGNORECASE)
_LOCAL_PART_SEPARATORS = re.compile(r"[._-]")


# ── Parsing ─────────────────────────────────────────────────────────────────


def extract_email(value: Any) -> str | None:
    """Normalize a calendar address ("mailto:a@b.c", "a@b.c") to a lower-cased email.

    Returns None when the value does not look like an email address.
    """
    if not value:
        return None
    cleaned = _MAILTO_RE.sub("", str(value).strip()).strip()
    if _EMAIL_RE.match(cleaned):
        return cleaned.lower()
    return None


def _as_datetime(value: date | datetime) -> datetime:
    """Convert DTSTART/DTEND values to aware UTC datetimes.

    All-day events carry a date and start at midnight UTC; floating times
    are read as UTC.
    """
    if not isinstance(value, datetime):
        value = datetime.combine(value, time.min)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _minutes(delta: timedelta) -> int | None:
    minutes = round(delta.total_seconds() / 60)
    return minutes if minutes > 0 else None


def _text(event: Any, name: str) -> str | None:
    value = event.get(name)
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _addresses(value: Any) -> Iterable[Any]:
    # icalendar returns a single vCalAddress or a list for repeated properties
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def parse_ics(content: str | bytes) -> ParsedIcsEvent:
    """Parse ICS content and extract the first meeting event.

    Args:
        content: Raw ICS document.

    Returns:
        ParsedIcsEvent with title, start, duration in minutes, location and
        attendee/organizer emails.

    Raises:
        IcsParseError: If the document is unreadable, has no VEVENT, or the
            event has no start time.
    """
    try:
        calendar = Calendar.from_ical(content)
        events = calendar.walk("VEVENT")
        if not events:
            raise ValueError("No meeting event found in ICS file")
        event = events[0]

        if "DTSTART" not in event:
            raise ValueError("Event start time not found in ICS file")
        scheduled_at = _as_datetime(event.decoded("DTSTART"))

        duration: int | None = None
        if "DTEND" in event:
            duration = _minutes(_as_datetime(event.decoded("DTEND")) - scheduled_at)
        elif "DURATION" in event:
            duration = _minutes(event.decoded("DURATION"))

        attendee_emails = [
            email
            for email in (extract_email(a) for a in _addresses(event.get("ATTENDEE")))
            if email
        ]
        organizer_email = extract_email(event.get("ORGANIZER"))

        return ParsedIcsEvent(
            title=_text(event, "SUMMARY") or DEFAULT_TITLE,
            description=_text(event, "DESCRIPTION"),
            scheduled_at=scheduled_at,
            duration=duration,
            location=_text(event, "LOCATION"),
            attendee_emails=attendee_emails,
            organizer_email=organizer_email,
        )
    except Exception as exc:
        logger.warning("meetings.ics_parse_failed", error=str(exc))
        raise IcsParseError(str(exc) or None) from exc


# ── Attendee Matching ───────────────────────────────────────────────────────


def _match_email(people: Sequence[PersonRef], email: str) -> str | None:
    """Resolve one email to a person id, or None."""
    for person in people:
        if person.email and person.email.lower() == email.lower():
            return person.id

    local_part = email.split("@", 1)[0]
    name_from_email = _LOCAL_PART_SEPARATORS.sub(" ", local_part).lower().strip()
    if not name_from_email:
        return None
    for person in people:
        person_name = person.name.lower().strip()
        if not person_name:
            continue
        if (
            person_name == name_from_email
            or name_from_email in person_name
            or person_name in name_from_email
        ):
            return person.id
    return None


def match_attendees(
    people: Sequence[PersonRef],
    attendee_emails: Sequence[str],
    organizer_email: str | None = None,
) -> MatchedAttendees:
    """Match ICS attendees and organizer to people of an organization.

    Args:
        people: Candidate people (the organization's active people).
        attendee_emails: Normalized attendee emails from parse_ics().
        organizer_email: Normalized organizer email, if any.

    Returns:
        MatchedAttendees with one invited participant per matched person and
        the organizer's person as owner_id.
    """
    owner_id = _match_email(people, organizer_email) if organizer_email else None

    participants: list[ImportedParticipant] = []
    seen: set[str] = set()
    for email in dict.fromkeys(attendee_emails):
        person_id = _match_email(people, email)
        if person_id and person_id not in seen:
            seen.add(person_id)
            participants.append(ImportedParticipant(person_id=person_id))

    return MatchedAttendees(participants=participants, owner_id=owner_id)
