"""Meetings module -- meetings, dated instances, participants, and ICS import.

Provides SQLAlchemy models, pydantic schemas, visibility predicates,
MeetingRepository for async CRUD, and MeetingService with the meeting
actions used by the HTTP API.
"""
