"""
Live Sessions Module

Scheduled live workshops attached to LIVE courses:
1. Lifecycle state (UPCOMING, STARTING_SOON, LIVE_NOW, ENDED) from the
   session clock
2. Reminder emails 10 to 15 minutes before start, sent once per start time
3. Participant status views and trainer rescheduling

API Endpoints:
- GET /cron/workshop-reminders - Reminder pass (bearer CRON_SECRET)
- GET /live-sessions/upcoming - Caller's sessions in the next 24 hours
- GET /live-sessions/{course_id} - Session state, countdown and links
- PATCH /live-sessions/{course_id}/schedule - Reschedule

Background Jobs (via APScheduler, optional):
- send_workshop_reminders: Runs every minute when WORKSHOP_REMINDERS_IN_PROCESS=true
"""

from .jobs import register_live_session_jobs
from .router import cron_router, router

__all__ = ["router", "cron_router", "register_live_session_jobs"]
