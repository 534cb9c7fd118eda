"""cali - Google Calendar events from the command line.

Usage:
    from cali.calendar import AddEventRequest
    from cali.config import load_config
    from cali.service import CalendarService

    service = CalendarService(load_config())
    service.add_event(AddEventRequest(summary="Team Meeting"))
"""

__version__ = "0.1.0"
