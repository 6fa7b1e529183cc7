from campusgate.domain.lifecycle import EventStatus, EventType, effective_status, registration_window_error

__all__ = ["EventStatus", "EventType", "effective_status", "registration_window_error"]
