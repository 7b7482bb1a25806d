from enum import Enum


class ErrorCode(str, Enum):
    EVENT_NOT_FOUND = "EVENT_NOT_FOUND"
    EVENT_INVALID = "EVENT_INVALID"
    LOCATION_NOT_FOUND = "LOCATION_NOT_FOUND"
    STORE_FAILURE = "STORE_FAILURE"
    PERMISSION_DENIED = "PERMISSION_DENIED"

    SIGNUP_SHEET_NOT_FOUND = "SIGNUP_SHEET_NOT_FOUND"
    SIGNUP_SHEET_INVALID = "SIGNUP_SHEET_INVALID"
    SIGNUP_GROUP_NOT_FOUND = "SIGNUP_GROUP_NOT_FOUND"
    SIGNUP_POSITION_NOT_FOUND = "SIGNUP_POSITION_NOT_FOUND"
    SIGNUP_POSITION_FULL = "SIGNUP_POSITION_FULL"
    SIGNUP_NOT_FOUND = "SIGNUP_NOT_FOUND"
    SIGNUP_CLOSED = "SIGNUP_CLOSED"
    SIGNUP_CONTENDED = "SIGNUP_CONTENDED"
    CALENDAR_EVENT_DELETE_FAILED = "CALENDAR_EVENT_DELETE_FAILED"

    NO_EVENTS = "NO_EVENTS"
