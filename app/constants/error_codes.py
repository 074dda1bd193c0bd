# app/constants/error_codes.py

from enum import Enum


class ErrorCode(str, Enum):
    # ---------------- GENERIC ----------------
    VALIDATION_ERROR = "VALIDATION_ERROR"
    UNAUTHORIZED = "UNAUTHORIZED"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    INTERNAL_ERROR = "INTERNAL_ERROR"

    # ---------------- COMPLAINTS ----------------
    COMPLAINT_NOT_FOUND = "COMPLAINT_NOT_FOUND"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    ALREADY_ESCALATED = "ALREADY_ESCALATED"
    TERMINAL_STATE = "TERMINAL_STATE"

    # ---------------- CATEGORIES ----------------
    CATEGORY_NOT_FOUND = "CATEGORY_NOT_FOUND"
    CATEGORY_NAME_EXISTS = "CATEGORY_NAME_EXISTS"
    CATEGORY_IN_USE = "CATEGORY_IN_USE"
    CATEGORY_INACTIVE = "CATEGORY_INACTIVE"

    # ---------------- ASSIGNMENT ----------------
    STAFF_NOT_FOUND = "STAFF_NOT_FOUND"
    NO_ELIGIBLE_STAFF = "NO_ELIGIBLE_STAFF"
    INVALID_ASSIGNEE = "INVALID_ASSIGNEE"

    # ---------------- SCHEDULER ----------------
    INVALID_INTERVAL = "INVALID_INTERVAL"
    SWEEP_IN_PROGRESS = "SWEEP_IN_PROGRESS"
