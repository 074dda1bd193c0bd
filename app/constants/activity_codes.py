# app/constants/activity_codes.py

from enum import Enum


class ActivityCode(str, Enum):
    # ---------------- CATEGORIES ----------------
    CREATE_CATEGORY = "CREATE_CATEGORY"
    UPDATE_CATEGORY = "UPDATE_CATEGORY"
    DELETE_CATEGORY = "DELETE_CATEGORY"

    # ---------------- COMPLAINTS ----------------
    CREATE_COMPLAINT = "CREATE_COMPLAINT"
    UPDATE_COMPLAINT_PRIORITY = "UPDATE_COMPLAINT_PRIORITY"
    UPDATE_COMPLAINT_STATUS = "UPDATE_COMPLAINT_STATUS"
    REOPEN_COMPLAINT = "REOPEN_COMPLAINT"
    ADD_COMPLAINT_NOTE = "ADD_COMPLAINT_NOTE"

    # ---------------- ASSIGNMENT ----------------
    ASSIGN_COMPLAINT = "ASSIGN_COMPLAINT"
    AUTO_ASSIGN_COMPLAINT = "AUTO_ASSIGN_COMPLAINT"
    UNASSIGN_COMPLAINT = "UNASSIGN_COMPLAINT"

    # ---------------- ESCALATION ----------------
    ESCALATE_COMPLAINT = "ESCALATE_COMPLAINT"
    AUTO_ESCALATE_COMPLAINT = "AUTO_ESCALATE_COMPLAINT"
    UPDATE_ESCALATION_INTERVAL = "UPDATE_ESCALATION_INTERVAL"
    RUN_ESCALATION_SWEEP = "RUN_ESCALATION_SWEEP"
