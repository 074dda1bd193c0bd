from app.constants.activity_codes import ActivityCode


ACTIVITY_TEMPLATES = {
    # ---------------- CATEGORIES ----------------
    ActivityCode.CREATE_CATEGORY:
        "{actor_role} ({actor_email}) created category {target_name} for {department}",

    ActivityCode.UPDATE_CATEGORY:
        "{actor_role} ({actor_email}) updated category {target_name}: {changes}",

    ActivityCode.DELETE_CATEGORY:
        "{actor_role} ({actor_email}) deleted category {target_name}",

    # ---------------- COMPLAINTS ----------------
    ActivityCode.CREATE_COMPLAINT:
        "{actor_role} ({actor_email}) submitted complaint {ticket} due {deadline}",

    ActivityCode.UPDATE_COMPLAINT_PRIORITY:
        "{actor_role} ({actor_email}) changed priority of complaint {ticket} "
        "from {old_priority} → {new_priority}",

    ActivityCode.UPDATE_COMPLAINT_STATUS:
        "{actor_role} ({actor_email}) changed complaint {ticket} status "
        "from {old_status} → {new_status}",

    ActivityCode.REOPEN_COMPLAINT:
        "{actor_role} ({actor_email}) reopened complaint {ticket} as {new_status}",

    ActivityCode.ADD_COMPLAINT_NOTE:
        "{actor_role} ({actor_email}) added an internal note to complaint {ticket}",

    # ---------------- ASSIGNMENT ----------------
    ActivityCode.ASSIGN_COMPLAINT:
        "{actor_role} ({actor_email}) assigned complaint {ticket} to {staff_name}",

    ActivityCode.AUTO_ASSIGN_COMPLAINT:
        "{actor_role} ({actor_email}) auto-assigned complaint {ticket} "
        "to {staff_name} (score: {score})",

    ActivityCode.UNASSIGN_COMPLAINT:
        "{actor_role} ({actor_email}) unassigned complaint {ticket} from {staff_name}",

    # ---------------- ESCALATION ----------------
    ActivityCode.ESCALATE_COMPLAINT:
        "{actor_role} ({actor_email}) escalated complaint {ticket}: {reason}",

    ActivityCode.AUTO_ESCALATE_COMPLAINT:
        "{actor_role} ({actor_email}) escalated complaint {ticket} automatically: {reason}",

    ActivityCode.UPDATE_ESCALATION_INTERVAL:
        "{actor_role} ({actor_email}) changed escalation interval "
        "from {old_interval} to {new_interval} minutes",

    ActivityCode.RUN_ESCALATION_SWEEP:
        "{actor_role} ({actor_email}) ran escalation sweep manually: "
        "{escalated} escalated, {errors} errors",
}
