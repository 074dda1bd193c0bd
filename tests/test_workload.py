"""
Workload scoring, staff recommendation and assignment.
"""
import pytest

from app.core.exceptions import (
    InvalidAssignee,
    InvalidTransition,
    NoEligibleStaff,
    NotFoundError,
    TerminalState,
)
from app.models.enums.complaint_status import ComplaintStatus, ComplaintPriority
from app.models.enums.user_role import UserRole
from app.models.users.user_models import User
from app.services.support.workload_service import (
    is_eligible,
    calculate_workload_score,
    recommend_staff,
    auto_assign_complaint,
    manual_assign_complaint,
    get_staff_workload,
)
from app.utils.datetime_utils import utc_now


class SilentGateway:
    def __init__(self):
        self.assigned = []

    async def notify_escalated(self, complaint, reason):
        pass

    async def notify_assigned(self, complaint, staff, assigner):
        self.assigned.append((complaint.id, staff.id))

    async def notify_escalation_summary(self, summary):
        pass


# ===================== SCORING =====================


def test_score_examples():
    # A: 2 open, 0 high; B: 1 open, 1 high; both in the category's department
    assert calculate_workload_score(2, 0, same_department=True, is_admin=False) == 2
    assert calculate_workload_score(1, 1, same_department=True, is_admin=False) == 3


def test_department_mismatch_and_admin_bonus():
    assert calculate_workload_score(0, 0, same_department=False, is_admin=False) == 1
    # Admins never pay the mismatch penalty and get the bonus
    assert calculate_workload_score(0, 0, same_department=False, is_admin=True) == -0.5
    assert calculate_workload_score(2, 1, same_department=True, is_admin=True) == 3.5


def test_score_is_monotonic_in_open_and_high_counts():
    for same_department in (True, False):
        for is_admin in (True, False):
            scores = [
                [calculate_workload_score(o, h, same_department=same_department, is_admin=is_admin) for h in range(5)]
                for o in range(5)
            ]
            for o in range(5):
                for h in range(5):
                    if o + 1 < 5:
                        assert scores[o + 1][h] >= scores[o][h]
                    if h + 1 < 5:
                        assert scores[o][h + 1] >= scores[o][h]


def test_is_eligible():
    it_staff = User(username="a", role=UserRole.STAFF, department="IT", is_active=True)
    general = User(username="b", role=UserRole.STAFF, department="General", is_active=True)
    admin = User(username="c", role=UserRole.ADMIN, department="Management", is_active=True)
    hr_staff = User(username="d", role=UserRole.STAFF, department="HR", is_active=True)
    inactive = User(username="e", role=UserRole.STAFF, department="IT", is_active=False)
    customer = User(username="f", role=UserRole.USER, department="IT", is_active=True)

    assert is_eligible(it_staff, "IT")
    assert is_eligible(general, "IT")
    assert is_eligible(admin, "IT")
    assert not is_eligible(hr_staff, "IT")
    assert not is_eligible(inactive, "IT")
    assert not is_eligible(customer, "IT")


# ===================== RECOMMEND =====================


async def test_recommend_orders_by_score(db_session, seed_data, make_complaint):
    ivan, irene = seed_data["it_staff"], seed_data["it_staff_2"]
    for _ in range(2):
        await make_complaint(status=ComplaintStatus.ASSIGNED, assigned_to_id=ivan)
    await make_complaint(status=ComplaintStatus.ASSIGNED, assigned_to_id=irene, priority=ComplaintPriority.HIGH)
    # Closed work does not count
    await make_complaint(status=ComplaintStatus.CLOSED, assigned_to_id=irene, priority=ComplaintPriority.URGENT)

    result = await recommend_staff(db_session, seed_data["network"])

    scores = {s["staff_id"]: s["score"] for s in result["available_staff"]}
    assert scores[ivan] == 2
    assert scores[irene] == 3

    order = [s["staff_id"] for s in result["available_staff"]]
    assert order.index(ivan) < order.index(irene)
    assert [s["score"] for s in result["available_staff"]] == sorted(scores.values())

    recommended = {s["staff_id"] for s in result["recommended"]}
    assert {ivan, irene} <= recommended

    # HR staff is neither in the department nor General
    assert seed_data["hr_staff"] not in scores
    assert result["summary"]["total_staff"] == len(scores)


async def test_recommend_threshold(db_session, seed_data, make_complaint):
    ivan = seed_data["it_staff"]
    for _ in range(3):
        await make_complaint(status=ComplaintStatus.IN_PROGRESS, assigned_to_id=ivan, priority=ComplaintPriority.URGENT)

    result = await recommend_staff(db_session, seed_data["network"])

    ivan_row = next(s for s in result["available_staff"] if s["staff_id"] == ivan)
    assert ivan_row["score"] == 9
    assert ivan_row["recommended"] is False
    assert ivan not in {s["staff_id"] for s in result["recommended"]}


async def test_recommend_unknown_category(db_session, seed_data):
    with pytest.raises(NotFoundError):
        await recommend_staff(db_session, 424242)


# ===================== AUTO ASSIGN =====================


async def test_auto_assign_picks_lowest_score(db_session, seed_data, make_complaint):
    # Keep the admin busy so department staff compete
    for _ in range(3):
        await make_complaint(status=ComplaintStatus.ASSIGNED, assigned_to_id=seed_data["admin"])
    await make_complaint(status=ComplaintStatus.ASSIGNED, assigned_to_id=seed_data["it_staff"])
    await make_complaint(status=ComplaintStatus.ASSIGNED, assigned_to_id=seed_data["general"])
    complaint_id = await make_complaint()
    gateway = SilentGateway()

    complaint, workload = await auto_assign_complaint(db_session, complaint_id, None, gateway=gateway)

    # Irene: 0 open in IT
    assert workload.staff.id == seed_data["it_staff_2"]
    assert complaint.assigned_to_id == seed_data["it_staff_2"]
    assert complaint.status == ComplaintStatus.ASSIGNED
    assert complaint.notes[-1].note == "Auto-assigned based on workload analysis. Staff workload score: 0"
    assert gateway.assigned == [(complaint_id, seed_data["it_staff_2"])]


async def test_auto_assign_ties_go_to_first_candidate(db_session, seed_data, make_complaint):
    for _ in range(3):
        await make_complaint(status=ComplaintStatus.ASSIGNED, assigned_to_id=seed_data["admin"])
    await make_complaint(status=ComplaintStatus.ASSIGNED, assigned_to_id=seed_data["general"])
    complaint_id = await make_complaint()

    _, workload = await auto_assign_complaint(db_session, complaint_id, None, gateway=SilentGateway())

    # Ivan and Irene both score 0; Ivan has the lower id
    assert workload.staff.id == seed_data["it_staff"]


async def test_auto_assign_refuses_assigned_and_terminal(db_session, seed_data, make_complaint):
    assigned_id = await make_complaint(status=ComplaintStatus.ASSIGNED, assigned_to_id=seed_data["it_staff"])
    resolved_id = await make_complaint(status=ComplaintStatus.RESOLVED, resolved_at=utc_now())

    with pytest.raises(InvalidTransition):
        await auto_assign_complaint(db_session, assigned_id, None, gateway=SilentGateway())
    with pytest.raises(TerminalState):
        await auto_assign_complaint(db_session, resolved_id, None, gateway=SilentGateway())


async def test_auto_assign_without_candidates(db_session, seed_data, make_complaint):
    for name in ("admin", "general"):
        user = await db_session.get(User, seed_data[name])
        user.is_active = False
    await db_session.commit()

    complaint_id = await make_complaint(category_id=seed_data["billing"])

    with pytest.raises(NoEligibleStaff):
        await auto_assign_complaint(db_session, complaint_id, None, gateway=SilentGateway())


# ===================== MANUAL ASSIGN =====================


async def test_manual_assign_and_reassign(db_session, seed_data, make_complaint):
    complaint_id = await make_complaint()
    admin = await db_session.get(User, seed_data["admin"])
    gateway = SilentGateway()

    first = await manual_assign_complaint(db_session, complaint_id, seed_data["it_staff"], admin, gateway=gateway)
    assert first.assigned_to_id == seed_data["it_staff"]

    admin = await db_session.get(User, seed_data["admin"])
    second = await manual_assign_complaint(db_session, complaint_id, seed_data["hr_staff"], admin, gateway=gateway)
    assert second.assigned_to_id == seed_data["hr_staff"]
    assert second.status_history[-1].remarks == "Complaint assigned to Hank HR"
    assert len(gateway.assigned) == 2


async def test_manual_assign_rejects_non_staff(db_session, seed_data, make_complaint):
    complaint_id = await make_complaint()
    admin = await db_session.get(User, seed_data["admin"])

    with pytest.raises(InvalidAssignee):
        await manual_assign_complaint(db_session, complaint_id, seed_data["customer"], admin, gateway=SilentGateway())
    with pytest.raises(InvalidAssignee):
        await manual_assign_complaint(db_session, complaint_id, 999_999, admin, gateway=SilentGateway())


async def test_manual_assign_refuses_closed(db_session, seed_data, make_complaint):
    complaint_id = await make_complaint(status=ComplaintStatus.CLOSED)
    admin = await db_session.get(User, seed_data["admin"])

    with pytest.raises(TerminalState):
        await manual_assign_complaint(db_session, complaint_id, seed_data["it_staff"], admin, gateway=SilentGateway())


# ===================== WORKLOAD =====================


async def test_staff_workload(db_session, seed_data, make_complaint):
    ivan = seed_data["it_staff"]
    await make_complaint(status=ComplaintStatus.IN_PROGRESS, assigned_to_id=ivan, priority=ComplaintPriority.URGENT)
    await make_complaint(status=ComplaintStatus.ASSIGNED, assigned_to_id=ivan)
    await make_complaint(status=ComplaintStatus.RESOLVED, assigned_to_id=ivan, resolved_at=utc_now())

    workload = await get_staff_workload(db_session, ivan)

    assert workload.open_assignments == 2
    assert workload.high_priority_assignments == 1
    assert workload.score == 4


async def test_staff_workload_unknown_or_customer(db_session, seed_data):
    with pytest.raises(NotFoundError):
        await get_staff_workload(db_session, seed_data["customer"])
