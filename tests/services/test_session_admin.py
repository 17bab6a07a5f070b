from datetime import date, timedelta

import pytest
from sqlalchemy.orm import Session

from demo_scheduling.constants.signup import SignupStatus
from demo_scheduling.core.exceptions import (
    CapacityConflictError,
    ForbiddenError,
    InvalidRatingError,
    InvalidStateError,
    SessionInactiveError,
    SessionNotFoundError,
)
from demo_scheduling.crud import demo_session as demo_session_crud
from demo_scheduling.crud import demo_signup as demo_signup_crud
from demo_scheduling.schemas.demo_session import DemoSessionCreate, DemoSessionUpdate
from demo_scheduling.services.admission import admission_controller
from demo_scheduling.services.lifecycle import signup_lifecycle
from demo_scheduling.services.session_admin import session_admin
from tests.utils.auth import admin, student
from tests.utils.demo_session import create_random_demo_session, sign_up


def test_bulk_create_sessions(db_session: Session):
    start = date.today() + timedelta(days=1)
    sessions = session_admin.bulk_create_sessions(
        db_session,
        objs_in=[
            DemoSessionCreate(session_date=start + timedelta(days=i), max_scheduled=5)
            for i in range(3)
        ],
    )
    assert len(sessions) == 3
    assert len(session_admin.list_sessions(db_session)) == 3


def test_update_session_fields(db_session: Session):
    session_obj = create_random_demo_session(db_session, max_scheduled=2)

    updated = session_admin.update_session(
        db_session,
        session_id=session_obj.id,
        obj_in=DemoSessionUpdate(title="Renamed", max_scheduled=6),
    )

    assert updated.title == "Renamed"
    assert updated.max_scheduled == 6
    assert updated.available_slots == 6


def test_shrinking_capacity_below_live_count_is_refused(db_session: Session):
    session_obj = create_random_demo_session(db_session, max_scheduled=3)
    sign_up(db_session, session_obj, "student_x")
    sign_up(db_session, session_obj, "student_y")

    with pytest.raises(CapacityConflictError):
        session_admin.update_session(
            db_session,
            session_id=session_obj.id,
            obj_in=DemoSessionUpdate(max_scheduled=1, title="Should not stick"),
        )

    db_session.refresh(session_obj)
    assert session_obj.max_scheduled == 3
    assert session_obj.title == "Friday Demos"
    assert session_obj.signup_count == 2


def test_shrinking_capacity_to_live_count_is_allowed(db_session: Session):
    session_obj = create_random_demo_session(db_session, max_scheduled=3)
    sign_up(db_session, session_obj, "student_x")
    sign_up(db_session, session_obj, "student_y")

    updated = session_admin.update_session(
        db_session, session_id=session_obj.id, obj_in=DemoSessionUpdate(max_scheduled=2)
    )
    assert updated.max_scheduled == 2
    assert updated.available_slots == 0


def test_update_null_required_field_is_ignored(db_session: Session):
    session_obj = create_random_demo_session(db_session, max_scheduled=3)
    updated = session_admin.update_session(
        db_session,
        session_id=session_obj.id,
        obj_in=DemoSessionUpdate(max_scheduled=None, session_date=None, notes="bring laptops"),
    )
    assert updated.max_scheduled == 3
    assert updated.notes == "bring laptops"


def test_update_unknown_session(db_session: Session):
    with pytest.raises(SessionNotFoundError):
        session_admin.update_session(
            db_session, session_id="dses_missing", obj_in=DemoSessionUpdate(title="x")
        )


def test_deactivate_keeps_existing_signups(db_session: Session):
    session_obj = create_random_demo_session(db_session, max_scheduled=5)
    signups = [sign_up(db_session, session_obj, f"student_{i}") for i in range(3)]

    session_admin.deactivate(db_session, session_id=session_obj.id)

    for signup in signups:
        db_session.refresh(signup)
        assert signup.status == SignupStatus.SIGNED_UP
    db_session.refresh(session_obj)
    assert session_obj.signup_count == 3

    with pytest.raises(SessionInactiveError):
        sign_up(db_session, session_obj, "student_new")


def test_flag_toggles(db_session: Session):
    session_obj = create_random_demo_session(db_session)

    assert session_admin.cancel(db_session, session_id=session_obj.id).is_cancelled is True
    assert session_admin.uncancel(db_session, session_id=session_obj.id).is_cancelled is False
    assert session_admin.deactivate(db_session, session_id=session_obj.id).is_active is False
    assert session_admin.reactivate(db_session, session_id=session_obj.id).is_active is True


def test_flags_in_update_patch(db_session: Session):
    session_obj = create_random_demo_session(db_session)
    updated = session_admin.update_session(
        db_session, session_id=session_obj.id, obj_in=DemoSessionUpdate(is_cancelled=True)
    )
    assert updated.is_cancelled is True
    assert updated.is_active is True


def test_update_patch_cannot_reactivate_archived_session(db_session: Session):
    session_obj = create_random_demo_session(db_session)
    sign_up(db_session, session_obj, "student_x")
    session_admin.delete_session(db_session, session_id=session_obj.id)

    with pytest.raises(InvalidStateError):
        session_admin.update_session(
            db_session,
            session_id=session_obj.id,
            obj_in=DemoSessionUpdate(is_active=True, title="After"),
        )

    db_session.refresh(session_obj)
    assert session_obj.is_active is False
    assert session_obj.title == "Friday Demos"

    updated = session_admin.update_session(
        db_session,
        session_id=session_obj.id,
        obj_in=DemoSessionUpdate(is_cancelled=True, title="After"),
    )
    assert updated.is_cancelled is True
    assert updated.title == "After"
    assert updated.is_active is False


def test_delete_unreferenced_session_removes_it(db_session: Session):
    session_obj = create_random_demo_session(db_session)
    session_id = session_obj.id

    result, archived = session_admin.delete_session(db_session, session_id=session_id)

    assert result is None
    assert archived is False
    assert demo_session_crud.get(db_session, session_id) is None


def test_delete_referenced_session_archives_it(db_session: Session):
    session_obj = create_random_demo_session(db_session)
    signup = sign_up(db_session, session_obj, "student_x")
    admission_controller.release(db_session, signup_id=signup.id, caller=student("student_x"))

    result, archived = session_admin.delete_session(db_session, session_id=session_obj.id)

    assert archived is True
    assert result.is_archived is True
    assert result.is_active is False
    assert demo_signup_crud.get(db_session, signup.id) is not None
    assert session_obj.id not in {s.id for s in session_admin.list_sessions(db_session)}

    with pytest.raises(InvalidStateError):
        session_admin.reactivate(db_session, session_id=session_obj.id)


def test_list_signups_includes_every_status(db_session: Session):
    session_obj = create_random_demo_session(db_session)
    kept = sign_up(db_session, session_obj, "student_x")
    dropped = sign_up(db_session, session_obj, "student_y")
    admission_controller.release(db_session, signup_id=dropped.id, caller=admin())

    signups = session_admin.list_signups(db_session, session_id=session_obj.id)
    assert {s.id for s in signups} == {kept.id, dropped.id}

    with pytest.raises(SessionNotFoundError):
        session_admin.list_signups(db_session, session_id="dses_missing")


def test_record_feedback_on_presented_signup(db_session: Session):
    session_obj = create_random_demo_session(db_session)
    signup = sign_up(db_session, session_obj, "student_x")
    signup_lifecycle.transition(
        db_session, signup_id=signup.id, to_status=SignupStatus.PRESENTED, caller=admin(), rating=3
    )

    result = session_admin.record_feedback(
        db_session, signup_id=signup.id, caller=admin(), attendance_notes="Solid", rating=4
    )

    assert result.status == SignupStatus.PRESENTED
    assert result.rating == 4
    assert result.attendance_notes == "Solid"


def test_record_feedback_rules(db_session: Session):
    session_obj = create_random_demo_session(db_session)
    live = sign_up(db_session, session_obj, "student_x")
    absent = sign_up(db_session, session_obj, "student_y")
    signup_lifecycle.transition(
        db_session, signup_id=absent.id, to_status=SignupStatus.NO_SHOW, caller=admin()
    )

    with pytest.raises(InvalidStateError):
        session_admin.record_feedback(db_session, signup_id=live.id, caller=admin(), rating=4)
    with pytest.raises(InvalidRatingError):
        session_admin.record_feedback(db_session, signup_id=absent.id, caller=admin(), rating=4)
    with pytest.raises(ForbiddenError):
        session_admin.record_feedback(
            db_session, signup_id=absent.id, caller=student("student_y"), attendance_notes="x"
        )

    result = session_admin.record_feedback(
        db_session, signup_id=absent.id, caller=admin(), attendance_notes="Emailed later"
    )
    assert result.status == SignupStatus.NO_SHOW
    assert result.attendance_notes == "Emailed later"
