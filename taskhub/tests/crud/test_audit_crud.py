import pytest
from datetime import datetime, timedelta
from unittest.mock import patch
from sqlalchemy.orm import Session

from taskhub.crud import audit as crud_audit
from taskhub.models.audit import AuditLog
from taskhub.models.user import User as UserModel
from taskhub.schemas.audit import TaskEventDetails, ExportEventDetails


def test_log_action_stores_typed_details(db: Session, test_user: UserModel):
    entry = crud_audit.log_action(
        db,
        user_id=test_user.id,
        action="task_update",
        resource="task",
        resource_id=7,
        details=TaskEventDetails(title="Pay rent", status="pending", changed_fields=["title"]),
        ip_address="10.0.0.1",
        user_agent="pytest",
    )
    assert entry is not None
    assert entry.id is not None
    assert entry.status == "success"
    assert entry.details == {"title": "Pay rent", "status": "pending", "changed_fields": ["title"]}
    assert entry.timestamp is not None

def test_log_action_without_details(db: Session, test_user: UserModel):
    entry = crud_audit.log_action(db, user_id=test_user.id, action="user_logout", resource="user")
    assert entry.details == {}

@pytest.mark.parametrize("kwargs", [
    {"action": "task_explode", "resource": "task"},
    {"action": "task_create", "resource": "planet"},
    {"action": "task_create", "resource": "task", "status": "meh"},
])
def test_log_action_invalid_values_return_none(db: Session, test_user: UserModel, kwargs):
    assert crud_audit.log_action(db, user_id=test_user.id, **kwargs) is None
    assert db.query(AuditLog).count() == 0

def test_log_action_swallows_store_failures(db: Session, test_user: UserModel):
    with patch.object(db, "commit", side_effect=RuntimeError("disk full")):
        result = crud_audit.log_action(db, user_id=test_user.id, action="task_create", resource="task")
    assert result is None
    # пользователь, созданный до сбоя, не пострадал
    assert db.get(UserModel, test_user.id) is not None

def test_user_activity_newest_first(db: Session, test_user: UserModel, other_user: UserModel):
    for action in ("user_login", "task_create", "task_update"):
        crud_audit.log_action(db, user_id=test_user.id, action=action, resource="task")
    crud_audit.log_action(db, user_id=other_user.id, action="user_login", resource="user")

    activity = crud_audit.get_user_activity(db, test_user.id)
    assert [e.action for e in activity] == ["task_update", "task_create", "user_login"]
    assert len(crud_audit.get_user_activity(db, test_user.id, limit=2)) == 2
    assert len(crud_audit.get_recent_logs(db)) == 4

def test_failed_actions_window(db: Session, test_user: UserModel):
    now = datetime(2026, 3, 10, 12, 0)
    recent = crud_audit.log_action(
        db, user_id=test_user.id, action="export_data", resource="export",
        details=ExportEventDetails(format="pdf", task_count=3), status="failure", error_message="boom",
    )
    old = crud_audit.log_action(db, user_id=test_user.id, action="task_delete", resource="task", status="error")
    crud_audit.log_action(db, user_id=test_user.id, action="task_create", resource="task")
    recent.timestamp = now - timedelta(days=1)
    old.timestamp = now - timedelta(days=30)
    db.commit()

    failed = crud_audit.get_failed_actions(db, days=7, now=now)
    assert [e.id for e in failed] == [recent.id]
    assert failed[0].error_message == "boom"

def test_failed_actions_limit_applied_in_query(db: Session, test_user: UserModel):
    for i in range(5):
        crud_audit.log_action(db, user_id=test_user.id, action="task_delete", resource="task",
                              resource_id=i, status="failure")
    failed = crud_audit.get_failed_actions(db, days=7, limit=2)
    assert len(failed) == 2
    assert [e.resource_id for e in failed] == [4, 3]

def test_resource_activity(db: Session, test_user: UserModel):
    crud_audit.log_action(db, user_id=test_user.id, action="task_create", resource="task", resource_id=1)
    crud_audit.log_action(db, user_id=test_user.id, action="task_update", resource="task", resource_id=1)
    crud_audit.log_action(db, user_id=test_user.id, action="task_update", resource="task", resource_id=2)
    activity = crud_audit.get_resource_activity(db, "task", 1)
    assert {e.action for e in activity} == {"task_create", "task_update"}
