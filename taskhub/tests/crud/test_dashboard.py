import pytest
from datetime import datetime, timedelta
from sqlalchemy.orm import Session

from taskhub.crud import task as crud_task
from taskhub.crud import dashboard
from taskhub.models.user import User as UserModel

NOW = datetime(2026, 3, 10, 12, 0, 0)


def _ids(tasks):
    return [t.id for t in tasks]

def test_task_due_tomorrow_is_upcoming_only(db: Session, test_user: UserModel, task_factory):
    task = task_factory(test_user, now=NOW, priority="critical", due_date=datetime(2026, 3, 11, 9, 0))
    summary = dashboard.summarize(db, test_user.id, now=NOW)
    assert task.id in _ids(summary["upcoming_tasks"])
    assert task.id not in _ids(summary["tasks_due_today"])
    assert task.id not in _ids(summary["overdue_tasks"])

def test_overdue_task_leaves_overdue_after_completion(db: Session, test_user: UserModel, task_factory):
    task = task_factory(test_user, now=NOW - timedelta(days=3), due_date=NOW - timedelta(days=1))
    assert _ids(dashboard.overdue_tasks(db, test_user.id, now=NOW)) == [task.id]

    crud_task.transition_status(db, task.id, test_user, "completed", now=NOW)
    assert dashboard.overdue_tasks(db, test_user.id, now=NOW) == []
    assert task.completed_at == NOW

def test_cancelled_past_due_task_counts_as_overdue(db: Session, test_user: UserModel, task_factory):
    task = task_factory(test_user, now=NOW, due_date=NOW - timedelta(hours=2))
    crud_task.cancel_task(db, task.id, test_user, now=NOW)
    assert _ids(dashboard.overdue_tasks(db, test_user.id, now=NOW)) == [task.id]

def test_overdue_ordered_by_due_date(db: Session, test_user: UserModel, task_factory):
    late = task_factory(test_user, now=NOW, due_date=NOW - timedelta(hours=1))
    later = task_factory(test_user, now=NOW, due_date=NOW - timedelta(days=2))
    assert _ids(dashboard.overdue_tasks(db, test_user.id, now=NOW)) == [later.id, late.id]

def test_due_today_ordering(db: Session, test_user: UserModel, task_factory):
    low_morning = task_factory(test_user, now=NOW, priority="low", due_date=datetime(2026, 3, 10, 8, 0))
    critical_evening = task_factory(test_user, now=NOW, priority="critical", due_date=datetime(2026, 3, 10, 20, 0))
    high_late = task_factory(test_user, now=NOW, priority="high", due_date=datetime(2026, 3, 10, 23, 59))
    high_early = task_factory(test_user, now=NOW, priority="high", due_date=datetime(2026, 3, 10, 0, 0))
    task_factory(test_user, now=NOW, priority="critical", due_date=datetime(2026, 3, 11, 0, 0))

    today = dashboard.tasks_due_today(db, test_user.id, now=NOW)
    assert _ids(today) == [critical_evening.id, high_early.id, high_late.id, low_morning.id]

def test_upcoming_window_is_seven_days(db: Session, test_user: UserModel, task_factory):
    inside = task_factory(test_user, now=NOW, due_date=NOW + timedelta(days=7))
    task_factory(test_user, now=NOW, due_date=NOW + timedelta(days=7, seconds=1))
    done = task_factory(test_user, now=NOW, due_date=NOW + timedelta(days=1))
    crud_task.complete_task(db, done.id, test_user, now=NOW)
    assert _ids(dashboard.upcoming_tasks(db, test_user.id, now=NOW)) == [inside.id]

def test_completed_trend_groups_by_day_without_gaps_filled(db: Session, test_user: UserModel, task_factory):
    completions = [
        NOW - timedelta(days=1),
        NOW - timedelta(days=1, hours=2),
        NOW - timedelta(days=4),
        NOW - timedelta(days=10),
    ]
    for completed_at in completions:
        task = task_factory(test_user, now=NOW - timedelta(days=20))
        crud_task.complete_task(db, task.id, test_user, now=completed_at)

    reopened = task_factory(test_user, now=NOW - timedelta(days=20))
    crud_task.complete_task(db, reopened.id, test_user, now=NOW - timedelta(days=2))
    crud_task.transition_status(db, reopened.id, test_user, "pending", now=NOW)

    trend = dashboard.completed_trend(db, test_user.id, now=NOW)
    assert trend == [
        {"date": "2026-03-06", "count": 1},
        {"date": "2026-03-09", "count": 2},
    ]

def test_popular_categories_top_five(db: Session, test_user: UserModel, other_user: UserModel, task_factory):
    counts = {"Work": 4, "Health": 3, "Finance": 2, "Shopping": 2, "Personal": 1, "Education": 1}
    for category, count in counts.items():
        for _ in range(count):
            task_factory(test_user, now=NOW, category=category)
    for _ in range(10):
        task_factory(other_user, now=NOW, category="Gaming")

    popular = dashboard.popular_categories(db, test_user.id)
    assert popular == [
        {"category": "Work", "count": 4},
        {"category": "Health", "count": 3},
        {"category": "Finance", "count": 2},
        {"category": "Shopping", "count": 2},
        {"category": "Education", "count": 1},
    ]

def test_status_counts_default_to_zero(db: Session, test_user: UserModel):
    assert dashboard.status_counts(db, test_user.id) == {
        "pending": 0, "in-progress": 0, "completed": 0, "cancelled": 0,
    }

@pytest.mark.parametrize("statuses", [
    ["pending"],
    ["pending", "completed", "completed"],
    ["in-progress", "cancelled", "pending", "completed", "pending"],
])
def test_status_counts_sum_to_total(db: Session, test_user: UserModel, other_user: UserModel, task_factory, statuses):
    for status in statuses:
        task = task_factory(test_user, now=NOW)
        crud_task.transition_status(db, task.id, test_user, status, now=NOW)
    task_factory(other_user, now=NOW)

    counts = dashboard.status_counts(db, test_user.id)
    assert sum(counts.values()) == len(statuses)
    for status in set(statuses):
        assert counts[status] == statuses.count(status)

def test_summarize_is_owner_scoped(db: Session, test_user: UserModel, other_user: UserModel, task_factory):
    task_factory(other_user, now=NOW, due_date=NOW - timedelta(days=1))
    task_factory(other_user, now=NOW, due_date=NOW + timedelta(hours=1))
    summary = dashboard.summarize(db, test_user.id, now=NOW)
    assert summary["tasks_due_today"] == []
    assert summary["overdue_tasks"] == []
    assert summary["upcoming_tasks"] == []
    assert summary["popular_categories"] == []
    assert sum(summary["status_counts"].values()) == 0

# --- admin views ---

def test_admin_overview(db: Session, test_user: UserModel, other_user: UserModel, test_admin: UserModel, task_factory):
    task_factory(test_user, now=NOW, due_date=NOW - timedelta(days=1))
    done = task_factory(other_user, now=NOW)
    crud_task.complete_task(db, done.id, other_user, now=NOW)
    other_user.is_active = False
    db.commit()

    overview = dashboard.admin_overview(db, now=NOW)
    assert overview == {
        "user_count": 3,
        "active_users": 2,
        "task_count": 2,
        "completed_tasks": 1,
        "overdue_tasks": 1,
    }

def test_category_report_spans_all_users(db: Session, test_user: UserModel, other_user: UserModel, task_factory):
    task_factory(test_user, now=NOW, category="Work")
    task_factory(other_user, now=NOW, category="Work")
    task_factory(other_user, now=NOW, category="Health")
    assert dashboard.category_report(db) == [
        {"category": "Work", "count": 2},
        {"category": "Health", "count": 1},
    ]

def test_critical_and_overdue(db: Session, test_user: UserModel, other_user: UserModel, task_factory):
    critical = task_factory(test_user, now=NOW, priority="critical")
    overdue = task_factory(other_user, now=NOW, due_date=NOW - timedelta(days=1))
    closed = task_factory(other_user, now=NOW, priority="critical", due_date=NOW - timedelta(days=2))
    crud_task.complete_task(db, closed.id, other_user, now=NOW)

    report = dashboard.critical_and_overdue(db, now=NOW)
    assert _ids(report["critical_tasks"]) == [critical.id]
    assert _ids(report["overdue_tasks"]) == [overdue.id]
