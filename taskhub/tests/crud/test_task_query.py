import math
import pytest
from datetime import datetime, timedelta
from sqlalchemy.orm import Session

from taskhub.crud import task as crud_task
from taskhub.crud.task_query import (
    TaskCriteria,
    parse_task_criteria,
    list_tasks,
    list_owner_tasks_for_export,
    list_all_tasks,
)
from taskhub.core.exceptions import ValidationError
from taskhub.models.user import User as UserModel

NOW = datetime(2026, 3, 10, 12, 0, 0)


@pytest.fixture
def mixed_tasks(db: Session, test_user: UserModel, other_user: UserModel, task_factory):
    """
    Задачи двух владельцев с разными статусами, приоритетами и категориями.
    """
    rows = [
        ("Pay rent", "Finance", "high", "pending", 1),
        ("Gym session", "Health", "low", "completed", 2),
        ("Quarterly report", "Work", "critical", "in-progress", 3),
        ("Buy groceries", "Shopping", "medium", "pending", 4),
        ("Report expenses", "Finance", "high", "completed", 5),
        ("Read a book", "Personal", "low", "cancelled", 6),
        ("Code review", "Work", "high", "pending", 7),
    ]
    mine = []
    for title, category, priority, status, days in rows:
        task = task_factory(test_user, now=NOW, title=title, category=category,
                            priority=priority, due_date=NOW + timedelta(days=days))
        if status != "pending":
            crud_task.transition_status(db, task.id, test_user, status, now=NOW)
        mine.append(task)
    for i in range(3):
        task_factory(other_user, now=NOW, title=f"Report of other {i}", category="Work", priority="high")
    return mine

# --- parse_task_criteria ---

def test_parse_defaults():
    criteria = parse_task_criteria({})
    assert criteria.sort_by == "due_date"
    assert criteria.sort_order == "asc"
    assert criteria.page == 1
    assert criteria.limit == 10
    assert criteria.offset == 0

def test_parse_full_criteria():
    criteria = parse_task_criteria({
        "status": "pending", "priority": "high", "category": "Work", "search": "  report ",
        "due_date_from": "2026-03-01", "due_date_to": "2026-03-31",
        "sort_by": "priority", "sort_order": "desc", "page": "3", "limit": "25",
    })
    assert criteria.search == "report"
    assert criteria.due_date_from == datetime(2026, 3, 1, 0, 0)
    assert criteria.due_date_to.date() == datetime(2026, 3, 31).date()
    assert criteria.due_date_to.hour == 23
    assert criteria.offset == 50

@pytest.mark.parametrize("raw, field", [
    ({"status": "done"}, "status"),
    ({"priority": "urgent"}, "priority"),
    ({"sort_by": "owner"}, "sort_by"),
    ({"sort_order": "up"}, "sort_order"),
    ({"page": "0"}, "page"),
    ({"limit": "101"}, "limit"),
    ({"limit": "abc"}, "limit"),
    ({"due_date_from": "yesterday"}, "due_date_from"),
    ({"owner": "42"}, "owner"),
])
def test_parse_rejects_invalid_values(raw, field):
    with pytest.raises(ValidationError) as exc_info:
        parse_task_criteria(raw)
    assert field in {e["field"] for e in exc_info.value.errors}

def test_parse_unknown_key_message():
    with pytest.raises(ValidationError, match="Unrecognized filter parameter"):
        parse_task_criteria({"user_id": "1"})

# --- list_tasks ---

def test_list_never_leaks_other_owners(db: Session, test_user: UserModel, other_user: UserModel, mixed_tasks):
    page = list_tasks(db, test_user.id, TaskCriteria(limit=100))
    assert page.total == len(mixed_tasks)
    assert all(t.user_id == test_user.id for t in page.items)

    searched = list_tasks(db, test_user.id, TaskCriteria(search="other", limit=100))
    assert searched.total == 0

def test_list_status_filter_exact(db: Session, test_user: UserModel, mixed_tasks):
    page = list_tasks(db, test_user.id, parse_task_criteria({"status": "completed"}))
    assert {t.title for t in page.items} == {"Gym session", "Report expenses"}
    assert all(t.status == "completed" for t in page.items)

def test_list_combined_filters_are_intersection(db: Session, test_user: UserModel, mixed_tasks):
    def ids(raw):
        raw = dict(raw, limit="100")
        return {t.id for t in list_tasks(db, test_user.id, parse_task_criteria(raw)).items}

    combined = ids({"status": "pending", "priority": "high", "search": "re"})
    assert combined == ids({"status": "pending"}) & ids({"priority": "high"}) & ids({"search": "re"})
    assert combined == {t.id for t in mixed_tasks if t.title in ("Pay rent", "Code review")}

def test_search_is_case_insensitive_across_fields(db: Session, test_user: UserModel, mixed_tasks, task_factory):
    task_factory(test_user, now=NOW, title="Call bank", description="About the MORTGAGE", category="Errands")
    by_title = list_tasks(db, test_user.id, TaskCriteria(search="REPORT", limit=100))
    assert {t.title for t in by_title.items} == {"Quarterly report", "Report expenses"}
    by_description = list_tasks(db, test_user.id, TaskCriteria(search="mortgage"))
    assert [t.title for t in by_description.items] == ["Call bank"]
    by_category = list_tasks(db, test_user.id, TaskCriteria(search="finan", limit=100))
    assert by_category.total == 2

def test_search_treats_wildcards_literally(db: Session, test_user: UserModel, mixed_tasks, task_factory):
    task_factory(test_user, now=NOW, title="Raise budget by 10%")
    page = list_tasks(db, test_user.id, TaskCriteria(search="10%"))
    assert [t.title for t in page.items] == ["Raise budget by 10%"]
    assert list_tasks(db, test_user.id, TaskCriteria(search="%")).total == 1

def test_due_date_range_is_inclusive(db: Session, test_user: UserModel, mixed_tasks):
    criteria = parse_task_criteria({
        "due_date_from": (NOW + timedelta(days=2)).isoformat(),
        "due_date_to": (NOW + timedelta(days=4)).date().isoformat(),
    })
    page = list_tasks(db, test_user.id, criteria)
    assert [t.title for t in page.items] == ["Gym session", "Quarterly report", "Buy groceries"]

def test_category_filter_exact(db: Session, test_user: UserModel, mixed_tasks):
    page = list_tasks(db, test_user.id, TaskCriteria(category="Work"))
    assert [t.title for t in page.items] == ["Quarterly report", "Code review"]
    assert list_tasks(db, test_user.id, TaskCriteria(category="work")).total == 0

@pytest.mark.parametrize("n, limit", [(7, 3), (7, 7), (6, 3), (7, 10), (1, 1)])
def test_pagination_last_page_holds_remainder(db: Session, test_user: UserModel, task_factory, n: int, limit: int):
    for i in range(n):
        task_factory(test_user, now=NOW, title=f"Task {i}", due_date=NOW + timedelta(hours=i))
    pages = math.ceil(n / limit)
    last = list_tasks(db, test_user.id, TaskCriteria(page=pages, limit=limit))
    expected = n % limit or limit
    assert len(last.items) == expected
    assert last.pages == pages
    assert last.total == n
    beyond = list_tasks(db, test_user.id, TaskCriteria(page=pages + 1, limit=limit))
    assert beyond.items == []

def test_pagination_is_contiguous(db: Session, test_user: UserModel, task_factory):
    for i in range(5):
        task_factory(test_user, now=NOW, title=f"Same due {i}", due_date=NOW)
    seen = []
    for page in (1, 2, 3):
        seen.extend(t.id for t in list_tasks(db, test_user.id, TaskCriteria(page=page, limit=2)).items)
    assert len(seen) == 5
    assert len(set(seen)) == 5

def test_empty_result_has_zero_pages(db: Session, test_user: UserModel):
    page = list_tasks(db, test_user.id, TaskCriteria())
    assert page.total == 0
    assert page.pages == 0

def test_sort_by_priority_is_semantic(db: Session, test_user: UserModel, mixed_tasks):
    asc = list_tasks(db, test_user.id, TaskCriteria(sort_by="priority", limit=100)).items
    assert [t.priority for t in asc] == ["low", "low", "medium", "high", "high", "high", "critical"]
    desc = list_tasks(db, test_user.id, TaskCriteria(sort_by="priority", sort_order="desc", limit=100)).items
    assert desc[0].priority == "critical"
    assert desc[-1].priority == "low"

def test_sort_by_status_is_semantic(db: Session, test_user: UserModel, mixed_tasks):
    items = list_tasks(db, test_user.id, TaskCriteria(sort_by="status", limit=100)).items
    assert [t.status for t in items] == [
        "pending", "pending", "pending", "in-progress", "completed", "completed", "cancelled",
    ]

def test_sort_by_title_desc(db: Session, test_user: UserModel, mixed_tasks):
    items = list_tasks(db, test_user.id, TaskCriteria(sort_by="title", sort_order="desc", limit=3)).items
    assert [t.title for t in items] == ["Report expenses", "Read a book", "Quarterly report"]

def test_default_sort_is_due_date_ascending(db: Session, test_user: UserModel, mixed_tasks):
    items = list_tasks(db, test_user.id, TaskCriteria(limit=100)).items
    assert [t.title for t in items] == [t.title for t in mixed_tasks]

# --- export / admin lists ---

def test_export_list_is_owner_only_by_due_date(db: Session, test_user: UserModel, mixed_tasks):
    tasks = list_owner_tasks_for_export(db, test_user.id)
    assert [t.id for t in tasks] == [t.id for t in mixed_tasks]

def test_list_all_tasks_filters(db: Session, test_user: UserModel, other_user: UserModel, mixed_tasks):
    assert len(list_all_tasks(db)) == len(mixed_tasks) + 3
    assert len(list_all_tasks(db, user_id=other_user.id)) == 3
    completed = list_all_tasks(db, status="completed")
    assert {t.title for t in completed} == {"Gym session", "Report expenses"}
    with pytest.raises(ValidationError):
        list_all_tasks(db, status="archived")
