# tests/test_task_query.py

from __future__ import annotations

import itertools
from datetime import datetime, timedelta

from taskmaster.tasks.task_models import Category, FilterState, Tag, Task
from taskmaster.tasks.task_query import filter_tasks, normalize_text, task_sort_key

T0 = datetime(2024, 1, 1, 12, 0)


def _task(
    title: str,
    *,
    description: str = "",
    completed: bool = False,
    due: datetime | None = None,
    created: datetime = T0,
    category: Category | None = None,
    tags: tuple[Tag, ...] = (),
) -> Task:
    return Task(
        title=title,
        description=description,
        completed=completed,
        due_date=due,
        created_at=created,
        category=category,
        tags=set(tags),
    )


def test_search_returns_only_open_matches() -> None:
    open_milk = _task("Buy milk")
    done_milk = _task("Buy milk", completed=True)
    dog = _task("Walk dog")

    out = filter_tasks([open_milk, done_milk, dog], FilterState(search_text="milk"))

    assert out == [open_milk]


def test_search_ignores_case_and_diacritics() -> None:
    cafe = _task("Café au lait")
    resume = _task("Update", description="Send the RÉSUMÉ")
    other = _task("Tea")

    assert filter_tasks([cafe, resume, other], FilterState(search_text="CAFE")) == [cafe]
    assert filter_tasks([cafe, resume, other], FilterState(search_text="resume")) == [resume]
    assert normalize_text("Ñandú") == "nandu"


def test_blank_search_text_is_inactive() -> None:
    tasks = [_task("a"), _task("b")]
    assert len(filter_tasks(tasks, FilterState(search_text="   "))) == 2


def test_category_filter_excludes_uncategorized_and_other_categories() -> None:
    work, home = Category(name="Work"), Category(name="Home")
    t_work = _task("report", category=work)
    t_home = _task("dishes", category=home)
    t_none = _task("misc")

    out = filter_tasks([t_work, t_home, t_none], FilterState(category=work))

    assert out == [t_work]


def test_tag_filter_requires_every_selected_tag() -> None:
    a, b, c = Tag(name="A"), Tag(name="B"), Tag(name="C")
    only_a = _task("only a", tags=(a,))
    a_b = _task("a and b", tags=(a, b))
    a_b_c = _task("a, b and c", tags=(a, b, c))

    out = filter_tasks([only_a, a_b, a_b_c], FilterState(tags={a, b}))

    assert only_a not in out
    assert set(out) == {a_b, a_b_c}


def test_show_completed_is_a_partition() -> None:
    work = Category(name="Work")
    tasks = [
        _task("report draft", category=work),
        _task("report final", category=work, completed=True),
        _task("report review", completed=True),
        _task("report notes"),
    ]

    open_side = filter_tasks(tasks, FilterState(search_text="report", show_completed=False))
    done_side = filter_tasks(tasks, FilterState(search_text="report", show_completed=True))

    assert set(open_side) & set(done_side) == set()
    assert set(open_side) | set(done_side) == set(tasks)
    assert all(not t.completed for t in open_side)
    assert all(t.completed for t in done_side)


def test_output_matches_conjunction_for_every_filter_combination() -> None:
    work, home = Category(name="Work"), Category(name="Home")
    a, b = Tag(name="A"), Tag(name="B")

    tasks: list[Task] = []
    for i, (title, category, tags, completed) in enumerate(
        itertools.product(
            ("quarterly report", "groceries"),
            (None, work, home),
            ((), (a,), (b,), (a, b)),
            (False, True),
        )
    ):
        tasks.append(
            _task(title, category=category, tags=tags, completed=completed, created=T0 + timedelta(minutes=i))
        )

    for search, category, selected, show_completed in itertools.product(
        ("", "REPORT"),
        (None, work),
        (set(), {a}, {a, b}),
        (False, True),
    ):
        state = FilterState(
            search_text=search, category=category, tags=set(selected), show_completed=show_completed
        )
        expected = {
            t
            for t in tasks
            if (not search or "report" in t.title)
            and (category is None or t.category is category)
            and {x.id for x in selected} <= {x.id for x in t.tags}
            and t.completed == show_completed
        }

        out = filter_tasks(tasks, state)

        assert set(out) == expected, state
        assert len(out) == len(expected)


def test_sort_by_due_date_then_newest_created() -> None:
    jan10 = datetime(2024, 1, 10, 9, 0)
    jan12 = datetime(2024, 1, 12, 9, 0)

    late = _task("late", due=jan12, created=T0)
    early_old = _task("early old", due=jan10, created=T0)
    early_new = _task("early new", due=jan10, created=T0 + timedelta(hours=1))
    undated_old = _task("undated old", created=T0)
    undated_new = _task("undated new", created=T0 + timedelta(days=1))

    out = filter_tasks([undated_old, late, early_old, undated_new, early_new], FilterState())

    assert out == [early_new, early_old, late, undated_new, undated_old]
    assert task_sort_key(undated_new) > task_sort_key(late)


def test_duplicates_are_collapsed_and_empty_result_is_valid() -> None:
    t = _task("once")

    assert filter_tasks([t, t], FilterState()) == [t]
    assert filter_tasks([t], FilterState(search_text="nothing")) == []
