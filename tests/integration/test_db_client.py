"""Integration tests for the SQLite record store."""

import pytest

from daydone.core import db_client
from daydone.core.db_client import DatabaseError, RecordNotFoundError, StaleRecordError
from daydone.core.errors import StoreErrorKind, classify_store_error


@pytest.fixture
async def user(sqlite_db):
    return await db_client.create_record(collection="users", data={"name": "Alice"})


@pytest.fixture
async def work_log(user):
    return await db_client.create_record(
        collection="daily_logs",
        data={"user_id": user["id"], "date": "2024-03-14", "hours_worked": 6.5, "notes": ""},
    )


@pytest.mark.integration
class TestCrud:
    """Round trips through the real database."""

    async def test_ids_are_strings(self, user, work_log):
        assert isinstance(user["id"], str)
        assert isinstance(work_log["user_id"], str)
        assert work_log["user_id"] == user["id"]
        assert work_log["version"] == 1

    async def test_get_missing_record(self, sqlite_db):
        with pytest.raises(RecordNotFoundError):
            await db_client.get_record(collection="users", record_id="999")

    async def test_non_numeric_id_is_not_found(self, sqlite_db):
        with pytest.raises(RecordNotFoundError):
            await db_client.get_record(collection="users", record_id="temp-abc")

    async def test_update_bumps_version(self, work_log):
        updated = await db_client.update_record(
            collection="daily_logs", record_id=work_log["id"], data={"hours_worked": 8}
        )

        assert updated["hours_worked"] == 8.0
        assert updated["version"] == 2

    async def test_stale_update_rejected(self, work_log):
        await db_client.update_record(collection="daily_logs", record_id=work_log["id"], data={"notes": "a"})

        with pytest.raises(StaleRecordError):
            await db_client.update_record(
                collection="daily_logs", record_id=work_log["id"], data={"notes": "b"}, expected_version=1
            )

        stored = await db_client.get_record(collection="daily_logs", record_id=work_log["id"])
        assert stored["notes"] == "a"

    async def test_update_missing_record(self, sqlite_db):
        with pytest.raises(RecordNotFoundError):
            await db_client.update_record(collection="users", record_id="999", data={"name": "x"})

    async def test_delete_records_batch(self, user, work_log):
        tasks = [
            await db_client.create_record(
                collection="tasks",
                data={"work_log_id": work_log["id"], "user_id": user["id"], "task_name": name, "status": "Started"},
            )
            for name in ("a", "b", "c")
        ]

        deleted = await db_client.delete_records(collection="tasks", record_ids=[tasks[0]["id"], tasks[2]["id"]])
        again = await db_client.delete_records(collection="tasks", record_ids=[tasks[0]["id"]])

        remaining = await db_client.list_records(collection="tasks")
        assert deleted == 2
        assert again == 0
        assert [t["task_name"] for t in remaining] == ["b"]

    async def test_list_with_window_filter_and_sort(self, user):
        for day, hours in [("2024-03-02", 1), ("2024-03-01", 2), ("2024-04-01", 3)]:
            await db_client.create_record(
                collection="daily_logs", data={"user_id": user["id"], "date": day, "hours_worked": hours}
            )

        records = await db_client.list_records(
            collection="daily_logs",
            filter_query=f'user_id = "{user["id"]}" && date >= "2024-03-01" && date <= "2024-03-31"',
            sort="date,id",
        )

        assert [r["date"] for r in records] == ["2024-03-01", "2024-03-02"]

    async def test_list_all_records_pages_through_everything(self, user):
        for day in range(1, 8):
            await db_client.create_record(
                collection="daily_logs", data={"user_id": user["id"], "date": f"2024-05-{day:02d}", "hours_worked": 1}
            )

        records = await db_client.list_all_records(collection="daily_logs", sort="date,id", per_page=3)

        assert [r["date"] for r in records] == [f"2024-05-{day:02d}" for day in range(1, 8)]

    async def test_get_first_record(self, user, work_log):
        found = await db_client.get_first_record(
            collection="daily_logs", filter_query=f'user_id = "{user["id"]}" && date = "2024-03-14"'
        )
        missing = await db_client.get_first_record(
            collection="daily_logs", filter_query=f'user_id = "{user["id"]}" && date = "2024-03-15"'
        )

        assert found["id"] == work_log["id"]
        assert missing is None


@pytest.mark.integration
class TestConstraints:
    """Schema constraints surface as classified errors."""

    async def test_one_log_per_user_and_date(self, user, work_log):
        with pytest.raises(DatabaseError) as exc_info:
            await db_client.create_record(
                collection="daily_logs", data={"user_id": user["id"], "date": "2024-03-14", "hours_worked": 1}
            )

        assert classify_store_error(exc_info.value)[0] == StoreErrorKind.UNIQUENESS_CONFLICT

    async def test_log_for_unknown_user(self, sqlite_db):
        with pytest.raises(DatabaseError) as exc_info:
            await db_client.create_record(collection="daily_logs", data={"user_id": 999, "date": "2024-03-14"})

        assert classify_store_error(exc_info.value)[0] == StoreErrorKind.REFERENTIAL_INTEGRITY

    async def test_task_must_belong_to_owner_of_log(self, user, work_log):
        other = await db_client.create_record(collection="users", data={"name": "Bob"})

        with pytest.raises(DatabaseError) as exc_info:
            await db_client.create_record(
                collection="tasks",
                data={"work_log_id": work_log["id"], "user_id": other["id"], "task_name": "x", "status": "Started"},
            )

        assert classify_store_error(exc_info.value)[0] == StoreErrorKind.REFERENTIAL_INTEGRITY

    async def test_negative_hours_rejected(self, user):
        with pytest.raises(DatabaseError, match="CHECK constraint failed"):
            await db_client.create_record(
                collection="daily_logs", data={"user_id": user["id"], "date": "2024-03-15", "hours_worked": -1}
            )

    async def test_unknown_status_rejected(self, user, work_log):
        with pytest.raises(DatabaseError, match="CHECK constraint failed"):
            await db_client.create_record(
                collection="tasks",
                data={"work_log_id": work_log["id"], "user_id": user["id"], "task_name": "x", "status": "Done"},
            )

    async def test_deleting_log_cascades(self, user, work_log):
        await db_client.create_record(
            collection="tasks",
            data={"work_log_id": work_log["id"], "user_id": user["id"], "task_name": "x", "status": "Started"},
        )

        await db_client.delete_records(collection="daily_logs", record_ids=[work_log["id"]])

        assert await db_client.list_records(collection="tasks") == []


@pytest.mark.integration
class TestFilterParsing:
    """Filter and sort translation."""

    def test_parse_filter(self):
        clause, params = db_client.parse_filter('user_id = "3" && date >= "2024-01-01"')

        assert clause == "user_id = ? AND date >= ?"
        assert params == [3, "2024-01-01"]

    def test_parse_or_group(self):
        clause, params = db_client.parse_filter('(status = "Started" || status = "Pending")')

        assert clause == "(status = ? OR status = ?)"
        assert params == ["Started", "Pending"]

    def test_contains_escapes_wildcards(self):
        clause, params = db_client.parse_filter('task_name ~ "50%_done"')

        assert clause == "task_name LIKE ? ESCAPE '\\'"
        assert params == ["%50\\%\\_done%"]

    @pytest.mark.parametrize(
        ("sort", "expected"),
        [
            ("", "id ASC"),
            ("-date,id", "date DESC, id ASC"),
            ("date DESC, id ASC", "date DESC, id ASC"),
            ("date; DROP TABLE users", "id ASC"),
        ],
    )
    def test_parse_sort(self, sort, expected):
        assert db_client.parse_sort(sort) == expected

    async def test_rejects_bad_collection_name(self):
        with pytest.raises(ValueError, match="Invalid collection name"):
            await db_client.list_records(collection="users; --")
