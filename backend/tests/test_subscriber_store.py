"""
Newsletter Backend — Subscriber Store Tests
=============================================

What we test:
    ✅ Unique index raises DuplicateKeyError (including case variants)
    ✅ Lookups normalize the email
    ✅ update_status never touches subscribed_at
    ✅ Counts and GROUP BY breakdown
    ✅ Driver failures surface as StoreUnavailableError
"""

import pytest

from newsletter.database import Database
from newsletter.exceptions import DuplicateKeyError, StoreUnavailableError, ValidationError
from newsletter.services.subscriber_store import SubscriberFilter, SubscriberStore, normalize_email


class TestNormalizeEmail:

    def test_trims_and_lowercases(self):
        assert normalize_email("  Foo@Bar.COM\n") == "foo@bar.com"

    def test_none_is_empty(self):
        assert normalize_email(None) == ""


class TestInsert:

    @pytest.mark.asyncio
    async def test_insert_and_find(self, store):
        created = await store.insert("Foo@Example.com", source="footer")

        found = await store.find_by_email("  FOO@example.com ")
        assert created.email == "foo@example.com"
        assert found is not None
        assert found.id == created.id
        assert found.status == "active"

    @pytest.mark.asyncio
    async def test_duplicate_insert_raises_signal(self, store):
        await store.insert("dup@example.com", source="footer")

        with pytest.raises(DuplicateKeyError) as exc_info:
            await store.insert("DUP@example.com", source="other")

        assert exc_info.value.email == "dup@example.com"
        assert await store.count() == 1

    @pytest.mark.asyncio
    async def test_invalid_status_rejected_before_insert(self, store):
        with pytest.raises(ValidationError) as exc_info:
            await store.insert("a@example.com", source="footer", status="pending")

        assert exc_info.value.context["field"] == "status"
        assert await store.count() == 0

    @pytest.mark.asyncio
    async def test_store_usable_after_duplicate(self, store):
        await store.insert("dup@example.com", source="footer")
        with pytest.raises(DuplicateKeyError):
            await store.insert("dup@example.com", source="footer")

        await store.insert("next@example.com", source="footer")
        assert await store.count() == 2


class TestUpdateStatus:

    @pytest.mark.asyncio
    async def test_flip_keeps_subscribed_at(self, store):
        await store.insert("a@example.com", source="footer")
        before = await store.find_by_email("a@example.com")

        updated = await store.update_status("a@example.com", "unsubscribed")

        after = await store.find_by_email("a@example.com")
        assert updated.status == "unsubscribed"
        assert after.status == "unsubscribed"
        assert after.subscribed_at == before.subscribed_at
        assert after.source == "footer"

    @pytest.mark.asyncio
    async def test_source_overwritten_when_given(self, store):
        await store.insert("a@example.com", source="footer")

        await store.update_status("a@example.com", "active", source="blog-cta")

        assert (await store.find_by_email("a@example.com")).source == "blog-cta"

    @pytest.mark.asyncio
    async def test_missing_record_returns_none(self, store):
        assert await store.update_status("ghost@example.com", "unsubscribed") is None

    @pytest.mark.asyncio
    async def test_invalid_status_rejected(self, store):
        with pytest.raises(ValidationError):
            await store.update_status("a@example.com", "deleted")


class TestCounts:

    @pytest.mark.asyncio
    async def test_count_and_breakdown(self, store):
        await store.insert("a@example.com", source="footer")
        await store.insert("b@example.com", source="footer")
        await store.insert("c@example.com", source="footer", status="unsubscribed")

        assert await store.count() == 3
        assert await store.count("active") == 2
        assert await store.count_by_status() == {"active": 2, "unsubscribed": 1}
        assert sorted(await store.active_emails()) == ["a@example.com", "b@example.com"]

    @pytest.mark.asyncio
    async def test_filter_rejects_unknown_status(self):
        with pytest.raises(ValidationError):
            SubscriberFilter(status="pending")


class TestStoreUnavailable:

    @pytest.mark.asyncio
    async def test_driver_error_is_wrapped(self, tmp_path):
        db = Database(f"sqlite+aiosqlite:///{tmp_path / 'missing' / 'dir' / 'x.db'}", echo=False)
        await db.connect()
        store = SubscriberStore(db)
        try:
            with pytest.raises(StoreUnavailableError) as exc_info:
                await store.find_by_email("a@example.com")
        finally:
            await db.dispose()

        assert exc_info.value.context["operation"] == "find_by_email"

    @pytest.mark.asyncio
    async def test_missing_table_is_wrapped(self, tmp_path):
        db = Database(f"sqlite+aiosqlite:///{tmp_path / 'empty.db'}", echo=False)
        await db.connect()
        store = SubscriberStore(db)
        try:
            with pytest.raises(StoreUnavailableError):
                await store.count()
        finally:
            await db.dispose()
