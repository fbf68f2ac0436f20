import pytest
from sqlalchemy import func, insert, select
from sqlalchemy.exc import IntegrityError, OperationalError

from backoffice.common import OperationTimedOut, PersistenceError, transaction_scope, translate_database_error
from backoffice.store_service.app.errors import ValidationFailed
from backoffice.store_service.app.models import Category


async def _category_names(session_factory) -> list[str]:
    async with session_factory() as session:
        result = await session.execute(select(Category.name).order_by(Category.name))
        return list(result.scalars())


def test_locked_database_maps_to_timeout() -> None:
    error = OperationalError("INSERT", {}, Exception("database is locked"))
    translated = translate_database_error(error)
    assert isinstance(translated, OperationTimedOut)
    assert translated.status_code == 408
    assert translated.to_payload() == {"detail": "Database operation timed out", "code": "operation_timed_out"}


def test_other_database_errors_map_to_persistence_error() -> None:
    error = IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed: products.sku"))
    translated = translate_database_error(error)
    assert type(translated) is PersistenceError
    assert translated.status_code == 500


@pytest.mark.asyncio
async def test_transaction_scope_commits_on_success(session_factory) -> None:
    async with transaction_scope(session_factory) as session:
        session.add(Category(name="Garden"))

    assert await _category_names(session_factory) == ["Garden"]


@pytest.mark.asyncio
async def test_transaction_scope_rolls_back_business_errors(session_factory) -> None:
    with pytest.raises(ValidationFailed):
        async with transaction_scope(session_factory) as session:
            session.add(Category(name="Garden"))
            await session.flush()
            raise ValidationFailed("nope")

    assert await _category_names(session_factory) == []


@pytest.mark.asyncio
async def test_transaction_scope_translates_integrity_errors(session_factory) -> None:
    async with transaction_scope(session_factory) as session:
        session.add(Category(name="Garden"))

    with pytest.raises(PersistenceError) as excinfo:
        async with transaction_scope(session_factory) as session:
            session.add(Category(name="Tools"))
            await session.flush()
            session.add(Category(name="Garden"))
            await session.flush()

    assert excinfo.value.code == "persistence_error"
    assert await _category_names(session_factory) == ["Garden"]


@pytest.mark.asyncio
async def test_busy_database_surfaces_as_timeout(session_factory) -> None:
    async with session_factory() as holder:
        await holder.execute(insert(Category).values(name="Held"))

        with pytest.raises(OperationTimedOut):
            async with transaction_scope(session_factory) as session:
                session.add(Category(name="Blocked"))
                await session.flush()

        await holder.rollback()

    async with session_factory() as session:
        count = (await session.execute(select(func.count(Category.id)))).scalar_one()
    assert count == 0
