# =============================================================================
# CORRIDOR ACCESS SYSTEM - REPOSITORY TESTS
# =============================================================================
# File: tests/test_repository.py
# Description: Account lookups, updates, credential checks, verification
#              codes and the audit trail against in-memory SQLite
# =============================================================================

from datetime import timedelta

from passlib.context import CryptContext

from auth.repository import UserRepository
from db.audit import AuditLogRepository
from db.models import AuditAction, AuditStatus

from tests.conftest import DEFAULT_PASSWORD


class TestUserLookups:

    async def test_lookups_are_case_insensitive(self, uow, create_user):
        user_id = await create_user(username="Field_Officer")

        async with uow() as db:
            users = UserRepository(db)
            by_email = await users.get_user_by_email("OFFICER@example.com")
            by_username = await users.get_user_by_username("FIELD_OFFICER")
            by_identifier = await users.get_user_by_identifier("field_officer")

        assert by_email.id == by_username.id == by_identifier.id == user_id

    async def test_inactive_users_hidden_by_default(self, uow, create_user):
        await create_user(username="dormant", is_active=False)

        async with uow() as db:
            users = UserRepository(db)
            assert await users.get_user_by_username("dormant") is None
            assert (await users.get_user_by_username("dormant", active_only=False)).username == "dormant"

    async def test_default_role_and_details(self, uow, create_user):
        user_id = await create_user(first_name="Asha", employee_id="E-42")

        async with uow() as db:
            user = await UserRepository(db).get_user_by_id(user_id)

        assert user.role_names == ["user"]
        assert user.group_names == []
        assert user.details.first_name == "Asha"
        assert user.details.employee_id == "E-42"


class TestUpdateUser:

    async def test_update_columns_details_and_roles(self, uow, create_user):
        user_id = await create_user()

        async with uow() as db:
            updated = await UserRepository(db).update_user(
                user_id,
                {"department": "Water", "phone": "+91 20 5555", "roles": ["Officer", "authority"]},
            )
        assert updated is True

        async with uow() as db:
            user = await UserRepository(db).get_user_by_id(user_id)
        assert user.department == "Water"
        assert user.details.phone == "+91 20 5555"
        assert sorted(user.role_names) == ["authority", "officer"]

    async def test_update_password_is_hashed(self, uow, create_user):
        user_id = await create_user()

        async with uow() as db:
            await UserRepository(db).update_user(user_id, {"password": "Brand#NewPass"})

        async with uow() as db:
            users = UserRepository(db)
            assert (await users.authenticate_user("officer@example.com", "Brand#NewPass")).success
            assert not (await users.authenticate_user("officer@example.com", DEFAULT_PASSWORD)).success

    async def test_update_unknown_user(self, uow):
        async with uow() as db:
            assert await UserRepository(db).update_user("missing", {"name": "x"}) is False


class TestAuthenticateUser:

    async def test_failures_share_one_message(self, uow, create_user):
        await create_user()

        async with uow() as db:
            users = UserRepository(db)
            wrong = await users.authenticate_user("officer@example.com", "wrong")
            unknown = await users.authenticate_user("ghost@example.com", "wrong")

        assert wrong.success is unknown.success is False
        assert wrong.message == unknown.message

    async def test_legacy_hash_upgraded_on_login(self, uow, create_user):
        user_id = await create_user()
        legacy = CryptContext(schemes=["bcrypt"], bcrypt__rounds=4).hash(DEFAULT_PASSWORD)
        async with uow() as db:
            user = await UserRepository(db).get_user_by_id(user_id)
            user.password_hash = legacy

        async with uow() as db:
            result = await UserRepository(db).authenticate_user("officer@example.com", DEFAULT_PASSWORD)
        assert result.success is True

        async with uow() as db:
            user = await UserRepository(db).get_user_by_id(user_id)
        assert user.password_hash.startswith("$argon2")


class TestVerificationCodes:

    async def test_code_is_single_use(self, uow, create_user, clock):
        user_id = await create_user()

        async with uow() as db:
            code = await UserRepository(db).create_verification_code(user_id, clock())

        async with uow() as db:
            users = UserRepository(db)
            assert await users.verify_code(user_id, "000000" if code != "000000" else "111111", clock()) is False
            assert await users.verify_code(user_id, f" {code} ", clock()) is True
            assert await users.verify_code(user_id, code, clock()) is False

    async def test_new_code_replaces_old(self, uow, create_user, clock):
        user_id = await create_user()

        async with uow() as db:
            first = await UserRepository(db).create_verification_code(user_id, clock(), length=8)
        async with uow() as db:
            second = await UserRepository(db).create_verification_code(user_id, clock(), length=8)

        async with uow() as db:
            users = UserRepository(db)
            if first != second:
                assert await users.verify_code(user_id, first, clock()) is False
            assert await users.verify_code(user_id, second, clock()) is True

    async def test_expired_code_rejected(self, uow, create_user, clock):
        user_id = await create_user()

        async with uow() as db:
            code = await UserRepository(db).create_verification_code(user_id, clock(), ttl_seconds=60)

        async with uow() as db:
            assert await UserRepository(db).verify_code(user_id, code, clock() + timedelta(seconds=60)) is False


class TestAuditTrail:

    async def test_get_by_user_newest_first(self, uow, create_user, clock):
        user_id = await create_user()
        other_id = await create_user(email="other@example.com")

        async with uow() as db:
            audit = AuditLogRepository(db)
            await audit.create(AuditAction.LOGIN_FAILED, AuditStatus.FAILED, user_id=user_id, now=clock())
            await audit.create(
                AuditAction.LOGIN_SUCCESS,
                AuditStatus.SUCCESS,
                user_id=user_id,
                now=clock() + timedelta(seconds=5),
            )
            await audit.create(AuditAction.LOGOUT, AuditStatus.SUCCESS, user_id=other_id, now=clock())

        async with uow() as db:
            entries = await AuditLogRepository(db).get_by_user(user_id)

        assert [e.action for e in entries] == [AuditAction.LOGIN_SUCCESS, AuditAction.LOGIN_FAILED]
