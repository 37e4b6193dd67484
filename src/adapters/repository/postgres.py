"""
PostgreSQL repository adapter - Implements VerificationRepository protocol.

Profiles, domain claims, bio codes and linked accounts live in four tables;
every statement is raw parameterized SQL over a psycopg3 pool.

Atomicity Design:
-----------------
Every promotion writes the proof artifact (DomainClaim, BioCode,
PlatformAccount) and the Profile's verification fields on the same pooled
connection and commits once. The pool's connection context rolls back on any
exception, so a crash between the two writes can never leave a verified
artifact next to an unpromoted profile.

1. **Claim uniqueness**: INSERT ... ON CONFLICT (domain) DO UPDATE ... WHERE
   the existing row belongs to the same user. Another user's row is left
   untouched and no row is returned.

2. **Monotonic promotion**: platform-tier proofs promote with a CASE that
   keeps DOMAIN_VERIFIED; domain proofs set DOMAIN_VERIFIED unconditionally.

3. **Single-use codes**: consumption is UPDATE ... WHERE status = 'PENDING'.
   Of two concurrent consumers exactly one sees a row come back.

4. **Idempotent minting**: a transaction-scoped advisory lock per
   (user, platform) serializes check-then-insert for bio codes.
"""

import logging
from collections.abc import Sequence
from datetime import datetime
from pathlib import Path
from typing import Any

import psycopg
from psycopg.rows import dict_row
from psycopg.types.json import Jsonb
from psycopg_pool import ConnectionPool

from src.domain.models import (
    AccountStatus,
    BioCode,
    BioCodeStatus,
    ClaimStatus,
    DomainClaim,
    PlatformAccount,
    Profile,
    ProviderIdentity,
    VerificationStatus,
)

logger = logging.getLogger(__name__)

_ENSURE_PROFILE_SQL = """
    INSERT INTO profiles (user_id) VALUES (%s)
    ON CONFLICT (user_id) DO NOTHING
"""

# Promote to PLATFORM_VERIFIED unless already DOMAIN_VERIFIED; merge the
# platform entry into any existing entry under the same key.
_PROMOTE_PLATFORM_SQL = """
    UPDATE profiles
    SET verification_status = CASE
            WHEN verification_status = 'DOMAIN_VERIFIED' THEN verification_status
            ELSE 'PLATFORM_VERIFIED'
        END,
        platform_verified_at = %(verified_at)s,
        verified_platforms = COALESCE(verified_platforms, '{}'::jsonb) || jsonb_build_object(
            %(platform)s::text,
            COALESCE(verified_platforms -> %(platform)s::text, '{}'::jsonb) || %(entry)s::jsonb
        ),
        updated_at = NOW()
    WHERE user_id = %(user_id)s
    RETURNING *
"""

# Domain proof is the strongest tier: no CASE, always DOMAIN_VERIFIED.
_DOMAIN_PROFILE_SQL = """
    INSERT INTO profiles (user_id, verification_status, domain_verified_at, verify_domain)
    VALUES (%s, %s, %s, %s)
    ON CONFLICT (user_id) DO UPDATE
    SET verification_status = EXCLUDED.verification_status,
        domain_verified_at = EXCLUDED.domain_verified_at,
        verify_domain = EXCLUDED.verify_domain,
        updated_at = NOW()
    RETURNING *
"""


def _profile_from_row(row: dict[str, Any]) -> Profile:
    return Profile(
        user_id=row["user_id"],
        verification_status=VerificationStatus(row["verification_status"]),
        verification_token=row["verification_token"],
        platform_verified_at=row["platform_verified_at"],
        domain_verified_at=row["domain_verified_at"],
        verify_domain=row["verify_domain"],
        verified_platforms=dict(row["verified_platforms"] or {}),
    )


def _claim_from_row(row: dict[str, Any]) -> DomainClaim:
    return DomainClaim(
        domain=row["domain"],
        user_id=row["user_id"],
        txt_token=row["txt_token"],
        status=ClaimStatus(row["status"]),
        dns_verified=row["dns_verified"],
        verified_at=row["verified_at"],
        email_issued=row["email_issued"],
        email_token=row["email_token"],
        email_verified=row["email_verified"],
    )


def _bio_code_from_row(row: dict[str, Any]) -> BioCode:
    return BioCode(
        id=row["id"],
        user_id=row["user_id"],
        platform=row["platform"],
        code=row["code"],
        profile_url=row["profile_url"],
        expires_at=row["expires_at"],
        status=BioCodeStatus(row["status"]),
        verified_at=row["verified_at"],
    )


def _account_from_row(row: dict[str, Any]) -> PlatformAccount:
    return PlatformAccount(
        id=row["id"],
        user_id=row["user_id"],
        provider=row["provider"],
        external_id=row["external_id"],
        handle=row["handle"],
        profile_url=row["profile_url"],
        platform_context=row["platform_context"],
        status=AccountStatus(row["status"]),
        verified_at=row["verified_at"],
    )


class PostgresVerificationRepository:
    """
    Implements VerificationRepository protocol via psycopg3.

    Uses structural subtyping - no explicit inheritance from Protocol.
    All SQL uses parameterized queries for security.
    """

    def __init__(self, pool: ConnectionPool) -> None:
        """
        Initialize repository with connection pool.

        Args:
            pool: psycopg3 ConnectionPool for database connections
        """
        self._pool = pool

    def get_profile(self, user_id: str) -> Profile | None:
        sql = "SELECT * FROM profiles WHERE user_id = %s"

        with self._pool.connection() as conn, conn.cursor(row_factory=dict_row) as cursor:
            cursor.execute(sql, (user_id,))
            row = cursor.fetchone()
        return _profile_from_row(row) if row else None

    def ensure_verification_token(self, user_id: str, candidate: str) -> str:
        """
        Create the profile if needed and return its persistent token.

        COALESCE keeps an existing token, so concurrent first calls agree.
        """
        sql = """
            INSERT INTO profiles (user_id, verification_token)
            VALUES (%s, %s)
            ON CONFLICT (user_id) DO UPDATE
            SET verification_token = COALESCE(profiles.verification_token, EXCLUDED.verification_token)
            RETURNING verification_token
        """

        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql, (user_id, candidate))
            row = cursor.fetchone()
            conn.commit()
        return row[0]

    def claim_domain(
        self, user_id: str, domain: str, txt_token: str, email_issued: str | None
    ) -> DomainClaim | None:
        """
        Atomically create or reuse a DomainClaim.

        The WHERE clause on the conflict branch only lets the existing
        claimant refresh its own row; another user's claim returns no row.
        """
        sql = """
            INSERT INTO domain_claims (domain, user_id, txt_token, email_issued, status)
            VALUES (%s, %s, %s, %s, 'PENDING')
            ON CONFLICT (domain) DO UPDATE
            SET txt_token = EXCLUDED.txt_token,
                email_issued = COALESCE(EXCLUDED.email_issued, domain_claims.email_issued),
                updated_at = NOW()
            WHERE domain_claims.user_id = EXCLUDED.user_id
            RETURNING *
        """

        with self._pool.connection() as conn, conn.cursor(row_factory=dict_row) as cursor:
            cursor.execute(_ENSURE_PROFILE_SQL, (user_id,))
            cursor.execute(sql, (domain, user_id, txt_token, email_issued))
            row = cursor.fetchone()
            conn.commit()
        return _claim_from_row(row) if row else None

    def get_domain_claim(self, domain: str) -> DomainClaim | None:
        sql = "SELECT * FROM domain_claims WHERE domain = %s"

        with self._pool.connection() as conn, conn.cursor(row_factory=dict_row) as cursor:
            cursor.execute(sql, (domain,))
            row = cursor.fetchone()
        return _claim_from_row(row) if row else None

    def mark_domain_verified(self, user_id: str, domain: str, verified_at: datetime) -> Profile:
        claim_sql = """
            UPDATE domain_claims
            SET status = %s, dns_verified = TRUE, verified_at = %s, updated_at = NOW()
            WHERE domain = %s AND user_id = %s
        """

        with self._pool.connection() as conn, conn.cursor(row_factory=dict_row) as cursor:
            cursor.execute(claim_sql, (ClaimStatus.VERIFIED.value, verified_at, domain, user_id))
            cursor.execute(
                _DOMAIN_PROFILE_SQL,
                (user_id, VerificationStatus.DOMAIN_VERIFIED.value, verified_at, domain),
            )
            row = cursor.fetchone()
            conn.commit()
        return _profile_from_row(row)

    def issue_domain_email_token(self, domain: str, email_token: str) -> bool:
        sql = """
            UPDATE domain_claims
            SET email_token = %s, updated_at = NOW()
            WHERE domain = %s AND email_token IS NULL AND email_verified = FALSE
        """

        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql, (email_token, domain))
            conn.commit()
            return cursor.rowcount == 1

    def confirm_domain_email(self, email_token: str) -> DomainClaim | None:
        sql = """
            UPDATE domain_claims
            SET email_verified = TRUE, email_token = NULL, updated_at = NOW()
            WHERE email_token = %s
            RETURNING *
        """

        with self._pool.connection() as conn, conn.cursor(row_factory=dict_row) as cursor:
            cursor.execute(sql, (email_token,))
            row = cursor.fetchone()
            conn.commit()
        return _claim_from_row(row) if row else None

    def mint_bio_code(
        self,
        user_id: str,
        platform: str,
        code: str,
        profile_url: str,
        expires_at: datetime,
    ) -> BioCode:
        """
        Reuse the live code for (user, platform) or insert the new one.

        The advisory lock is released at commit, so concurrent generate
        calls for the same pair run one after another.
        """
        lock_sql = "SELECT pg_advisory_xact_lock(hashtext(%s))"

        select_sql = """
            SELECT * FROM bio_codes
            WHERE user_id = %s AND platform = %s AND status = 'PENDING' AND expires_at > NOW()
            ORDER BY created_at DESC, id DESC
            LIMIT 1
        """

        purge_sql = """
            DELETE FROM bio_codes
            WHERE user_id = %s AND platform = %s AND status = 'PENDING' AND expires_at <= NOW()
        """

        insert_sql = """
            INSERT INTO bio_codes (user_id, platform, code, profile_url, expires_at, status)
            VALUES (%s, %s, %s, %s, %s, 'PENDING')
            RETURNING *
        """

        with self._pool.connection() as conn, conn.cursor(row_factory=dict_row) as cursor:
            cursor.execute(_ENSURE_PROFILE_SQL, (user_id,))
            cursor.execute(lock_sql, (f"bio:{user_id}:{platform}",))
            cursor.execute(select_sql, (user_id, platform))
            row = cursor.fetchone()

            if row is None:
                cursor.execute(purge_sql, (user_id, platform))
                cursor.execute(insert_sql, (user_id, platform, code, profile_url, expires_at))
                row = cursor.fetchone()

            conn.commit()
        return _bio_code_from_row(row)

    def get_active_bio_code(self, user_id: str, platform: str) -> BioCode | None:
        sql = """
            SELECT * FROM bio_codes
            WHERE user_id = %s AND platform = %s AND status = 'PENDING' AND expires_at > NOW()
            ORDER BY created_at DESC, id DESC
            LIMIT 1
        """

        with self._pool.connection() as conn, conn.cursor(row_factory=dict_row) as cursor:
            cursor.execute(sql, (user_id, platform))
            row = cursor.fetchone()
        return _bio_code_from_row(row) if row else None

    def consume_bio_code(
        self, code_id: int, platform: str, profile_url: str, verified_at: datetime
    ) -> Profile | None:
        consume_sql = """
            UPDATE bio_codes
            SET status = %s, verified_at = %s
            WHERE id = %s AND status = %s
            RETURNING user_id, code
        """

        with self._pool.connection() as conn, conn.cursor(row_factory=dict_row) as cursor:
            cursor.execute(
                consume_sql,
                (BioCodeStatus.VERIFIED.value, verified_at, code_id, BioCodeStatus.PENDING.value),
            )
            consumed = cursor.fetchone()
            if consumed is None:
                # Lost the race: another check already consumed this code.
                conn.commit()
                return None

            entry = {"url": profile_url, "code": consumed["code"], "verifiedAt": verified_at.isoformat()}
            cursor.execute(
                _PROMOTE_PLATFORM_SQL,
                {
                    "verified_at": verified_at,
                    "platform": platform,
                    "entry": Jsonb(entry),
                    "user_id": consumed["user_id"],
                },
            )
            row = cursor.fetchone()
            conn.commit()
        return _profile_from_row(row)

    def upsert_platform_account(
        self, user_id: str, provider: str, identity: ProviderIdentity, verified_at: datetime
    ) -> tuple[PlatformAccount, Profile]:
        account_sql = """
            INSERT INTO platform_accounts
                (user_id, provider, external_id, handle, profile_url, platform_context, status, verified_at)
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
            ON CONFLICT (user_id, provider) DO UPDATE
            SET external_id = EXCLUDED.external_id,
                handle = EXCLUDED.handle,
                profile_url = EXCLUDED.profile_url,
                platform_context = EXCLUDED.platform_context,
                status = EXCLUDED.status,
                verified_at = EXCLUDED.verified_at,
                updated_at = NOW()
            RETURNING *
        """

        entry = {
            "externalId": identity.external_id,
            "url": identity.url,
            "handle": identity.handle,
            "platformContext": identity.platform_context,
            "verifiedAt": verified_at.isoformat(),
        }

        with self._pool.connection() as conn, conn.cursor(row_factory=dict_row) as cursor:
            cursor.execute(_ENSURE_PROFILE_SQL, (user_id,))
            cursor.execute(
                account_sql,
                (
                    user_id,
                    provider,
                    identity.external_id,
                    identity.handle,
                    identity.url,
                    identity.platform_context,
                    AccountStatus.VERIFIED.value,
                    verified_at,
                ),
            )
            account_row = cursor.fetchone()
            cursor.execute(
                _PROMOTE_PLATFORM_SQL,
                {"verified_at": verified_at, "platform": provider, "entry": Jsonb(entry), "user_id": user_id},
            )
            profile_row = cursor.fetchone()
            conn.commit()
        return _account_from_row(account_row), _profile_from_row(profile_row)

    def mark_platform_account_failed(self, user_id: str, provider: str) -> None:
        sql = """
            UPDATE platform_accounts
            SET status = %s, updated_at = NOW()
            WHERE user_id = %s AND provider = %s
        """

        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql, (AccountStatus.FAILED.value, user_id, provider))
            conn.commit()

    def list_platform_accounts(self, user_id: str) -> Sequence[PlatformAccount]:
        sql = "SELECT * FROM platform_accounts WHERE user_id = %s ORDER BY created_at DESC, id DESC"

        with self._pool.connection() as conn, conn.cursor(row_factory=dict_row) as cursor:
            cursor.execute(sql, (user_id,))
            rows = cursor.fetchall()
        return [_account_from_row(row) for row in rows]

    def delete_platform_account(
        self, user_id: str, account_id: int, downgrade_if_unproven: bool
    ) -> bool:
        delete_sql = "DELETE FROM platform_accounts WHERE id = %s AND user_id = %s"

        downgrade_sql = """
            UPDATE profiles
            SET verification_status = 'UNVERIFIED', updated_at = NOW()
            WHERE user_id = %s
              AND verification_status = 'PLATFORM_VERIFIED'
              AND NOT EXISTS (
                  SELECT 1 FROM platform_accounts WHERE user_id = %s AND status = 'VERIFIED'
              )
              AND NOT EXISTS (
                  SELECT 1 FROM bio_codes WHERE user_id = %s AND status = 'VERIFIED'
              )
        """

        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(delete_sql, (account_id, user_id))
            if cursor.rowcount != 1:
                conn.commit()
                return False

            if downgrade_if_unproven:
                cursor.execute(downgrade_sql, (user_id, user_id, user_id))
                if cursor.rowcount:
                    logger.info("Profile %s downgraded to UNVERIFIED after disconnect", user_id)
            conn.commit()
            return True


def run_migrations(pool: ConnectionPool) -> None:
    """
    Apply every migrations/*.sql file in filename order.

    Files are written to be re-runnable (IF NOT EXISTS), so this runs on
    every startup. A failing file aborts startup with RuntimeError.
    """
    migrations_dir = Path(__file__).resolve().parents[3] / "migrations"
    sql_files = sorted(migrations_dir.glob("*.sql")) if migrations_dir.is_dir() else []
    if not sql_files:
        logger.warning("No migrations found under %s", migrations_dir)
        return

    for sql_file in sql_files:
        try:
            with pool.connection() as conn:
                conn.execute(sql_file.read_text())
        except psycopg.Error as e:
            logger.error("Migration %s failed: %s", sql_file.name, e)
            raise RuntimeError(f"Database migration failed: {sql_file.name}") from e
        logger.info("Applied migration %s", sql_file.name)
