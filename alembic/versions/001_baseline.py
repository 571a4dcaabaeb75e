"""Baseline: profiles, posts, reflections, connections.

The auth backend normally owns ``profiles``; IF NOT EXISTS keeps this
migration safe to run against a database where it already exists.

Revision ID: 001_baseline
Revises: None
Create Date: 2026-10-19
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_baseline"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.execute('CREATE EXTENSION IF NOT EXISTS "pgcrypto"')

    # --- Profiles ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS profiles (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            email VARCHAR(320),
            full_name VARCHAR(128),
            username VARCHAR(64) UNIQUE,
            avatar_url TEXT,
            bio VARCHAR(280),
            current_level INTEGER NOT NULL DEFAULT 1 CHECK (current_level >= 1),
            quality_score INTEGER NOT NULL DEFAULT 0,
            is_premium BOOLEAN NOT NULL DEFAULT false,
            premium_since TIMESTAMPTZ,
            premium_expires_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ DEFAULT NOW(),
            updated_at TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    # The sweep scans only premium rows with an expiry
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_profiles_premium_expiry
        ON profiles(premium_expires_at)
        WHERE is_premium AND premium_expires_at IS NOT NULL
    """)

    # --- Posts ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS posts (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            author_id UUID NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            title VARCHAR(200) NOT NULL,
            content TEXT NOT NULL DEFAULT '',
            type VARCHAR(16) NOT NULL DEFAULT 'thought'
                CONSTRAINT posts_type_check CHECK (type IN ('book', 'film', 'photo', 'thought')),
            status VARCHAR(16) NOT NULL DEFAULT 'draft'
                CONSTRAINT posts_status_check CHECK (status IN ('draft', 'published', 'archived', 'moderated')),
            is_premium_content BOOLEAN NOT NULL DEFAULT false,
            created_at TIMESTAMPTZ DEFAULT NOW(),
            updated_at TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_posts_author ON posts(author_id)")
    op.execute("CREATE INDEX IF NOT EXISTS idx_posts_published ON posts(created_at DESC) WHERE status = 'published'")

    # --- Reflections ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS reflections (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            post_id UUID NOT NULL REFERENCES posts(id) ON DELETE CASCADE,
            author_id UUID NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            content VARCHAR(1000) NOT NULL CHECK (length(btrim(content)) > 0),
            created_at TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_reflections_post ON reflections(post_id, created_at)")

    # --- Connections ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS connections (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            requester_id UUID NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            addressee_id UUID NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            status VARCHAR(16) NOT NULL DEFAULT 'pending'
                CONSTRAINT connections_status_check
                CHECK (status IN ('pending', 'accepted', 'rejected', 'blocked', 'cancelled')),
            created_at TIMESTAMPTZ DEFAULT NOW(),
            updated_at TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT connections_not_self CHECK (requester_id <> addressee_id)
        )
    """)
    # One row per unordered pair; closes the concurrent duplicate-request race
    op.execute("""
        CREATE UNIQUE INDEX IF NOT EXISTS idx_connections_pair
        ON connections (LEAST(requester_id, addressee_id), GREATEST(requester_id, addressee_id))
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_connections_addressee ON connections(addressee_id, status)")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS connections")
    op.execute("DROP TABLE IF EXISTS reflections")
    op.execute("DROP TABLE IF EXISTS posts")
