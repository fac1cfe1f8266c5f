"""Page documents and archived versions.

Revision ID: 001
Revises:
Create Date: 2026-10-17
"""

from alembic import op


# revision identifiers, used by Alembic.
revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # Current document per page
    op.execute("""
        CREATE TABLE page_documents (
            page_id TEXT PRIMARY KEY,
            document JSONB NOT NULL,
            version INTEGER NOT NULL DEFAULT 1,
            status TEXT NOT NULL DEFAULT 'draft' CHECK (status IN ('draft', 'published')),
            title TEXT NOT NULL DEFAULT '',
            slug TEXT NOT NULL DEFAULT '',
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        );
    """)

    op.execute("""
        CREATE INDEX idx_page_documents_slug ON page_documents(slug) WHERE slug <> '';
    """)

    # Documents archived by publish
    op.execute("""
        CREATE TABLE page_versions (
            id BIGSERIAL PRIMARY KEY,
            page_id TEXT NOT NULL REFERENCES page_documents(page_id) ON DELETE CASCADE,
            version INTEGER NOT NULL,
            document JSONB NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            UNIQUE (page_id, version)
        );
    """)


def downgrade():
    op.execute("DROP TABLE IF EXISTS page_versions;")
    op.execute("DROP TABLE IF EXISTS page_documents;")
