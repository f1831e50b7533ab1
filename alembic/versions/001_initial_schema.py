"""Initial schema: boards, board_aliases, cards, reactions.

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""

from alembic import op


# revision identifiers, used by Alembic.
revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # Boards are owned by the board service; cards only read them
    op.execute("""
        CREATE TABLE boards (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            name TEXT NOT NULL,
            columns JSONB NOT NULL DEFAULT '[]'::jsonb,
            state TEXT NOT NULL DEFAULT 'active' CHECK (state IN ('active', 'closed')),
            card_limit_per_user INTEGER CHECK (card_limit_per_user > 0),
            reaction_limit_per_user INTEGER CHECK (reaction_limit_per_user > 0),
            admins TEXT[] NOT NULL DEFAULT '{}',
            created_by_hash TEXT NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            closed_at TIMESTAMPTZ
        );
    """)

    op.execute("""
        CREATE TABLE board_aliases (
            board_id UUID NOT NULL REFERENCES boards(id) ON DELETE CASCADE,
            user_hash TEXT NOT NULL,
            alias TEXT NOT NULL,
            PRIMARY KEY (board_id, user_hash)
        );
    """)

    # Cards. parent_card_id is not a foreign key: the delete cascade orphans
    # children explicitly so it can report which ones it touched.
    op.execute("""
        CREATE TABLE cards (
            id UUID PRIMARY KEY,
            board_id UUID NOT NULL REFERENCES boards(id) ON DELETE CASCADE,
            column_id TEXT NOT NULL,
            content TEXT NOT NULL CHECK (char_length(content) BETWEEN 1 AND 5000),
            card_type TEXT NOT NULL CHECK (card_type IN ('feedback', 'action')),
            is_anonymous BOOLEAN NOT NULL DEFAULT false,
            created_by_hash TEXT NOT NULL,
            created_by_alias TEXT,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ,
            direct_reaction_count INTEGER NOT NULL DEFAULT 0 CHECK (direct_reaction_count >= 0),
            aggregated_reaction_count INTEGER NOT NULL DEFAULT 0 CHECK (aggregated_reaction_count >= 0),
            parent_card_id UUID,
            linked_feedback_ids UUID[] NOT NULL DEFAULT '{}',
            CHECK (parent_card_id IS NULL OR card_type = 'feedback'),
            CHECK (parent_card_id IS NULL OR parent_card_id <> id)
        );
    """)

    op.execute("CREATE INDEX idx_cards_board_created ON cards(board_id, created_at);")
    op.execute("CREATE INDEX idx_cards_board_creator_type ON cards(board_id, created_by_hash, card_type);")
    op.execute("CREATE INDEX idx_cards_parent ON cards(parent_card_id) WHERE parent_card_id IS NOT NULL;")
    op.execute("CREATE INDEX idx_cards_linked_feedback ON cards USING GIN (linked_feedback_ids);")

    op.execute("""
        CREATE TABLE reactions (
            card_id UUID NOT NULL,
            board_id UUID NOT NULL REFERENCES boards(id) ON DELETE CASCADE,
            user_hash TEXT NOT NULL,
            user_alias TEXT,
            reaction_type TEXT NOT NULL DEFAULT 'thumbs_up' CHECK (reaction_type IN ('thumbs_up')),
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            PRIMARY KEY (card_id, user_hash)
        );
    """)

    op.execute("CREATE INDEX idx_reactions_board_user ON reactions(board_id, user_hash);")


def downgrade():
    op.execute("DROP TABLE IF EXISTS reactions;")
    op.execute("DROP TABLE IF EXISTS cards;")
    op.execute("DROP TABLE IF EXISTS board_aliases;")
    op.execute("DROP TABLE IF EXISTS boards;")
