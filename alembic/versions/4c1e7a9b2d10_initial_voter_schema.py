"""initial_voter_schema

Revision ID: 4c1e7a9b2d10
Revises:
Create Date: 2026-10-19 10:12:44.120031

"""
from collections.abc import Sequence

from alembic import op

# revision identifiers, used by Alembic.
revision: str = '4c1e7a9b2d10'
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Upgrade schema."""
    op.execute("""
CREATE EXTENSION IF NOT EXISTS "uuid-ossp";

-- Users: one role and one location scope each, approved by a broader admin
CREATE TABLE IF NOT EXISTS users (
    id UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
    username VARCHAR(50) UNIQUE NOT NULL,
    password_hash TEXT NOT NULL,
    full_name VARCHAR(200),
    phone VARCHAR(20),
    role VARCHAR(30) CHECK (role IN (
        'super_admin', 'division_admin', 'district_admin',
        'upazila_admin', 'union_admin', 'village_admin'
    )),
    requested_role VARCHAR(30) NOT NULL,
    status VARCHAR(20) NOT NULL DEFAULT 'pending'
        CHECK (status IN ('pending', 'approved', 'rejected')),
    access_scope JSONB NOT NULL DEFAULT '{}'::jsonb,
    reviewed_by UUID REFERENCES users(id) ON DELETE SET NULL,
    reviewed_at TIMESTAMP WITH TIME ZONE,
    created_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP,
    last_login TIMESTAMP WITH TIME ZONE,
    CHECK (status <> 'approved' OR role IS NOT NULL)
);

CREATE INDEX IF NOT EXISTS idx_users_status ON users(status);

-- Voters: every row carries its full location chain
CREATE TABLE IF NOT EXISTS voters (
    id UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
    division_id VARCHAR(50) NOT NULL,
    district_id VARCHAR(50) NOT NULL,
    upazila_id VARCHAR(50) NOT NULL,
    union_id VARCHAR(50) NOT NULL,
    village_id VARCHAR(50) NOT NULL,
    voter_name VARCHAR(200) NOT NULL,
    house_name VARCHAR(200),
    father_or_husband VARCHAR(200),
    age INTEGER CHECK (age IS NULL OR age BETWEEN 18 AND 130),
    gender VARCHAR(10),
    marital_status VARCHAR(20),
    occupation VARCHAR(100),
    education VARCHAR(100),
    religion VARCHAR(50),
    phone VARCHAR(20),
    whatsapp BOOLEAN,
    nid VARCHAR(17),
    is_voter BOOLEAN,
    will_vote VARCHAR(10),
    voted_before BOOLEAN,
    vote_probability INTEGER CHECK (vote_probability IS NULL OR vote_probability BETWEEN 0 AND 100),
    political_support VARCHAR(100),
    priority_level VARCHAR(10),
    has_disability BOOLEAN,
    is_migrated BOOLEAN,
    remarks TEXT,
    collector VARCHAR(200),
    collection_date DATE,
    created_by UUID REFERENCES users(id) ON DELETE SET NULL,
    created_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP
);

-- One index per scope level: each admin role filters on exactly one of these
CREATE INDEX IF NOT EXISTS idx_voters_division ON voters(division_id);
CREATE INDEX IF NOT EXISTS idx_voters_district ON voters(district_id);
CREATE INDEX IF NOT EXISTS idx_voters_upazila ON voters(upazila_id);
CREATE INDEX IF NOT EXISTS idx_voters_union ON voters(union_id);
CREATE INDEX IF NOT EXISTS idx_voters_village ON voters(village_id);
CREATE INDEX IF NOT EXISTS idx_voters_phone ON voters(phone);

-- SMS campaign drafts
CREATE TABLE IF NOT EXISTS sms_campaigns (
    id UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
    name VARCHAR(200) NOT NULL,
    message TEXT NOT NULL,
    target_filters JSONB NOT NULL DEFAULT '{}'::jsonb,
    status VARCHAR(20) NOT NULL DEFAULT 'draft'
        CHECK (status IN ('draft', 'scheduled', 'sent')),
    sent_count INTEGER NOT NULL DEFAULT 0,
    created_by UUID REFERENCES users(id) ON DELETE SET NULL,
    created_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP
);

CREATE INDEX IF NOT EXISTS idx_sms_campaigns_created_by ON sms_campaigns(created_by);
    """)


def downgrade() -> None:
    """Downgrade schema."""
    op.execute("""
DROP TABLE IF EXISTS sms_campaigns;
DROP TABLE IF EXISTS voters;
DROP TABLE IF EXISTS users;
    """)
