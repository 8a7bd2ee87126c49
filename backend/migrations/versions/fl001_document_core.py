"""Document core: projects, users, file assets, counters, invoices, variations, tickets, approvals

Revision ID: fl001_document_core
Revises:
Create Date: 2026-10-18

This migration adds:
1. Projects, users and file assets (the rows documents point at)
2. document_counters (one row per calendar year, one counter per kind)
3. invoices, variation_requests, tickets (numbered documents)
4. approval_packets and approval_items (per-file decisions)
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'fl001_document_core'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
    ]


def upgrade():
    # ==========================================================================
    # 1. PROJECTS / USERS / FILE ASSETS
    # ==========================================================================
    op.create_table('projects',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('client_name', sa.String(length=255), nullable=True),
        sa.Column('status', sa.String(length=50), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )

    op.create_table('users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=50), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email'),
        sqlite_autoincrement=True
    )

    op.create_table('file_assets',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('project_id', sa.Integer(), nullable=False),
        sa.Column('uploaded_by_user_id', sa.Integer(), nullable=True),
        sa.Column('filename', sa.String(length=500), nullable=False),
        sa.Column('original_name', sa.String(length=500), nullable=False),
        sa.Column('url', sa.String(length=1000), nullable=False),
        sa.Column('content_type', sa.String(length=100), nullable=False),
        sa.Column('size', sa.Integer(), nullable=False),
        sa.Column('visibility', sa.String(length=50), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['project_id'], ['projects.id'], ),
        sa.ForeignKeyConstraint(['uploaded_by_user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('file_assets', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_file_assets_project_id'), ['project_id'], unique=False)
        batch_op.create_index('ix_file_assets_project_created', ['project_id', 'created_at'], unique=False)

    # ==========================================================================
    # 2. DOCUMENT COUNTERS
    # ==========================================================================
    op.create_table('document_counters',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('invoice_counter', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('variation_counter', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('ticket_counter', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('approval_counter', sa.Integer(), nullable=False, server_default='0'),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('year', name='uq_document_counters_year'),
        sqlite_autoincrement=True
    )

    # ==========================================================================
    # 3. INVOICES
    # ==========================================================================
    op.create_table('invoices',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('project_id', sa.Integer(), nullable=False),
        sa.Column('number', sa.String(length=50), nullable=False),
        sa.Column('issue_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('due_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('currency', sa.String(length=10), nullable=False),
        sa.Column('line_items', sa.JSON(), nullable=False),
        sa.Column('subtotal', sa.String(length=64), nullable=False),
        sa.Column('tax_total', sa.String(length=64), nullable=False),
        sa.Column('total', sa.String(length=64), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('sent_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        *_timestamps(),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.ForeignKeyConstraint(['project_id'], ['projects.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('number', name='uq_invoices_number'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('invoices', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_invoices_project_id'), ['project_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_invoices_status'), ['status'], unique=False)
        batch_op.create_index(batch_op.f('ix_invoices_created_at'), ['created_at'], unique=False)
        batch_op.create_index('ix_invoices_project_status', ['project_id', 'status'], unique=False)
        batch_op.create_index('ix_invoices_due_date', ['due_date'], unique=False)

    # ==========================================================================
    # 4. VARIATION REQUESTS
    # ==========================================================================
    op.create_table('variation_requests',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('project_id', sa.Integer(), nullable=False),
        sa.Column('number', sa.String(length=50), nullable=False),
        sa.Column('date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('change_requestor', sa.String(length=255), nullable=False),
        sa.Column('change_reference', sa.String(length=255), nullable=True),
        sa.Column('change_area', sa.String(length=255), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=True),
        sa.Column('priority', sa.String(length=50), nullable=False),
        sa.Column('work_types', sa.JSON(), nullable=False),
        sa.Column('categories', sa.JSON(), nullable=False),
        sa.Column('change_description', sa.Text(), nullable=False),
        sa.Column('reason_description', sa.Text(), nullable=False),
        sa.Column('technical_changes', sa.Text(), nullable=True),
        sa.Column('resources_and_costs', sa.Text(), nullable=True),
        sa.Column('material_costs', sa.JSON(), nullable=False),
        sa.Column('labor_costs', sa.JSON(), nullable=False),
        sa.Column('additional_costs', sa.JSON(), nullable=False),
        sa.Column('attachments', sa.JSON(), nullable=False),
        sa.Column('currency', sa.String(length=10), nullable=False),
        sa.Column('price_impact', sa.String(length=64), nullable=False),
        sa.Column('time_impact', sa.Integer(), nullable=False),
        sa.Column('workflow_status', sa.String(length=16), nullable=False),
        sa.Column('disposition', sa.String(length=16), nullable=True),
        sa.Column('disposition_reason', sa.Text(), nullable=True),
        sa.Column('disposition_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('disposition_by_user_id', sa.Integer(), nullable=True),
        sa.Column('client_decision', sa.String(length=16), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('submitted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('decided_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('decided_by_user_id', sa.Integer(), nullable=True),
        sa.Column('client_comment', sa.Text(), nullable=True),
        sa.Column('invoice_id', sa.Integer(), nullable=True),
        *_timestamps(),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.ForeignKeyConstraint(['project_id'], ['projects.id'], ),
        sa.ForeignKeyConstraint(['disposition_by_user_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['decided_by_user_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['invoice_id'], ['invoices.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('number', name='uq_variation_requests_number'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('variation_requests', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_variation_requests_project_id'), ['project_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_variation_requests_priority'), ['priority'], unique=False)
        batch_op.create_index(batch_op.f('ix_variation_requests_status'), ['status'], unique=False)
        batch_op.create_index(batch_op.f('ix_variation_requests_created_at'), ['created_at'], unique=False)
        batch_op.create_index('ix_variation_requests_project_status', ['project_id', 'status'], unique=False)
        batch_op.create_index('ix_variation_requests_submitted_at', ['submitted_at'], unique=False)

    # ==========================================================================
    # 5. TICKETS
    # ==========================================================================
    op.create_table('tickets',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('project_id', sa.Integer(), nullable=False),
        sa.Column('number', sa.String(length=50), nullable=False),
        sa.Column('subject', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('category', sa.String(length=100), nullable=False),
        sa.Column('priority', sa.String(length=50), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('requester_user_id', sa.Integer(), nullable=False),
        sa.Column('assignee_user_id', sa.Integer(), nullable=True),
        sa.Column('attachments', sa.JSON(), nullable=False),
        sa.Column('resolved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('closed_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.ForeignKeyConstraint(['project_id'], ['projects.id'], ),
        sa.ForeignKeyConstraint(['requester_user_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['assignee_user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('number', name='uq_tickets_number'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('tickets', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_tickets_project_id'), ['project_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_tickets_category'), ['category'], unique=False)
        batch_op.create_index(batch_op.f('ix_tickets_priority'), ['priority'], unique=False)
        batch_op.create_index(batch_op.f('ix_tickets_status'), ['status'], unique=False)
        batch_op.create_index(batch_op.f('ix_tickets_requester_user_id'), ['requester_user_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_tickets_assignee_user_id'), ['assignee_user_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_tickets_created_at'), ['created_at'], unique=False)
        batch_op.create_index('ix_tickets_project_status', ['project_id', 'status'], unique=False)

    # ==========================================================================
    # 6. APPROVAL PACKETS / ITEMS
    # ==========================================================================
    op.create_table('approval_packets',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('project_id', sa.Integer(), nullable=False),
        sa.Column('number', sa.String(length=50), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('due_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('sent_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('decided_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('client_comment', sa.Text(), nullable=True),
        sa.Column('signature_name', sa.String(length=255), nullable=True),
        *_timestamps(),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.ForeignKeyConstraint(['project_id'], ['projects.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('number', name='uq_approval_packets_number'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('approval_packets', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_approval_packets_project_id'), ['project_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_approval_packets_status'), ['status'], unique=False)
        batch_op.create_index(batch_op.f('ix_approval_packets_created_at'), ['created_at'], unique=False)
        batch_op.create_index('ix_approval_packets_project_status', ['project_id', 'status'], unique=False)

    op.create_table('approval_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('packet_id', sa.Integer(), nullable=False),
        sa.Column('file_asset_id', sa.Integer(), nullable=False),
        sa.Column('decision', sa.String(length=16), nullable=False),
        sa.Column('comment', sa.Text(), nullable=True),
        sa.Column('decided_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['packet_id'], ['approval_packets.id'], ),
        sa.ForeignKeyConstraint(['file_asset_id'], ['file_assets.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('packet_id', 'file_asset_id', name='uq_approval_items_packet_file'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('approval_items', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_approval_items_packet_id'), ['packet_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_approval_items_file_asset_id'), ['file_asset_id'], unique=False)


def downgrade():
    op.drop_table('approval_items')
    op.drop_table('approval_packets')
    op.drop_table('tickets')
    op.drop_table('variation_requests')
    op.drop_table('invoices')
    op.drop_table('document_counters')
    op.drop_table('file_assets')
    op.drop_table('users')
    op.drop_table('projects')
