"""initial schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-19 00:00:00.000000

Creates the complete InsightBI schema:
- companies / company_invitations: tenant root and onboarding
- users / session_tokens: authentication
- catalog, products, inventory_movements, stock_alerts: inventory
- customers, salespeople, sales, enhanced_sales, sale_items: sales
- collections, accounts_receivable, payments, collection_activities: collections
- data_imports, chat_conversations, chat_messages, dashboards
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None


def _created_at():
    return sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                     server_default=sa.text('CURRENT_TIMESTAMP'))


def _updated_at():
    return sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                     server_default=sa.text('CURRENT_TIMESTAMP'))


def _company_fk():
    return sa.Column('company_id', sa.Integer(), sa.ForeignKey('companies.id'), nullable=False)


def upgrade():
    # ============================================================================
    # Tenancy
    # ============================================================================
    op.create_table(
        'companies',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('slug', sa.String(length=120), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('phone', sa.String(length=64), nullable=True),
        sa.Column('address', sa.String(length=255), nullable=True),
        sa.Column('industry', sa.String(length=120), nullable=True),
        sa.Column('size', sa.String(length=32), nullable=True),
        sa.Column('logo_url', sa.String(length=512), nullable=True),
        sa.Column('subscription', sa.String(length=32), nullable=False),
        sa.Column('max_users', sa.Integer(), nullable=False),
        sa.Column('max_storage_mb', sa.Integer(), nullable=False),
        sa.Column('settings', sa.JSON(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('version_id', sa.Integer(), nullable=False),
        _created_at(),
        _updated_at(),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_companies_slug', 'companies', ['slug'], unique=True)
    op.create_index('ix_companies_is_active', 'companies', ['is_active'])

    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        _company_fk(),
        sa.Column('username', sa.String(length=64), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('full_name', sa.String(length=255), nullable=True),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=32), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        _created_at(),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint('username', name='uq_users_username'),
        sa.UniqueConstraint('email', name='uq_users_email'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_users_company_id', 'users', ['company_id'])
    op.create_index('ix_users_username', 'users', ['username'])

    op.create_table(
        'company_invitations',
        sa.Column('id', sa.Integer(), primary_key=True),
        _company_fk(),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=32), nullable=False),
        sa.Column('token', sa.String(length=64), nullable=False),
        sa.Column('invited_by_user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('accepted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_company_invitations_company_id', 'company_invitations', ['company_id'])
    op.create_index('ix_company_invitations_token', 'company_invitations', ['token'], unique=True)
    op.create_index('ix_company_invitations_company_email', 'company_invitations', ['company_id', 'email'])

    op.create_table(
        'session_tokens',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        _company_fk(),
        sa.Column('token_hash', sa.String(length=255), nullable=False),
        _created_at(),
        sa.Column('last_used_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_revoked', sa.Boolean(), nullable=False),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('revoked_reason', sa.String(length=255), nullable=True),
        sa.Column('user_agent', sa.String(length=512), nullable=True),
        sa.Column('ip_address', sa.String(length=45), nullable=True),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_session_tokens_user_id', 'session_tokens', ['user_id'])
    op.create_index('ix_session_tokens_company_id', 'session_tokens', ['company_id'])
    op.create_index('ix_session_tokens_token_hash', 'session_tokens', ['token_hash'], unique=True)
    op.create_index('ix_session_tokens_expires_at', 'session_tokens', ['expires_at'])
    op.create_index('ix_session_tokens_is_revoked', 'session_tokens', ['is_revoked'])

    # ============================================================================
    # Inventory
    # ============================================================================
    op.create_table(
        'categories',
        sa.Column('id', sa.Integer(), primary_key=True),
        _company_fk(),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('color', sa.String(length=16), nullable=True),
        _created_at(),
        sa.UniqueConstraint('company_id', 'name', name='uq_categories_company_name'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_categories_company_id', 'categories', ['company_id'])

    op.create_table(
        'suppliers',
        sa.Column('id', sa.Integer(), primary_key=True),
        _company_fk(),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('contact_name', sa.String(length=255), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('phone', sa.String(length=64), nullable=True),
        sa.Column('address', sa.String(length=255), nullable=True),
        sa.Column('lead_time_days', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        _created_at(),
        sa.UniqueConstraint('company_id', 'name', name='uq_suppliers_company_name'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_suppliers_company_id', 'suppliers', ['company_id'])

    op.create_table(
        'warehouses',
        sa.Column('id', sa.Integer(), primary_key=True),
        _company_fk(),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('code', sa.String(length=32), nullable=True),
        sa.Column('address', sa.String(length=255), nullable=True),
        sa.Column('is_default', sa.Boolean(), nullable=False),
        _created_at(),
        sa.UniqueConstraint('company_id', 'code', name='uq_warehouses_company_code'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_warehouses_company_id', 'warehouses', ['company_id'])

    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), primary_key=True),
        _company_fk(),
        sa.Column('sku', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('category_id', sa.Integer(), sa.ForeignKey('categories.id'), nullable=True),
        sa.Column('supplier_id', sa.Integer(), sa.ForeignKey('suppliers.id'), nullable=True),
        sa.Column('warehouse_id', sa.Integer(), sa.ForeignKey('warehouses.id'), nullable=True),
        sa.Column('price_cents', sa.Integer(), nullable=False),
        sa.Column('cost_cents', sa.Integer(), nullable=False),
        sa.Column('stock', sa.Integer(), nullable=False),
        sa.Column('min_stock', sa.Integer(), nullable=False),
        sa.Column('max_stock', sa.Integer(), nullable=False),
        sa.Column('safety_stock', sa.Integer(), nullable=False),
        sa.Column('reorder_point', sa.Integer(), nullable=False),
        sa.Column('location', sa.String(length=120), nullable=True),
        sa.Column('unit_measure', sa.String(length=32), nullable=False),
        sa.Column('expiration_date', sa.Date(), nullable=True),
        sa.Column('last_movement_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('abc_classification', sa.String(length=1), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('is_simulated', sa.Boolean(), nullable=False),
        sa.Column('version_id', sa.Integer(), nullable=False),
        _created_at(),
        _updated_at(),
        sa.UniqueConstraint('company_id', 'sku', name='uq_products_company_sku'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_products_company_id', 'products', ['company_id'])
    op.create_index('ix_products_category_id', 'products', ['category_id'])
    op.create_index('ix_products_supplier_id', 'products', ['supplier_id'])
    op.create_index('ix_products_warehouse_id', 'products', ['warehouse_id'])
    op.create_index('ix_products_company_name', 'products', ['company_id', 'name'])
    op.create_index('ix_products_company_active', 'products', ['company_id', 'is_active'])

    # ============================================================================
    # Sales
    # ============================================================================
    op.create_table(
        'customers',
        sa.Column('id', sa.Integer(), primary_key=True),
        _company_fk(),
        sa.Column('code', sa.String(length=64), nullable=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('tax_id', sa.String(length=32), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('phone', sa.String(length=64), nullable=True),
        sa.Column('address', sa.String(length=255), nullable=True),
        sa.Column('city', sa.String(length=120), nullable=True),
        sa.Column('segment', sa.String(length=64), nullable=True),
        sa.Column('credit_limit_cents', sa.Integer(), nullable=True),
        sa.Column('payment_terms_days', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        _created_at(),
        sa.UniqueConstraint('company_id', 'code', name='uq_customers_company_code'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_customers_company_id', 'customers', ['company_id'])
    op.create_index('ix_customers_company_tax_id', 'customers', ['company_id', 'tax_id'])
    op.create_index('ix_customers_company_name', 'customers', ['company_id', 'name'])

    op.create_table(
        'salespeople',
        sa.Column('id', sa.Integer(), primary_key=True),
        _company_fk(),
        sa.Column('code', sa.String(length=64), nullable=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('commission_rate_bps', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        _created_at(),
        sa.UniqueConstraint('company_id', 'code', name='uq_salespeople_company_code'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_salespeople_company_id', 'salespeople', ['company_id'])

    op.create_table(
        'sales',
        sa.Column('id', sa.Integer(), primary_key=True),
        _company_fk(),
        sa.Column('product_id', sa.Integer(), sa.ForeignKey('products.id'), nullable=False),
        sa.Column('customer_id', sa.Integer(), sa.ForeignKey('customers.id'), nullable=True),
        sa.Column('customer_name', sa.String(length=255), nullable=True),
        sa.Column('customer_email', sa.String(length=255), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price_cents', sa.Integer(), nullable=False),
        sa.Column('total_cents', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('sale_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_simulated', sa.Boolean(), nullable=False),
        sa.Column('created_by_user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        _created_at(),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_sales_company_id', 'sales', ['company_id'])
    op.create_index('ix_sales_product_id', 'sales', ['product_id'])
    op.create_index('ix_sales_customer_id', 'sales', ['customer_id'])
    op.create_index('ix_sales_company_date', 'sales', ['company_id', 'sale_date'])
    op.create_index('ix_sales_company_status', 'sales', ['company_id', 'status'])

    op.create_table(
        'inventory_movements',
        sa.Column('id', sa.Integer(), primary_key=True),
        _company_fk(),
        sa.Column('product_id', sa.Integer(), sa.ForeignKey('products.id'), nullable=False),
        sa.Column('warehouse_id', sa.Integer(), sa.ForeignKey('warehouses.id'), nullable=True),
        sa.Column('movement_type', sa.String(length=16), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('stock_after', sa.Integer(), nullable=False),
        sa.Column('unit_cost_cents', sa.Integer(), nullable=True),
        sa.Column('reason', sa.String(length=255), nullable=True),
        sa.Column('document_number', sa.String(length=64), nullable=True),
        sa.Column('sale_id', sa.Integer(), sa.ForeignKey('sales.id'), nullable=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('movement_date', sa.DateTime(timezone=True), nullable=False),
        _created_at(),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_inventory_movements_company_id', 'inventory_movements', ['company_id'])
    op.create_index('ix_inventory_movements_sale_id', 'inventory_movements', ['sale_id'])
    op.create_index('ix_inventory_movements_company_date', 'inventory_movements', ['company_id', 'movement_date'])
    op.create_index('ix_inventory_movements_product', 'inventory_movements', ['product_id', 'movement_date'])

    op.create_table(
        'stock_alerts',
        sa.Column('id', sa.Integer(), primary_key=True),
        _company_fk(),
        sa.Column('product_id', sa.Integer(), sa.ForeignKey('products.id'), nullable=False),
        sa.Column('alert_type', sa.String(length=32), nullable=False),
        sa.Column('priority', sa.String(length=16), nullable=False),
        sa.Column('message', sa.String(length=512), nullable=False),
        sa.Column('threshold', sa.Integer(), nullable=True),
        sa.Column('current_value', sa.Integer(), nullable=True),
        sa.Column('is_resolved', sa.Boolean(), nullable=False),
        sa.Column('resolved_at', sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_stock_alerts_company_id', 'stock_alerts', ['company_id'])
    op.create_index('ix_stock_alerts_product_id', 'stock_alerts', ['product_id'])
    op.create_index('ix_stock_alerts_company_open', 'stock_alerts', ['company_id', 'is_resolved'])

    op.create_table(
        'enhanced_sales',
        sa.Column('id', sa.Integer(), primary_key=True),
        _company_fk(),
        sa.Column('invoice_number', sa.String(length=64), nullable=False),
        sa.Column('customer_id', sa.Integer(), sa.ForeignKey('customers.id'), nullable=True),
        sa.Column('salesperson_id', sa.Integer(), sa.ForeignKey('salespeople.id'), nullable=True),
        sa.Column('sale_date', sa.Date(), nullable=False),
        sa.Column('due_date', sa.Date(), nullable=True),
        sa.Column('subtotal_cents', sa.Integer(), nullable=False),
        sa.Column('tax_cents', sa.Integer(), nullable=False),
        sa.Column('discount_cents', sa.Integer(), nullable=False),
        sa.Column('total_cents', sa.Integer(), nullable=False),
        sa.Column('payment_status', sa.String(length=16), nullable=False),
        sa.Column('payment_method', sa.String(length=32), nullable=True),
        sa.Column('channel', sa.String(length=32), nullable=True),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        _created_at(),
        sa.UniqueConstraint('company_id', 'invoice_number', name='uq_enhanced_sales_company_invoice'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_enhanced_sales_company_id', 'enhanced_sales', ['company_id'])
    op.create_index('ix_enhanced_sales_customer_id', 'enhanced_sales', ['customer_id'])
    op.create_index('ix_enhanced_sales_salesperson_id', 'enhanced_sales', ['salesperson_id'])
    op.create_index('ix_enhanced_sales_company_date', 'enhanced_sales', ['company_id', 'sale_date'])

    op.create_table(
        'sale_items',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('enhanced_sale_id', sa.Integer(), sa.ForeignKey('enhanced_sales.id'), nullable=False),
        sa.Column('product_id', sa.Integer(), sa.ForeignKey('products.id'), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price_cents', sa.Integer(), nullable=False),
        sa.Column('discount_cents', sa.Integer(), nullable=False),
        sa.Column('line_total_cents', sa.Integer(), nullable=False),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_sale_items_enhanced_sale_id', 'sale_items', ['enhanced_sale_id'])
    op.create_index('ix_sale_items_product_id', 'sale_items', ['product_id'])

    # ============================================================================
    # Collections
    # ============================================================================
    op.create_table(
        'collections',
        sa.Column('id', sa.Integer(), primary_key=True),
        _company_fk(),
        sa.Column('sale_id', sa.Integer(), sa.ForeignKey('sales.id'), nullable=True),
        sa.Column('customer_id', sa.Integer(), sa.ForeignKey('customers.id'), nullable=True),
        sa.Column('customer_name', sa.String(length=255), nullable=False),
        sa.Column('amount_cents', sa.Integer(), nullable=False),
        sa.Column('due_date', sa.Date(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('is_simulated', sa.Boolean(), nullable=False),
        _created_at(),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_collections_company_id', 'collections', ['company_id'])
    op.create_index('ix_collections_sale_id', 'collections', ['sale_id'])
    op.create_index('ix_collections_customer_id', 'collections', ['customer_id'])
    op.create_index('ix_collections_company_status', 'collections', ['company_id', 'status'])
    op.create_index('ix_collections_company_due', 'collections', ['company_id', 'due_date'])

    op.create_table(
        'accounts_receivable',
        sa.Column('id', sa.Integer(), primary_key=True),
        _company_fk(),
        sa.Column('customer_id', sa.Integer(), sa.ForeignKey('customers.id'), nullable=True),
        sa.Column('enhanced_sale_id', sa.Integer(), sa.ForeignKey('enhanced_sales.id'), nullable=True),
        sa.Column('invoice_number', sa.String(length=64), nullable=False),
        sa.Column('invoice_date', sa.Date(), nullable=False),
        sa.Column('due_date', sa.Date(), nullable=False),
        sa.Column('original_amount_cents', sa.Integer(), nullable=False),
        sa.Column('outstanding_amount_cents', sa.Integer(), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('aging_days', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=24), nullable=False),
        sa.Column('priority', sa.String(length=16), nullable=False),
        sa.Column('collection_agent', sa.String(length=120), nullable=True),
        sa.Column('last_contact_date', sa.Date(), nullable=True),
        sa.Column('next_contact_date', sa.Date(), nullable=True),
        sa.Column('is_simulated', sa.Boolean(), nullable=False),
        _created_at(),
        _updated_at(),
        sa.UniqueConstraint('company_id', 'invoice_number', name='uq_receivables_company_invoice'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_accounts_receivable_company_id', 'accounts_receivable', ['company_id'])
    op.create_index('ix_accounts_receivable_customer_id', 'accounts_receivable', ['customer_id'])
    op.create_index('ix_accounts_receivable_enhanced_sale_id', 'accounts_receivable', ['enhanced_sale_id'])
    op.create_index('ix_receivables_company_status', 'accounts_receivable', ['company_id', 'status'])

    op.create_table(
        'payments',
        sa.Column('id', sa.Integer(), primary_key=True),
        _company_fk(),
        sa.Column('receivable_id', sa.Integer(), sa.ForeignKey('accounts_receivable.id'), nullable=False),
        sa.Column('amount_cents', sa.Integer(), nullable=False),
        sa.Column('payment_date', sa.Date(), nullable=False),
        sa.Column('method', sa.String(length=32), nullable=True),
        sa.Column('reference', sa.String(length=120), nullable=True),
        sa.Column('created_by_user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        _created_at(),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_payments_company_id', 'payments', ['company_id'])
    op.create_index('ix_payments_receivable_id', 'payments', ['receivable_id'])

    op.create_table(
        'collection_activities',
        sa.Column('id', sa.Integer(), primary_key=True),
        _company_fk(),
        sa.Column('receivable_id', sa.Integer(), sa.ForeignKey('accounts_receivable.id'), nullable=False),
        sa.Column('activity_type', sa.String(length=16), nullable=False),
        sa.Column('outcome', sa.String(length=120), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('activity_date', sa.Date(), nullable=False),
        sa.Column('next_contact_date', sa.Date(), nullable=True),
        _created_at(),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_collection_activities_company_id', 'collection_activities', ['company_id'])
    op.create_index('ix_collection_activities_receivable_id', 'collection_activities', ['receivable_id'])

    # ============================================================================
    # Imports, chat, dashboards
    # ============================================================================
    op.create_table(
        'data_imports',
        sa.Column('id', sa.Integer(), primary_key=True),
        _company_fk(),
        sa.Column('data_type', sa.String(length=32), nullable=False),
        sa.Column('file_name', sa.String(length=255), nullable=True),
        sa.Column('file_size', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False),
        sa.Column('total_records', sa.Integer(), nullable=False),
        sa.Column('successful_records', sa.Integer(), nullable=False),
        sa.Column('created_records', sa.Integer(), nullable=False),
        sa.Column('updated_records', sa.Integer(), nullable=False),
        sa.Column('failed_records', sa.Integer(), nullable=False),
        sa.Column('errors', sa.JSON(), nullable=True),
        sa.Column('created_by_user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        _created_at(),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_data_imports_company_id', 'data_imports', ['company_id'])
    op.create_index('ix_data_imports_company_created', 'data_imports', ['company_id', 'created_at'])

    op.create_table(
        'chat_conversations',
        sa.Column('id', sa.Integer(), primary_key=True),
        _company_fk(),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        _created_at(),
        _updated_at(),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_chat_conversations_company_user', 'chat_conversations', ['company_id', 'user_id'])

    op.create_table(
        'chat_messages',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('conversation_id', sa.Integer(), sa.ForeignKey('chat_conversations.id'), nullable=False),
        sa.Column('role', sa.String(length=16), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        _created_at(),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_chat_messages_conversation_id', 'chat_messages', ['conversation_id'])

    op.create_table(
        'dashboards',
        sa.Column('id', sa.Integer(), primary_key=True),
        _company_fk(),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('layout', sa.JSON(), nullable=True),
        sa.Column('is_default', sa.Boolean(), nullable=False),
        _created_at(),
        _updated_at(),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_dashboards_company_user', 'dashboards', ['company_id', 'user_id'])


def downgrade():
    for table in (
        'dashboards',
        'chat_messages',
        'chat_conversations',
        'data_imports',
        'collection_activities',
        'payments',
        'accounts_receivable',
        'collections',
        'sale_items',
        'enhanced_sales',
        'stock_alerts',
        'inventory_movements',
        'sales',
        'salespeople',
        'customers',
        'products',
        'warehouses',
        'suppliers',
        'categories',
        'session_tokens',
        'company_invitations',
        'users',
        'companies',
    ):
        op.drop_table(table)
