"""Seller sales lists and product provenance

Revision ID: 20261018_sales_lists
Revises: 20261017_initial
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261018_sales_lists"
down_revision = "20261017_initial"
branch_labels = None
depends_on = None


NOW = sa.text("(CURRENT_TIMESTAMP)")


def upgrade():
    op.create_table(
        "sales_lists",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("seller_id", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="pending"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("admin_notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reviewed_by", sa.Integer(), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.ForeignKeyConstraint(["seller_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["reviewed_by"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("status IN ('pending', 'approved', 'rejected')", name="ck_sales_lists_status"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("sales_lists", schema=None) as batch_op:
        batch_op.create_index("ix_sales_lists_seller_id", ["seller_id"], unique=False)
        batch_op.create_index("ix_sales_lists_status", ["status"], unique=False)

    op.create_table(
        "sales_list_items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("sales_list_id", sa.Integer(), nullable=False),
        sa.Column("line_no", sa.Integer(), nullable=False),
        sa.Column("product_name", sa.String(255), nullable=False),
        sa.Column("specification", sa.String(255), nullable=True),
        sa.Column("manufacturer", sa.String(255), nullable=True),
        sa.Column("expiry_date", sa.Date(), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("selling_price", sa.Numeric(14, 2), nullable=False),
        sa.ForeignKeyConstraint(["sales_list_id"], ["sales_lists.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("sales_list_id", "line_no", name="uq_sales_list_items_line"),
        sa.CheckConstraint("quantity > 0", name="ck_sales_list_items_quantity_positive"),
        sa.CheckConstraint("selling_price > 0", name="ck_sales_list_items_price_positive"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("sales_list_items", schema=None) as batch_op:
        batch_op.create_index("ix_sales_list_items_sales_list_id", ["sales_list_id"], unique=False)

    with op.batch_alter_table("products", schema=None) as batch_op:
        batch_op.add_column(sa.Column("sales_list_id", sa.Integer(), nullable=True))
        batch_op.create_foreign_key(
            "fk_products_sales_list",
            "sales_lists",
            ["sales_list_id"],
            ["id"],
        )
        batch_op.create_index("ix_products_sales_list_id", ["sales_list_id"], unique=False)


def downgrade():
    with op.batch_alter_table("products", schema=None) as batch_op:
        batch_op.drop_index("ix_products_sales_list_id")
        batch_op.drop_constraint("fk_products_sales_list", type_="foreignkey")
        batch_op.drop_column("sales_list_id")

    op.drop_table("sales_list_items")
    op.drop_table("sales_lists")
