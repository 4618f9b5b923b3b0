from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


IMPORT_DATA_TYPES = ("products", "sales", "receivables", "customers", "test_data")
IMPORT_STATUSES = ("processing", "completed", "completed_with_errors", "failed", "cancelled")


class DataImport(db.Model):
    """
    One file (or generated batch) pushed through the ingestion pipeline.

    errors holds at most the first IMPORT_ERROR_LIMIT row errors as
    [{"row": n, "errors": [...]}]; counts are always complete.
    file_size feeds the company storage figure.
    """
    __tablename__ = "data_imports"
    __table_args__ = (
        db.Index("ix_data_imports_company_created", "company_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)
    data_type = db.Column(db.String(32), nullable=False)
    file_name = db.Column(db.String(255), nullable=True)
    file_size = db.Column(db.Integer, nullable=False, default=0)
    status = db.Column(db.String(32), nullable=False, default="processing")

    total_records = db.Column(db.Integer, nullable=False, default=0)
    successful_records = db.Column(db.Integer, nullable=False, default=0)
    created_records = db.Column(db.Integer, nullable=False, default=0)
    updated_records = db.Column(db.Integer, nullable=False, default=0)
    failed_records = db.Column(db.Integer, nullable=False, default=0)
    errors = db.Column(db.JSON, nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "data_type": self.data_type,
            "file_name": self.file_name,
            "file_size": self.file_size,
            "status": self.status,
            "total_records": self.total_records,
            "successful_records": self.successful_records,
            "created_records": self.created_records,
            "updated_records": self.updated_records,
            "failed_records": self.failed_records,
            "errors": self.errors or [],
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "completed_at": to_utc_z(self.completed_at),
        }
