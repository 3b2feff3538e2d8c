from typing import Any, Dict, Iterable, List, Optional, Type, Union

from sqlalchemy import desc
from sqlalchemy.orm import Session

from ...models.document_record import DocumentRecord, InlineDocumentRecord

RecordModel = Union[Type[DocumentRecord], Type[InlineDocumentRecord]]


class DocumentRepository:
    """Metadata store operations for either documents table shape"""

    def __init__(self, db: Session, model: RecordModel = DocumentRecord):
        self.db = db
        self.model = model

    def add(self, record) -> Any:
        self.db.add(record)
        self.db.commit()
        self.db.refresh(record)
        return record

    def get_by_id(self, record_id: str):
        return self.db.query(self.model).filter(self.model.id == record_id).first()

    def get_owned(self, owner_id: str, record_id: str):
        return (
            self.db.query(self.model)
            .filter(self.model.id == record_id, self.model.owner_id == owner_id)
            .first()
        )

    def list_for_owner(self, owner_id: str) -> List[Any]:
        return (
            self.db.query(self.model)
            .filter(self.model.owner_id == owner_id)
            .order_by(desc(self.model.created_at))
            .all()
        )

    def count_for_owner(self, owner_id: str) -> int:
        return self.db.query(self.model).filter(self.model.owner_id == owner_id).count()

    def get_primary(self, owner_id: str):
        return (
            self.db.query(self.model)
            .filter(self.model.owner_id == owner_id, self.model.is_primary.is_(True))
            .first()
        )

    def unset_primary(self, owner_id: str) -> int:
        return (
            self.db.query(self.model)
            .filter(self.model.owner_id == owner_id, self.model.is_primary.is_(True))
            .update({self.model.is_primary: False}, synchronize_session=False)
        )

    def mark_primary(self, owner_id: str, record_id: str) -> bool:
        updated = (
            self.db.query(self.model)
            .filter(self.model.id == record_id, self.model.owner_id == owner_id)
            .update({self.model.is_primary: True}, synchronize_session=False)
        )
        return updated == 1

    def update_fields(self, owner_id: str, record_id: str, values: Dict[str, Any]) -> bool:
        updated = (
            self.db.query(self.model)
            .filter(self.model.id == record_id, self.model.owner_id == owner_id)
            .update(
                {getattr(self.model, k): v for k, v in values.items()},
                synchronize_session=False,
            )
        )
        return updated == 1

    def compare_and_set(
        self,
        record_id: str,
        expected_statuses: Iterable[str],
        values: Dict[str, Any],
        expected_attempt: Optional[int] = None,
    ) -> bool:
        """
        Single conditional UPDATE; True only if this call changed the row.
        Caller commits.
        """
        query = self.db.query(self.model).filter(
            self.model.id == record_id,
            self.model.artifact_status.in_(list(expected_statuses)),
        )
        if expected_attempt is not None:
            query = query.filter(self.model.artifact_attempt == expected_attempt)

        updated = query.update(
            {getattr(self.model, k): v for k, v in values.items()},
            synchronize_session=False,
        )
        return updated == 1

    def delete_owned(self, owner_id: str, record_id: str) -> bool:
        deleted = (
            self.db.query(self.model)
            .filter(self.model.id == record_id, self.model.owner_id == owner_id)
            .delete(synchronize_session=False)
        )
        return deleted == 1
