from typing import Any, Dict, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, sessionmaker

from ..core.logger import logger
from ..models.token_usage import TokenUsage


class MeteringService:
    """Records model token consumption per owner"""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def record_usage(
        self,
        owner_id: str,
        operation: str,
        tokens_used: int,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> TokenUsage:
        db: Session = self.session_factory()
        try:
            usage = TokenUsage(
                owner_id=owner_id,
                operation_type=operation,
                tokens_used=tokens_used,
                metadata_=metadata or {},
            )
            db.add(usage)
            db.commit()
            db.refresh(usage)
            logger.info(f"Recorded {tokens_used} tokens for {operation} (owner {owner_id})")
            return usage
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def current_usage(self, owner_id: str) -> int:
        db: Session = self.session_factory()
        try:
            total = (
                db.query(func.coalesce(func.sum(TokenUsage.tokens_used), 0))
                .filter(TokenUsage.owner_id == owner_id)
                .scalar()
            )
            return int(total)
        finally:
            db.close()
