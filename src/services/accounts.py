"""Wallet top-ups and document paths: the thin account-side surface of the core."""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from src.domain.entities import Identity
from src.domain.enums import DocumentType
from src.domain.errors import ForbiddenError, NotFoundError, ValidationError
from src.infrastructure.models import ActorDocumentModel, WalletTopUpModel
from src.infrastructure.repositories import ActorDocumentRepository, ActorRepository
from src.services.settlement import SettlementService

logger = logging.getLogger(__name__)


class AccountService:
    def __init__(self, session: AsyncSession):
        self.actors = ActorRepository(session)
        self.documents = ActorDocumentRepository(session)
        self.settlement = SettlementService(session)

    async def top_up(
        self,
        identity: Identity,
        amount: float,
        funds_verified: bool,
        payment_reference: str,
    ) -> WalletTopUpModel:
        if not payment_reference:
            raise ValidationError("payment_reference is required")
        return await self.settlement.credit_top_up(
            identity.actor_id, amount, funds_verified, payment_reference
        )

    async def record_document(
        self, identity: Identity, doc_type: DocumentType | str, path: str
    ) -> ActorDocumentModel:
        """Store the path the document collaborator returned for ``doc_type``."""
        try:
            doc_type = DocumentType(doc_type)
        except ValueError as exc:
            raise ValidationError("Invalid or missing docType") from exc
        if not path:
            raise ValidationError("path is required")
        if not identity.is_driver and doc_type != DocumentType.PROFILE_IMAGE:
            raise ForbiddenError("Only drivers can upload verification documents")
        if await self.actors.get_by_id(identity.actor_id) is None:
            raise NotFoundError("Actor not found")

        document = await self.documents.upsert(identity.actor_id, doc_type, path)
        logger.info("Actor %d recorded %s", identity.actor_id, doc_type.value)
        return document

    async def list_documents(self, identity: Identity) -> list[ActorDocumentModel]:
        return await self.documents.list_for_actor(identity.actor_id)
