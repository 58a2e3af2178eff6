"""
Account endpoints
=================

GET /api/v1/wallet                         -- balance, earnings, rating
POST /api/v1/wallet/top-ups                -- credit a verified external payment (201)
PUT /api/v1/accounts/documents/{doc_type}  -- record an uploaded document path
GET /api/v1/accounts/documents             -- caller's documents
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.dependencies import get_db, get_identity
from src.api.middleware import RATE_LIMIT, limiter
from src.api.schemas import (
    DocumentRequest,
    DocumentResponse,
    TopUpRequest,
    TopUpResponse,
    WalletResponse,
)
from src.domain.entities import Identity
from src.services.accounts import AccountService
from src.services.queries import AccountQueries

router = APIRouter(tags=["accounts"])


@router.get("/wallet", response_model=WalletResponse, summary="My wallet")
@limiter.limit(RATE_LIMIT)
async def get_wallet(
    request: Request,
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_db),
):
    return await AccountQueries(db).wallet(identity)


@router.post(
    "/wallet/top-ups",
    status_code=201,
    response_model=TopUpResponse,
    summary="Top up wallet",
    responses={409: {"description": "Payment reference already credited."}},
)
@limiter.limit(RATE_LIMIT)
async def top_up_wallet(
    request: Request,
    body: TopUpRequest,
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_db),
):
    topup = await AccountService(db).top_up(
        identity, body.amount, body.funds_verified, body.payment_reference
    )
    return {
        "id": topup.id,
        "payment_reference": topup.payment_reference,
        "amount": topup.amount,
        "wallet": await AccountQueries(db).wallet(identity),
    }


@router.put(
    "/accounts/documents/{doc_type}",
    response_model=DocumentResponse,
    summary="Record a document path",
)
@limiter.limit(RATE_LIMIT)
async def record_document(
    request: Request,
    doc_type: str,
    body: DocumentRequest,
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_db),
):
    return await AccountService(db).record_document(identity, doc_type, body.path)


@router.get(
    "/accounts/documents",
    response_model=list[DocumentResponse],
    summary="My documents",
)
@limiter.limit(RATE_LIMIT)
async def list_documents(
    request: Request,
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_db),
):
    return await AccountService(db).list_documents(identity)
