import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Request, Response, status

from .config import Settings, get_settings
from .errors import StoreError
from .granter import DiscordRoleGranter
from .ledger_client import LedgerClient
from .models import RedeemRequest, RedemptionRecord, RedemptionResponse, RedemptionStatus
from .service import RedemptionWorkflow
from .store import SqlRedemptionStore

logger = logging.getLogger(__name__)

HTTP_STATUS = {
    RedemptionStatus.SUCCESS: status.HTTP_200_OK,
    RedemptionStatus.ALREADY_USED: status.HTTP_409_CONFLICT,
    RedemptionStatus.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    RedemptionStatus.LOOKUP_FAILED: status.HTTP_503_SERVICE_UNAVAILABLE,
    RedemptionStatus.GRANT_FAILED: status.HTTP_502_BAD_GATEWAY,
}


def create_app(
    settings: Optional[Settings] = None,
    workflow: Optional[RedemptionWorkflow] = None,
    root_path: str = "",
) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logging.basicConfig(level=settings.log_level.upper())
        if workflow is not None:
            app.state.workflow = workflow
            yield
            return

        store = SqlRedemptionStore(settings.database_url)
        store.open()
        ledger = LedgerClient.from_settings(settings)
        granter = DiscordRoleGranter.from_settings(settings)
        app.state.workflow = RedemptionWorkflow(
            store=store,
            ledger=ledger,
            grant=granter.grant,
            ledger_timeout_s=settings.ledger_timeout_s,
            grant_timeout_s=settings.grant_timeout_s,
        )
        logger.info("[Redeem] Redemption service started")
        try:
            yield
        finally:
            await ledger.aclose()
            await granter.aclose()
            store.close()

    app = FastAPI(
        title="Purchase Redemption API",
        description="Verifies purchase transaction ids against the payment ledger and grants a role once per purchase",
        version="1.0.0",
        root_path=root_path,
        lifespan=lifespan,
    )

    @app.get("/health", tags=["System"])
    def health_check():
        return {"status": "healthy", "service": "purchase-redemption"}

    @app.post("/redemptions", response_model=RedemptionResponse, tags=["Redemptions"])
    async def redeem(body: RedeemRequest, request: Request, response: Response) -> RedemptionResponse:
        result = await request.app.state.workflow.submit(body.transaction_id, body.requester_id)
        response.status_code = HTTP_STATUS[result.status]
        return result

    @app.get("/redemptions/{transaction_id}", response_model=RedemptionRecord, tags=["Redemptions"])
    def get_redemption(transaction_id: str, request: Request) -> RedemptionRecord:
        try:
            record = request.app.state.workflow.get_redemption(transaction_id)
        except StoreError:
            logger.exception(f"[Redeem] Could not read redemption {transaction_id}")
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Redemption records are unavailable, please try again later",
            )
        if record is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Transaction {transaction_id} has not been redeemed",
            )
        return record

    return app


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(create_app(), host="0.0.0.0", port=8000)
