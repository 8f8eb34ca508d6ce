from fastapi import APIRouter

from erp.app.api.v1.endpoints.health import router as health_router
from erp.app.api.v1.endpoints.accounts import router as accounts_router
from erp.app.api.v1.endpoints.journals import router as journals_router
from erp.app.api.v1.endpoints.journal_entries import router as journal_entries_router
from erp.app.api.v1.endpoints.inventories import router as inventories_router
from erp.app.api.v1.endpoints.stocks import router as stocks_router
from erp.app.api.v1.endpoints.stock_transfers import router as stock_transfers_router
from erp.app.api.v1.endpoints.purchase_orders import router as purchase_orders_router
from erp.app.api.v1.endpoints.sale_orders import router as sale_orders_router
from erp.app.api.v1.endpoints.loans import router as loans_router
from erp.app.api.v1.endpoints.loan_installments import router as loan_installments_router

router = APIRouter()
router.include_router(health_router, tags=["health"])
router.include_router(accounts_router, tags=["accounts"])
router.include_router(journals_router, tags=["journals"])
router.include_router(journal_entries_router, tags=["journal_entries"])
router.include_router(inventories_router, tags=["inventories"])
router.include_router(stocks_router, tags=["stocks"])
router.include_router(stock_transfers_router, tags=["stock_transfers"])
router.include_router(purchase_orders_router, tags=["purchase_orders"])
router.include_router(sale_orders_router, tags=["sale_orders"])
router.include_router(loans_router, tags=["loans"])
router.include_router(loan_installments_router, tags=["loan_installments"])
