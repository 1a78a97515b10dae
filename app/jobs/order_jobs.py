"""
Order Processing Jobs

Background jobs for order workflow tasks:
- Supplier payment auto-verification
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict

logger = logging.getLogger(__name__)


async def auto_verify_supplier_payments() -> Dict[str, Any]:
    """
    Verify supplier payments left pending for PAYMENT_AUTO_VERIFY_HOURS.

    This job runs every PAYMENT_AUTO_VERIFY_INTERVAL_MINUTES. It is safe to
    overlap with the on-demand /orders/auto-check call and with suppliers
    verifying or disputing by hand: each order moves with a compare-and-set
    on the pending state.
    """
    logger.info("Starting supplier payment auto-verification...")
    start_time = datetime.now(timezone.utc)

    try:
        from app.database import get_db_session
        from app.services.order_service import OrderService

        async with get_db_session() as session:
            verified_ids = await OrderService(session).auto_verify_payments()

        elapsed = (datetime.now(timezone.utc) - start_time).total_seconds()
        logger.info(
            f"Supplier payment auto-verification completed: "
            f"verified {len(verified_ids)} in {elapsed:.2f}s"
        )
        return {"verified_count": len(verified_ids), "order_ids": [str(i) for i in verified_ids]}

    except Exception as e:
        logger.error(f"Supplier payment auto-verification failed: {e}")
        raise
