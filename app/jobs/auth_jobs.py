"""
Authentication Jobs

- Expired / consumed login code cleanup
"""

import logging

logger = logging.getLogger(__name__)


async def cleanup_expired_otps() -> int:
    """Delete login codes that expired or were already used."""
    try:
        from app.database import get_db_session
        from app.services.otp_service import EmailOTPService

        async with get_db_session() as session:
            removed = await EmailOTPService(session).cleanup_expired()

        if removed:
            logger.info(f"Cleaned up {removed} expired login code(s)")
        return removed

    except Exception as e:
        logger.error(f"Login code cleanup failed: {e}")
        raise
