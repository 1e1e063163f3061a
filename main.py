# main.py
import asyncio
import logging
from offer_engine.config import setup_logging
from offer_engine.database.database import Database
from offer_engine.database.offer_repository import PostgresOfferRepository
from offer_engine.exceptions import DuplicateOfferCode
from offer_engine.sample_offers import sample_offers
from offer_engine.services.offer_service import OfferService
from offer_engine.utils.messages import Messages

async def main():
    # Setup logging
    setup_logging()
    logger = logging.getLogger(__name__)
    
    db = Database()
    try:
        await db.connect()
        service = OfferService(PostgresOfferRepository(db))

        # Seed demo offers once
        for data in sample_offers():
            try:
                await service.create_offer(data)
            except DuplicateOfferCode:
                logger.info(f"Offer {data['code']} already present")

        for offer in await service.get_active_offers():
            logger.info(f"Active offer:\n{Messages.format_offer(offer)}")
    except Exception as e:
        logger.error(f"Error seeding offers: {e}", exc_info=True)
        raise
    finally:
        await db.close()

if __name__ == "__main__":
    asyncio.run(main())
