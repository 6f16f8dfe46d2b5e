# app/services/stock_service.py
from typing import Dict

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.domain.errors import InvalidQuantityError, StockReservationFailedError
from app.repos.stock_repo import StockRepo
from app.utils.logging import get_logger

logger = get_logger(__name__)


class StockService:
    """
    Ledger stanow magazynowych.
    - reserve / release: jeden warunkowy UPDATE, commit od razu
    - reserve_batch: niezalezne rezerwacje per produkt, BEZ automatycznego rollbacku,
      kompensacja jest po stronie wywolujacego (checkout); blad bazy przy ktorymkolwiek
      produkcie konczy sie StockReservationFailedError z wynikami per produkt
    - check_availability: tylko podglad, moze byc nieaktualny
    Zadnych lockow w procesie, wyscig rozstrzyga baza.
    """

    def __init__(self, db: Session):
        self.repo = StockRepo(db)

    @staticmethod
    def _validate_quantity(quantity: int) -> None:
        if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity <= 0:
            raise InvalidQuantityError(f"Quantity must be a positive integer, got {quantity!r}")

    def reserve(self, product_id: str, quantity: int) -> bool:
        self._validate_quantity(quantity)

        try:
            rowcount = self.repo.decrement_if_available(product_id, quantity)
            self.repo.commit()
        except SQLAlchemyError:
            self.repo.rollback()
            raise

        if rowcount == 1:
            logger.info(f"Reserved {quantity} units of product {product_id}")
            return True

        logger.warning(f"Insufficient stock for product {product_id} (requested: {quantity})")
        return False

    def reserve_batch(self, quantities: Dict[str, int]) -> Dict[str, bool]:
        logger.info(f"Reserving stock for products: {quantities}")

        results: Dict[str, bool] = {}
        broken: Dict[str, SQLAlchemyError] = {}
        for product_id, quantity in quantities.items():
            try:
                results[product_id] = self.reserve(product_id, quantity)
            except SQLAlchemyError as e:
                logger.error(f"Error reserving stock for product {product_id}: {e}")
                results[product_id] = False
                broken[product_id] = e

        # awaria bazy to nie brak towaru, udane rezerwacje i tak zostaja w results
        if broken:
            raise StockReservationFailedError(broken, results) from next(iter(broken.values()))
        return results

    def release(self, product_id: str, quantity: int) -> bool:
        self._validate_quantity(quantity)

        try:
            rowcount = self.repo.increment(product_id, quantity)
            self.repo.commit()
        except SQLAlchemyError:
            self.repo.rollback()
            raise

        if rowcount == 1:
            logger.info(f"Released {quantity} units of product {product_id}")
            return True

        logger.warning(f"Failed to release stock for product {product_id}: product not found")
        return False

    def check_availability(self, product_id: str, quantity: int) -> bool:
        row = self.repo.get_stock(product_id)
        if row is None:
            return False
        stock, available = row
        return bool(available) and stock >= quantity

    def current_stock(self, product_id: str) -> int:
        row = self.repo.get_stock(product_id)
        return row[0] if row else 0
