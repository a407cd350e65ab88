from sqlmodel import Session, select
from typing import List, Optional
from datetime import datetime
import logging

from app.core.exceptions import NotFound, PayoutError
from app.models.driver import (
    Driver, DriverUpsert, DriverStatus, AdminFeeExemptionUpdate
)
from app.models.referral_bonus import ReferralBonus, ReferralBonusCreate, BonusStatus

logger = logging.getLogger(__name__)


class DriverService:
    """
    Copia local del directorio de motoristas. Los datos vienen del
    subsistema de gestión de motoristas y aquí solo se sincronizan.
    """

    def __init__(self, session: Session):
        self.session = session

    def upsert_driver(self, data: DriverUpsert) -> Driver:
        if data.referred_by_id:
            if data.referred_by_id == data.id:
                raise PayoutError("A driver cannot refer themselves")
            if not self.session.get(Driver, data.referred_by_id):
                raise NotFound(f"Referrer {data.referred_by_id} not found")

        driver = self.session.get(Driver, data.id)
        if driver:
            for field, value in data.model_dump(exclude={"id"}).items():
                setattr(driver, field, value)
            driver.updated_at = datetime.utcnow()
        else:
            driver = Driver(**data.model_dump())

        try:
            self.session.add(driver)
            self.session.commit()
            self.session.refresh(driver)
        except Exception:
            self.session.rollback()
            raise
        return driver

    def get_driver(self, driver_id: str) -> Driver:
        driver = self.session.get(Driver, driver_id)
        if not driver:
            raise NotFound(f"Driver {driver_id} not found")
        return driver

    def list_drivers(self, status: Optional[DriverStatus] = None) -> List[Driver]:
        query = select(Driver)
        if status:
            query = query.where(Driver.status == status)
        return list(self.session.exec(query.order_by(Driver.name)).all())

    def set_exemption(self, driver_id: str, data: AdminFeeExemptionUpdate) -> Driver:
        """Fija (o con weeks=0 elimina) la isención de taxa adm."""
        driver = self.get_driver(driver_id)
        driver.admin_fee_exemption_weeks = data.weeks
        driver.admin_fee_exemption_reason = data.reason if data.weeks else None
        driver.updated_at = datetime.utcnow()
        try:
            self.session.add(driver)
            self.session.commit()
            self.session.refresh(driver)
        except Exception:
            self.session.rollback()
            raise
        logger.info("Isención de taxa adm de %s: %d semana(s)",
                    driver.id, data.weeks)
        return driver

    def create_bonus(self, data: ReferralBonusCreate) -> ReferralBonus:
        self.get_driver(data.driver_id)
        if data.referred_driver_id:
            self.get_driver(data.referred_driver_id)
        bonus = ReferralBonus(**data.model_dump())
        try:
            self.session.add(bonus)
            self.session.commit()
            self.session.refresh(bonus)
        except Exception:
            self.session.rollback()
            raise
        return bonus

    def list_bonuses(self, driver_id: str, status: Optional[BonusStatus] = None) -> List[ReferralBonus]:
        query = select(ReferralBonus).where(ReferralBonus.driver_id == driver_id)
        if status:
            query = query.where(ReferralBonus.status == status)
        return list(self.session.exec(query.order_by(ReferralBonus.created_at)).all())
