from typing import List, Optional, Tuple

from sqlmodel import Session, select

from app.core.exceptions import NotFound
from app.models.driver import Driver
from app.models.driver_payment import DriverPayment, PaymentStatus
from app.models.driver_weekly_record import (
    WeeklyPaymentStatus, WeeklyStatement, record_id_for
)
from app.models.financial_settings import FinancialConfig
from app.models.raw_platform_record import RawPlatformRecord
from app.models.referral_bonus import BonusStatus, ReferralBonus
from app.services.commission_engine import CommissionEngine
from app.services.financial_settings_service import get_financial_config
from app.services.financing_ledger import FinancingLedger
from app.services.statement_calculator import (
    WeeklyTotals, aggregate_totals, compute_statement
)
from app.utils.weeks import Week, parse_week


class WeeklyRecordService:
    """
    Proyección DriverWeeklyRecord: se recalcula en cada lectura hasta que
    existe un pago activo; desde entonces se lee el snapshot del pago.
    """

    def __init__(self, session: Session, config: Optional[FinancialConfig] = None):
        self.session = session
        self.config = config or get_financial_config(session)

    def totals_for(self, driver_id: str, week_id: str) -> WeeklyTotals:
        records = self.session.exec(
            select(RawPlatformRecord)
            .where(RawPlatformRecord.week_id == week_id)
            .where(RawPlatformRecord.driver_id == driver_id)
        ).all()
        return aggregate_totals(records).get(driver_id, WeeklyTotals())

    def pending_bonuses(self, driver_id: str) -> List[ReferralBonus]:
        return list(self.session.exec(
            select(ReferralBonus)
            .where(ReferralBonus.driver_id == driver_id)
            .where(ReferralBonus.status == BonusStatus.PENDING)
            .order_by(ReferralBonus.created_at)
        ).all())

    def active_payment(self, driver_id: str, week_id: str) -> Optional[DriverPayment]:
        return self.session.exec(
            select(DriverPayment)
            .where(DriverPayment.record_id == record_id_for(driver_id, week_id))
            .where(DriverPayment.status == PaymentStatus.ACTIVE)
        ).first()

    def build_statement(self, driver: Driver, week: Week) -> Tuple[WeeklyStatement, WeeklyTotals]:
        """Cálculo fresco, sin leer ni escribir estado congelado."""
        totals = self.totals_for(driver.id, week.week_id)
        financings = FinancingLedger(self.session).active_for_driver(driver.id)
        commission = CommissionEngine(self.session, self.config).compute_commission(
            driver.id, week.week_id)
        statement = compute_statement(
            driver, week, totals, financings, self.config,
            commission=commission,
            bonuses=self.pending_bonuses(driver.id),
        )
        return statement, totals

    def get_statement(self, driver_id: str, week_id: str) -> WeeklyStatement:
        week = parse_week(week_id)
        driver = self.session.get(Driver, driver_id)
        if not driver:
            raise NotFound(f"Driver {driver_id} not found")

        payment = self.active_payment(driver.id, week.week_id)
        if payment:
            return frozen_statement(payment)

        # Sin pago activo la semana está pendiente aunque el registro diga
        # otra cosa; esa diferencia la corrige el reconciliador.
        statement, _ = self.build_statement(driver, week)
        return statement

    def week_driver_ids(self, week_id: str) -> List[str]:
        return list(self.session.exec(
            select(RawPlatformRecord.driver_id)
            .where(RawPlatformRecord.week_id == week_id)
            .where(RawPlatformRecord.driver_id != None)  # noqa: E711
            .distinct()
            .order_by(RawPlatformRecord.driver_id)
        ).all())

    def list_week_statements(self, week_id: str) -> List[WeeklyStatement]:
        week = parse_week(week_id)
        return [self.get_statement(driver_id, week.week_id)
                for driver_id in self.week_driver_ids(week.week_id)]


def frozen_statement(payment: DriverPayment) -> WeeklyStatement:
    statement = WeeklyStatement(**payment.record_snapshot["statement"])
    statement.payment_status = WeeklyPaymentStatus.PAID
    statement.payment_id = payment.id
    statement.frozen = True
    return statement
