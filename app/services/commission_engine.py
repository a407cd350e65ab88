# app/services/commission_engine.py
from typing import List, Optional, Tuple
from decimal import Decimal
from datetime import datetime
from uuid import UUID
from sqlmodel import Session, select
from app.core.exceptions import NotFound
from app.models.commission_rule import (
    CommissionRule, CommissionRuleCreate, CommissionRuleUpdate,
    CommissionType, CommissionLine, CommissionResult
)
from app.models.driver import Driver, DriverStatus
from app.models.financial_settings import FinancialConfig
from app.models.raw_platform_record import RawPlatformRecord, RIDE_PLATFORMS
from app.utils.money import ZERO, percent_of, quantize, to_decimal
from app.utils.weeks import parse_week
import logging

logger = logging.getLogger(__name__)


def rule_amount(rule: CommissionRule, base: Decimal) -> Decimal:
    """Porcentaje sobre la base si está definido; si no, el valor fijo."""
    percentage = to_decimal(rule.percentage)
    if percentage > 0:
        return percent_of(base, percentage)
    return to_decimal(rule.fixed_value)


class CommissionEngine:
    def __init__(self, session: Session, config: FinancialConfig):
        self.session = session
        self.config = config

    # ------------------------------------------------------------------
    # Cálculo
    # ------------------------------------------------------------------

    def ride_earnings(self, driver_id: str, week_id: str) -> Decimal:
        """Ganhos de viajes (ride-a + ride-b) de un motorista en la semana."""
        values = self.session.exec(
            select(RawPlatformRecord.total_value)
            .where(RawPlatformRecord.driver_id == driver_id)
            .where(RawPlatformRecord.week_id == week_id)
            .where(RawPlatformRecord.platform.in_(RIDE_PLATFORMS))
        ).all()
        return sum((to_decimal(v) for v in values), ZERO)

    def active_rule(self, type: CommissionType, level: int) -> Optional[CommissionRule]:
        return self.session.exec(
            select(CommissionRule)
            .where(CommissionRule.type == type)
            .where(CommissionRule.level == level)
            .where(CommissionRule.active == True)  # noqa: E712
            .order_by(CommissionRule.created_at.desc())
        ).first()

    def _direct_recruits(self, driver_id: str) -> List[Driver]:
        return list(self.session.exec(
            select(Driver)
            .where(Driver.referred_by_id == driver_id)
            .order_by(Driver.id)
        ).all())

    def _recruit_tree(self, driver_id: str, depth: int) -> List[Tuple[Driver, int]]:
        """
        Recorre la red de indicados hasta la profundidad configurada.
        Devuelve (motorista, nivel de profundidad) empezando en 1.
        """
        tree = []
        visited = {driver_id}
        frontier = [driver_id]
        for level in range(1, depth + 1):
            next_frontier = []
            for parent_id in frontier:
                for recruit in self._direct_recruits(parent_id):
                    if recruit.id in visited:
                        continue
                    visited.add(recruit.id)
                    tree.append((recruit, level))
                    next_frontier.append(recruit.id)
            if not next_frontier:
                break
            frontier = next_frontier
        return tree

    def compute_commission(self, driver_id: str, week_id: str) -> CommissionResult:
        week = parse_week(week_id)
        driver = self.session.get(Driver, driver_id)
        if not driver:
            raise NotFound(f"Driver {driver_id} not found")

        result = CommissionResult(driver_id=driver.id, week_id=week.week_id)
        if driver.type not in self.config.commission_driver_types:
            return result

        breakdown: List[CommissionLine] = []

        # Comisión base sobre los ganhos propios
        base_rule = self.active_rule(CommissionType.BASE, driver.affiliate_level)
        if base_rule:
            own = self.ride_earnings(driver.id, week.week_id)
            line = CommissionLine(
                rule_id=str(base_rule.id),
                type=CommissionType.BASE,
                level=driver.affiliate_level,
                base=quantize(own),
            )
            min_earnings = to_decimal(base_rule.min_earnings)
            if own <= 0 or own < min_earnings:
                line.eligible = False
                line.reason = f"Earnings {quantize(own)} below minimum {quantize(min_earnings)}"
            else:
                line.amount = quantize(rule_amount(base_rule, own))
            breakdown.append(line)

        # Comisión por indicados, con la tasa del nivel del reclutador
        recruit_rule = self.active_rule(
            CommissionType.RECRUITMENT, driver.affiliate_level)
        if recruit_rule:
            direct_active = [
                r for r in self._direct_recruits(driver.id)
                if r.status == DriverStatus.ACTIVE
            ]
            if len(direct_active) < recruit_rule.min_recruitments:
                breakdown.append(CommissionLine(
                    rule_id=str(recruit_rule.id),
                    type=CommissionType.RECRUITMENT,
                    level=driver.affiliate_level,
                    eligible=False,
                    reason=(f"Requires {recruit_rule.min_recruitments} active recruits, "
                            f"has {len(direct_active)}"),
                ))
            else:
                min_earnings = to_decimal(recruit_rule.min_earnings)
                for recruit, depth in self._recruit_tree(driver.id, self.config.commission_max_depth):
                    if recruit.status != DriverStatus.ACTIVE:
                        continue
                    earnings = self.ride_earnings(recruit.id, week.week_id)
                    line = CommissionLine(
                        rule_id=str(recruit_rule.id),
                        type=CommissionType.RECRUITMENT,
                        level=driver.affiliate_level,
                        depth=depth,
                        referred_driver_id=recruit.id,
                        base=quantize(earnings),
                    )
                    if earnings <= 0 or earnings < min_earnings:
                        line.eligible = False
                        line.reason = f"Recruit earnings {quantize(earnings)} below minimum {quantize(min_earnings)}"
                    else:
                        line.amount = quantize(rule_amount(recruit_rule, earnings))
                    breakdown.append(line)

        result.breakdown = breakdown
        result.base_commission = sum(
            (l.amount for l in breakdown if l.type == CommissionType.BASE), ZERO)
        result.recruitment_commission = sum(
            (l.amount for l in breakdown if l.type == CommissionType.RECRUITMENT), ZERO)
        return result

    # ------------------------------------------------------------------
    # Reglas
    # ------------------------------------------------------------------

    def create_rule(self, data: CommissionRuleCreate) -> CommissionRule:
        rule = CommissionRule(**data.model_dump())
        try:
            self.session.add(rule)
            self.session.commit()
            self.session.refresh(rule)
        except Exception:
            self.session.rollback()
            raise
        logger.info("Regla de comisión %s creada (%s nivel %s)",
                    rule.id, rule.type, rule.level)
        return rule

    def get_rule(self, rule_id: UUID) -> CommissionRule:
        rule = self.session.get(CommissionRule, rule_id)
        if not rule:
            raise NotFound(f"Commission rule {rule_id} not found")
        return rule

    def list_rules(self, active_only: bool = False) -> List[CommissionRule]:
        query = select(CommissionRule)
        if active_only:
            query = query.where(CommissionRule.active == True)  # noqa: E712
        return list(self.session.exec(
            query.order_by(CommissionRule.type, CommissionRule.level, CommissionRule.created_at)
        ).all())

    def update_rule(self, rule_id: UUID, data: CommissionRuleUpdate) -> CommissionRule:
        """
        Las reglas no se editan: se desactiva la actual y se crea una nueva
        versión que la reemplaza.
        """
        current = self.get_rule(rule_id)
        values = current.model_dump(include=set(CommissionRuleCreate.model_fields))
        values.update(data.model_dump(exclude_unset=True))
        replacement = CommissionRule(**values, supersedes_id=current.id)
        current.active = False
        current.updated_at = datetime.utcnow()
        try:
            self.session.add(current)
            self.session.add(replacement)
            self.session.commit()
            self.session.refresh(replacement)
        except Exception:
            self.session.rollback()
            raise
        logger.info("Regla de comisión %s reemplazada por %s",
                    current.id, replacement.id)
        return replacement

    def toggle_rule(self, rule_id: UUID, active: bool) -> CommissionRule:
        rule = self.get_rule(rule_id)
        rule.active = active
        rule.updated_at = datetime.utcnow()
        try:
            self.session.add(rule)
            self.session.commit()
            self.session.refresh(rule)
        except Exception:
            self.session.rollback()
            raise
        return rule
