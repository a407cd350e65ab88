"""
Cálculo del extracto semanal de un motorista.

Todo en este módulo es puro: recibe los totales de plataforma ya resueltos,
el motorista, sus financiamientos y la configuración financiera, y devuelve
un WeeklyStatement sin tocar la base de datos. Los valores intermedios se
mantienen con precisión completa y solo se redondean al devolverlos.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Sequence

from app.models.commission_rule import CommissionResult
from app.models.driver import AdminFeeMode, Driver, DriverType
from app.models.driver_weekly_record import FinancingCharge, WeeklyStatement, record_id_for
from app.models.financial_settings import EligibilityPolicy, FinancialConfig, FinancingOptions
from app.models.financing import Financing, FinancingStatus
from app.models.raw_platform_record import Platform, RawPlatformRecord
from app.models.referral_bonus import ReferralBonus
from app.utils.money import ZERO, as_json, percent_of, quantize, to_decimal
from app.utils.weeks import Week


@dataclass
class WeeklyTotals:
    ride_a: Decimal = ZERO
    ride_b: Decimal = ZERO
    trips: int = 0
    fuel: Decimal = ZERO
    toll: Decimal = ZERO

    def add(self, platform: Platform, value, trips: int = 0):
        value = to_decimal(value)
        if platform == Platform.RIDE_A:
            self.ride_a += value
            self.trips += trips or 0
        elif platform == Platform.RIDE_B:
            self.ride_b += value
            self.trips += trips or 0
        elif platform == Platform.FUEL_CARD:
            self.fuel += value
        elif platform == Platform.TOLL_ROAD:
            self.toll += value

    @property
    def ride_earnings(self) -> Decimal:
        return self.ride_a + self.ride_b


def aggregate_totals(records: Iterable[RawPlatformRecord]) -> Dict[str, WeeklyTotals]:
    """Agrupa registros resueltos por motorista. Los no resueltos se ignoran."""
    totals: Dict[str, WeeklyTotals] = {}
    for record in records:
        if not record.driver_id:
            continue
        totals.setdefault(record.driver_id, WeeklyTotals()).add(
            Platform(record.platform), record.total_value, record.total_trips)
    return totals


def is_financing_eligible(financing: Financing, week: Week, options: FinancingOptions) -> bool:
    """
    Un financiamiento activo cuenta en la semana si empezó antes del límite
    (fin de semana por defecto, inicio con la política alternativa).
    """
    if financing.status != FinancingStatus.ACTIVE:
        return False
    if not options.dynamic_calculation:
        return True
    if options.eligibility_policy == EligibilityPolicy.START_DATE_TO_WEEK_START:
        boundary = week.start
    else:
        boundary = week.end
    return financing.start_date <= boundary


def admin_fee_terms(driver: Driver, config: FinancialConfig):
    """Devuelve (modo, valor) de la taxa adm: la del motorista o la global."""
    mode = AdminFeeMode(driver.admin_fee_mode or config.admin_fee_mode)
    custom = driver.admin_fee_mode is not None and driver.admin_fee_value is not None
    if mode == AdminFeeMode.PERCENT:
        rate = driver.admin_fee_value if custom else config.admin_fee_percent
    else:
        rate = driver.admin_fee_value if custom else config.admin_fee_fixed_default
    return mode, to_decimal(rate)


def compute_statement(
    driver: Driver,
    week: Week,
    totals: Optional[WeeklyTotals],
    financings: Sequence[Financing],
    config: FinancialConfig,
    commission: Optional[CommissionResult] = None,
    bonuses: Sequence[ReferralBonus] = (),
) -> WeeklyStatement:
    totals = totals or WeeklyTotals()
    is_renter = driver.type == DriverType.RENTER

    # 1-3. Ganhos, IVA y ganhos sin IVA
    ganhos_total = totals.ride_earnings
    iva_valor = ganhos_total * to_decimal(config.vat_rate)
    ganhos_menos_iva = ganhos_total - iva_valor

    # 4. Taxa adm base
    mode, rate = admin_fee_terms(driver, config)
    exempt = (driver.admin_fee_exemption_weeks or 0) > 0
    if exempt:
        despesas_base = ZERO
    elif mode == AdminFeeMode.PERCENT:
        despesas_base = percent_of(ganhos_menos_iva, rate)
    else:
        despesas_base = rate

    # 5 y 8. Intereses y parcelas de los financiamientos elegibles
    charges: List[FinancingCharge] = []
    interest_total = ZERO
    installments_total = ZERO
    for financing in financings:
        if financing.driver_id != driver.id:
            continue
        if not is_financing_eligible(financing, week, config.financing):
            continue
        interest = percent_of(ganhos_menos_iva, financing.weekly_interest)
        installment = financing.weekly_installment()
        interest_total += interest
        installments_total += installment
        charges.append(FinancingCharge(
            financing_id=str(financing.id),
            type=financing.type,
            installment=quantize(installment),
            interest_percent=to_decimal(financing.weekly_interest),
            interest_amount=quantize(interest),
            remaining_weeks=financing.remaining_weeks,
        ))

    # 6. Despesas adm
    despesas_adm = despesas_base + interest_total

    # Portagens y aluguel solo para motoristas que alquilan el vehículo
    fuel = totals.fuel
    toll = totals.toll if is_renter else ZERO
    aluguel = to_decimal(driver.rental_fee) if is_renter else ZERO

    # 7. Comisión: se suma al repasse
    commission_amount = commission.total if commission else ZERO

    # 9. Repasse
    total_despesas = despesas_adm + fuel + toll + aluguel + installments_total
    repasse = ganhos_menos_iva - total_despesas + commission_amount

    bonus_amount = sum((to_decimal(b.amount) for b in bonuses), ZERO)

    return WeeklyStatement(
        record_id=record_id_for(driver.id, week.week_id),
        driver_id=driver.id,
        driver_name=driver.name,
        driver_type=driver.type,
        week_id=week.week_id,
        week_start=week.start,
        week_end=week.end,
        ride_a_total=quantize(totals.ride_a),
        ride_b_total=quantize(totals.ride_b),
        total_trips=totals.trips,
        fuel_total=quantize(fuel),
        toll_total=quantize(toll),
        ganhos_total=quantize(ganhos_total),
        iva_valor=quantize(iva_valor),
        ganhos_menos_iva=quantize(ganhos_menos_iva),
        admin_fee_mode=mode,
        admin_fee_rate=rate,
        admin_fee_exempt=exempt,
        despesas_base=quantize(despesas_base),
        financing_interest=quantize(interest_total),
        despesas_adm=quantize(despesas_adm),
        aluguel=quantize(aluguel),
        financing_total_cost=quantize(installments_total),
        financing=charges,
        commission_amount=quantize(commission_amount),
        commission_breakdown=commission.breakdown if commission else [],
        total_despesas=quantize(total_despesas),
        repasse=quantize(repasse),
        bonus_amount=quantize(bonus_amount),
        bonus_ids=[str(b.id) for b in bonuses],
    )


def statement_snapshot(statement: WeeklyStatement, totals: Optional[WeeklyTotals], config: FinancialConfig) -> dict:
    """
    Entradas y salidas del cálculo que se congelan en el DriverPayment,
    suficientes para reproducirlo más tarde.
    """
    totals = totals or WeeklyTotals()
    return {
        "inputs": {
            "ride_a_total": as_json(totals.ride_a),
            "ride_b_total": as_json(totals.ride_b),
            "total_trips": totals.trips,
            "fuel_total": as_json(totals.fuel),
            "toll_total": as_json(totals.toll),
            "vat_rate": as_json(to_decimal(config.vat_rate)),
            "driver_type": statement.driver_type.value,
            "admin_fee_mode": statement.admin_fee_mode.value,
            "admin_fee_rate": as_json(statement.admin_fee_rate),
            "admin_fee_exempt": statement.admin_fee_exempt,
            "rental_fee": as_json(statement.aluguel),
            "financing": [
                {
                    "financing_id": c.financing_id,
                    "interest_percent": as_json(c.interest_percent),
                    "installment": as_json(c.installment),
                }
                for c in statement.financing
            ],
            "commission": as_json(statement.commission_amount),
            "eligibility_policy": config.financing.eligibility_policy.value,
            "dynamic_calculation": config.financing.dynamic_calculation,
        },
        "statement": statement.model_dump(mode="json"),
    }
