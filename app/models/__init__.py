# Módulo models: define las clases y estructuras de datos principales de la aplicación (SQLModel/Pydantic)
# El orden de las importaciones es importante para la creación de las tablas en la base de datos
# Las tablas con claves foráneas deben importarse después de las tablas que referencian

from .driver import Driver, DriverUpsert, DriverType, DriverStatus, AdminFeeMode, AdminFeeExemptionUpdate
from .raw_platform_record import RawPlatformRecord, Platform, PlatformRow, MatchMethod, ManualMapping, RIDE_PLATFORMS
from .weekly_data_sources import WeeklyDataSources, DataSourceStatus, SourceStatus, SourceOrigin, PlatformImport, WeekStats
from .financial_settings import FinancialSettings, FinancialConfig, FinancingOptions, EligibilityPolicy
from .financing import Financing, FinancingCreate, FinancingType, FinancingStatus, FinancingApplication
from .commission_rule import CommissionRule, CommissionRuleCreate, CommissionRuleUpdate, CommissionType, CommissionResult, CommissionLine
from .referral_bonus import ReferralBonus, ReferralBonusCreate, BonusStatus
from .driver_weekly_record import DriverWeeklyRecord, WeeklyStatement, WeeklyPaymentStatus, FinancingCharge, record_id_for
from .driver_payment import DriverPayment, DriverPaymentCreate, PaymentProof, PaymentCancel, PaymentStatus
