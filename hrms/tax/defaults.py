"""Thai 2025 personal income tax defaults, used for seeding a tax year."""

from decimal import Decimal

from hrms.common.constants import TaxSettingType

# (min_income, max_income, rate %, description)
THAI_2025_BRACKETS: list[tuple[Decimal, Decimal | None, Decimal, str]] = [
    (Decimal("0"), Decimal("150000"), Decimal("0"), "Exempt"),
    (Decimal("150000"), Decimal("300000"), Decimal("5"), "150,001 - 300,000"),
    (Decimal("300000"), Decimal("500000"), Decimal("10"), "300,001 - 500,000"),
    (Decimal("500000"), Decimal("750000"), Decimal("15"), "500,001 - 750,000"),
    (Decimal("750000"), Decimal("1000000"), Decimal("20"), "750,001 - 1,000,000"),
    (Decimal("1000000"), Decimal("2000000"), Decimal("25"), "1,000,001 - 2,000,000"),
    (Decimal("2000000"), Decimal("5000000"), Decimal("30"), "2,000,001 - 5,000,000"),
    (Decimal("5000000"), None, Decimal("35"), "Above 5,000,000"),
]

# key -> (value, type, description)
THAI_2025_SETTINGS: dict[str, tuple[Decimal, TaxSettingType, str]] = {
    "EMPLOYMENT_DEDUCTION_RATE": (Decimal("50"), TaxSettingType.DEDUCTION, "Employment income deduction (%)"),
    "EMPLOYMENT_DEDUCTION_MAX": (Decimal("100000"), TaxSettingType.LIMIT, "Employment income deduction cap"),
    "PERSONAL_ALLOWANCE": (Decimal("60000"), TaxSettingType.ALLOWANCE, "Personal allowance"),
    "SPOUSE_ALLOWANCE": (Decimal("60000"), TaxSettingType.ALLOWANCE, "Spouse without income"),
    "CHILD_ALLOWANCE": (Decimal("30000"), TaxSettingType.ALLOWANCE, "First child"),
    "CHILD_ALLOWANCE_SUBSEQUENT": (Decimal("60000"), TaxSettingType.ALLOWANCE, "Each subsequent child"),
    "PARENT_ALLOWANCE": (Decimal("30000"), TaxSettingType.ALLOWANCE, "Per eligible parent"),
    "SSF_RATE": (Decimal("5"), TaxSettingType.RATE, "Social security contribution rate (%)"),
    "SSF_MAX_MONTHLY": (Decimal("750"), TaxSettingType.LIMIT, "Social security monthly cap"),
    "PVD_FUND_RATE": (Decimal("7.5"), TaxSettingType.RATE, "Provident fund rate, Thai citizens (%)"),
    "PVD_FUND_MAX": (Decimal("500000"), TaxSettingType.LIMIT, "Provident fund annual cap"),
    "SAVING_FUND_RATE": (Decimal("7.5"), TaxSettingType.RATE, "Saving fund rate, non-Thai staff (%)"),
    "SAVING_FUND_MAX": (Decimal("500000"), TaxSettingType.LIMIT, "Saving fund annual cap"),
}
