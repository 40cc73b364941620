# zusplus/schemas/pension.py
from __future__ import annotations

from datetime import date
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

MINIMUM_WAGE = 4242  # płaca minimalna (PLN brutto)
POSTAL_CODE_PATTERN = r"^\d{2}-\d{3}$"


# ---------- Formular ----------
class ProfileIn(BaseModel):
    gender: Literal["female", "male"]
    age: int = Field(..., ge=18, le=100)
    monthly_income: float = Field(..., ge=MINIMUM_WAGE)
    career_start_year: int = Field(..., ge=1900)
    retirement_year: int = Field(..., le=2200)

    optional_data_enabled: bool = False
    zus_balance: Optional[float] = Field(default=None, ge=0)
    ofe_balance: Optional[float] = Field(default=None, ge=0)
    postal_code: Optional[str] = Field(default=None, pattern=POSTAL_CODE_PATTERN)
    sick_leave_days: Optional[int] = Field(default=None, ge=0)
    expected_pension: Optional[float] = Field(default=None, ge=0)

    @field_validator(
        "zus_balance", "ofe_balance", "postal_code", "sick_leave_days", "expected_pension",
        mode="before",
    )
    @classmethod
    def _empty_to_none(cls, v):
        # leere Formularfelder
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @model_validator(mode="after")
    def _check_years(self) -> "ProfileIn":
        current = date.today().year
        if self.career_start_year > current:
            raise ValueError("Rok rozpoczęcia pracy nie może być w przyszłości")
        if self.retirement_year < current:
            raise ValueError("Rok przejścia na emeryturę nie może być w przeszłości")
        if self.career_start_year >= self.retirement_year:
            raise ValueError("Rok przejścia na emeryturę musi być późniejszy niż rok rozpoczęcia pracy")
        return self


# ---------- Pension-API ----------
class PrognosisDetails(BaseModel):
    podstawa_obliczenia_emerytury: float
    srednie_dalsze_trwanie_zycia_miesiace: float
    szacowana_suma_skladek: float
    kapital_poczatkowy: float
    wspolczynnik_waloryzacji: float
    wspolczynnik_inflacji: float
    lata_skladkowe: float
    srednia_skladka_miesieczna: float


class PrognosisOut(BaseModel):
    aktualna_wyplata: float
    lata_do_emerytury: float
    przyszla_emerytura_nominalna: float
    przyszla_emerytura_realna: float
    srednia_krajowa_emerytura: float
    roznica_procent: float
    szczegoly: PrognosisDetails
    ile_lat: Optional[str] = None


class ChartPoint(BaseModel):
    rok: int
    kwota: float
