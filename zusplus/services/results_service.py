# zusplus/services/results_service.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, List, Optional, Sequence

from zusplus.schemas.pension import MINIMUM_WAGE, PrognosisOut, ProfileIn


@dataclass(frozen=True)
class FormInsights:
    salary_vs_minimum_pct: float
    years_of_experience: int
    years_to_retirement: int
    retirement_age: int


@dataclass(frozen=True)
class RetirementWeather:
    status: str
    label: str
    description: str


def form_insights(profile: ProfileIn, today: Optional[date] = None) -> FormInsights:
    current = (today or date.today()).year
    years_to_retirement = max(0, profile.retirement_year - current)
    return FormInsights(
        salary_vs_minimum_pct=round((profile.monthly_income - MINIMUM_WAGE) / MINIMUM_WAGE * 100, 1),
        years_of_experience=max(0, current - profile.career_start_year),
        years_to_retirement=years_to_retirement,
        retirement_age=profile.age + years_to_retirement,
    )


def retirement_weather(percent_difference: float) -> RetirementWeather:
    """"Pogoda emerytury" aus der Abweichung zur Durchschnittsrente (in %)."""
    if percent_difference >= 0:
        return RetirementWeather("sunny", "Słonecznie", "Prognozowane słońce, bezpieczeństwo finansowe")
    if percent_difference >= -20:
        return RetirementWeather("cloudy", "Pochmurno", "Emerytura nieco poniżej średniej krajowej")
    return RetirementWeather("rainy", "Deszczowo", "Emerytura wyraźnie poniżej średniej, warto działać")


def normalize_bars(values: Sequence[float], max_height: float = 100.0) -> List[float]:
    """Balkenhöhen relativ zum größten Wert (0 wenn kein positiver Wert)."""
    top = max(values, default=0)
    if top <= 0:
        return [0.0 for _ in values]
    return [round(max(v, 0) / top * max_height, 1) for v in values]


def build_ai_context(
    profile: ProfileIn,
    prognosis: PrognosisOut,
    today: Optional[date] = None,
) -> Dict[str, Any]:
    """Flacher Kontext (polnische Schlüssel) für Empfehlungen und Chat."""
    insights = form_insights(profile, today)
    weather = retirement_weather(prognosis.roznica_procent)
    return {
        "wiek": profile.age,
        "plec": "kobieta" if profile.gender == "female" else "mężczyzna",
        "wiek_przejscia_na_emeryture": insights.retirement_age,
        "miesieczny_dochod": profile.monthly_income,
        "dni_zwolnien": profile.sick_leave_days or 0,
        "waloryzacja": prognosis.szczegoly.wspolczynnik_waloryzacji,
        "inflacja": prognosis.szczegoly.wspolczynnik_inflacji,
        "aktualna_wyplata": prognosis.aktualna_wyplata,
        "lata_do_emerytury": prognosis.lata_do_emerytury,
        "przyszla_emerytura_realna": prognosis.przyszla_emerytura_realna,
        "przyszla_emerytura_nominalna": prognosis.przyszla_emerytura_nominalna,
        "srednia_krajowa_emerytura": prognosis.srednia_krajowa_emerytura,
        "roznica_procent": prognosis.roznica_procent,
        "status_pogody": weather.label,
        "opis_pogody": weather.description,
    }
