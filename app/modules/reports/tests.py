"""
Tests para el módulo de Reportes (comparativa)

Tests que cubren:
- Calendario ISO-8601 (semana/año, inicio de semana, enumeración, inversa)
- Clasificación de sesiones por pipeline
- Conteos por semana y por dimensión, sparklines
- Tendencias alineadas y ventanas independientes por rango
- Ranking de productos, desgloses, mezclas sí/no y variación porcentual
- Orquestación completa con una fuente de datos en memoria
- Endpoint HTTP: validación por parámetro, sobre de error, exportación CSV
"""

import asyncio
from datetime import date, datetime, timedelta, timezone
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient
from pydantic import ValidationError
from sqlalchemy.dialects import postgresql

from app.main import app
from app.common.errors import ApiError
from app.core.config import Settings
from app.modules.reports.analytics.bucketing import (
    NO_SITE_LABEL,
    build_sparkline,
    count_by_dimension,
    count_by_iso_week,
)
from app.modules.reports.analytics.calendar import (
    DateRange,
    IsoWeekKey,
    enumerate_iso_weeks,
    iso_week_of,
    iso_week_to_date,
    start_of_iso_week,
    trailing_iso_weeks,
    weeks_in_iso_year,
)
from app.modules.reports.analytics.classifier import (
    SessionCategory,
    classify,
    classify_pipeline,
    normalize_pipeline_label,
)
from app.modules.reports.analytics.events import SessionEvent, VariantEvent
from app.modules.reports.analytics.ranking import (
    NO_PRODUCT_LABEL,
    binary_mix,
    compute_delta_percentage,
    merge_breakdown,
    product_label,
    rank_products,
)
from app.modules.reports.analytics.trends import build_trend, unified_weeks
from app.modules.reports.routers.comparative import get_comparative_source
from app.modules.reports.services.comparative import ComparativeReportService
from app.modules.reports.services.sources import SqlAlchemyComparativeSource


REPORT_URL = "/api/v1/reports/comparative"


class FakeComparativeSource:
    """Fuente en memoria que respeta la ventana semiabierta [start, end_exclusive)"""

    def __init__(self, sessions=(), variants=(), fail=False):
        self.sessions = list(sessions)
        self.variants = list(variants)
        self.fail = fail
        self.calls = []

    async def fetch_sessions(self, start, end_exclusive):
        self.calls.append(("sessions", start, end_exclusive))
        if self.fail:
            raise RuntimeError("database unavailable")
        return [s for s in self.sessions if start <= s.event_date < end_exclusive]

    async def fetch_variants(self, start, end_exclusive):
        self.calls.append(("variants", start, end_exclusive))
        if self.fail:
            raise RuntimeError("database unavailable")
        return [v for v in self.variants if start <= v.event_date < end_exclusive]


# ===== FIXTURES =====

@pytest.fixture
def june_sessions():
    """Sesiones de junio 2024 (actual) y junio 2023 (comparativa)"""
    return [
        # Periodo actual: 3 Formación Empresa, 1 GEP Services, 1 sin clasificar
        SessionEvent(
            event_date=date(2024, 6, 3), pipeline_label="Formación Empresa",
            site_label="Madrid", fundae=True, product_name="PRL Básico"
        ),
        SessionEvent(
            event_date=date(2024, 6, 4), pipeline_label="formacion empresas",
            site_label=None, fundae=None, product_code="EXT-01"
        ),
        SessionEvent(
            event_date=date(2024, 6, 6), pipeline_label="  FORMACIÓN EMPRESA ",
            site_label="Madrid", fundae=False, hotel=True, product_name="PRL Básico"
        ),
        SessionEvent(
            event_date=date(2024, 6, 2), pipeline_label="GEP Services",
            service_type="Coordinación CAE", caes=True, product_name="Coordinación"
        ),
        SessionEvent(
            event_date=date(2024, 6, 5), pipeline_label="Pipeline desconocido",
            site_label="Madrid", product_name="PRL Básico"
        ),
        # Comparativa: 1 Formación Empresa
        SessionEvent(
            event_date=date(2023, 6, 5), pipeline_label="Formación Empresa",
            site_label="Sevilla", product_name="PRL Básico"
        ),
    ]


@pytest.fixture
def june_variants():
    return [
        VariantEvent(event_date=date(2024, 6, 5), site_label="Bilbao", product_name="Extinción"),
    ]


@pytest.fixture
def fake_source(june_sessions, june_variants):
    return FakeComparativeSource(june_sessions, june_variants)


@pytest.fixture
def june_ranges():
    return (
        DateRange(date(2024, 6, 1), date(2024, 6, 7)),
        DateRange(date(2023, 6, 1), date(2023, 6, 7)),
    )


@pytest.fixture
def june_report(fake_source, june_ranges):
    service = ComparativeReportService(source=fake_source)
    return asyncio.run(service.get_comparative_report(*june_ranges))


@pytest.fixture
def api_client(fake_source):
    app.dependency_overrides[get_comparative_source] = lambda: fake_source
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def tenant_headers():
    return {"X-Company-ID": str(uuid4())}


@pytest.fixture
def june_params():
    return {
        "currentStartDate": "2024-06-01",
        "currentEndDate": "2024-06-07",
        "previousStartDate": "2023-06-01",
        "previousEndDate": "2023-06-07",
    }


# ===== TESTS DE CALENDARIO ISO =====

class TestIsoCalendar:
    """Tests para el cálculo de semanas ISO-8601"""

    def test_iso_week_reference_dates(self):
        """Fechas de referencia conocidas, incluidos cambios de año"""
        assert iso_week_of(date(2024, 1, 1)) == IsoWeekKey(2024, 1)
        assert iso_week_of(date(2023, 1, 1)) == IsoWeekKey(2022, 52)
        assert iso_week_of(date(2020, 12, 31)) == IsoWeekKey(2020, 53)
        assert iso_week_of(date(2021, 1, 3)) == IsoWeekKey(2020, 53)
        assert iso_week_of(date(2019, 12, 30)) == IsoWeekKey(2020, 1)

    def test_iso_week_matches_standard_library(self):
        """Coincide con date.isocalendar() en un rango amplio de días"""
        day = date(2015, 1, 1)
        while day <= date(2030, 12, 31):
            iso_year, iso_week, _ = day.isocalendar()
            assert iso_week_of(day) == IsoWeekKey(iso_year, iso_week)
            day += timedelta(days=1)

    def test_iso_week_uses_utc_date(self):
        """Un datetime con zona se convierte a fecha UTC antes de calcular"""
        value = datetime(2024, 1, 1, 0, 30, tzinfo=timezone(timedelta(hours=2)))
        assert iso_week_of(value) == IsoWeekKey(2023, 52)

    def test_week_label_format(self):
        assert IsoWeekKey(2024, 3).label == "2024-W03"
        assert str(IsoWeekKey(2020, 53)) == "2020-W53"

    def test_start_of_iso_week_sunday(self):
        """El domingo pertenece a la semana que empezó 6 días antes"""
        assert start_of_iso_week(date(2024, 3, 10)) == date(2024, 3, 4)
        assert start_of_iso_week(date(2024, 3, 4)) == date(2024, 3, 4)
        assert start_of_iso_week(date(2024, 3, 7)) == date(2024, 3, 4)

    def test_iso_week_to_date_reference(self):
        assert iso_week_to_date(2024, 1) == date(2024, 1, 1)
        assert iso_week_to_date(2022, 52) == date(2022, 12, 26)
        assert iso_week_to_date(2020, 53) == date(2020, 12, 28)
        assert iso_week_to_date(2021, 1) == date(2021, 1, 4)
        assert iso_week_to_date(2026, 1) == date(2025, 12, 29)

    def test_iso_week_round_trip(self):
        """isoWeekOf(isoWeekToDate(y, w)) == (y, w) para toda semana válida"""
        for iso_year in range(2000, 2036):
            for iso_week in range(1, weeks_in_iso_year(iso_year) + 1):
                monday = iso_week_to_date(iso_year, iso_week)
                assert monday.isoweekday() == 1
                assert iso_week_of(monday) == IsoWeekKey(iso_year, iso_week)

    def test_iso_week_to_date_rejects_missing_week(self):
        assert weeks_in_iso_year(2021) == 52
        with pytest.raises(ValueError):
            iso_week_to_date(2021, 53)
        with pytest.raises(ValueError):
            iso_week_to_date(2024, 0)

    def test_enumerate_iso_weeks_within_month(self):
        weeks = enumerate_iso_weeks(date(2024, 3, 1), date(2024, 3, 15))
        assert [week.label for week in weeks] == ["2024-W09", "2024-W10", "2024-W11"]

    def test_enumerate_iso_weeks_across_year(self):
        weeks = enumerate_iso_weeks(date(2020, 12, 20), date(2021, 1, 10))
        assert [week.label for week in weeks] == ["2020-W51", "2020-W52", "2020-W53", "2021-W01"]

    def test_enumerate_iso_weeks_completeness(self):
        """Una entrada por semana tocada, sin huecos ni duplicados"""
        ranges = [
            (date(2023, 12, 25), date(2024, 2, 29)),
            (date(2024, 6, 1), date(2024, 6, 1)),
            (date(2019, 11, 30), date(2021, 1, 4)),
        ]
        for start, end in ranges:
            touched = {iso_week_of(start + timedelta(days=i)) for i in range((end - start).days + 1)}
            weeks = enumerate_iso_weeks(start, end)
            assert len(weeks) == len(set(weeks)) == len(touched)
            assert set(weeks) == touched
            assert weeks == sorted(weeks)

    def test_trailing_iso_weeks(self):
        weeks = trailing_iso_weeks(date(2024, 6, 7), 3)
        assert [week.label for week in weeks] == ["2024-W21", "2024-W22", "2024-W23"]

    def test_date_range_invariant(self):
        with pytest.raises(ValueError):
            DateRange(date(2024, 6, 8), date(2024, 6, 7))
        assert DateRange(date(2024, 6, 1), date(2024, 6, 7)).end_exclusive == date(2024, 6, 8)


# ===== TESTS DE CLASIFICACIÓN =====

class TestSessionClassifier:
    """Tests para la clasificación por pipeline"""

    def test_normalize_pipeline_label(self):
        assert normalize_pipeline_label("  Formación Empresa ") == "formacion empresa"
        assert normalize_pipeline_label("   ") is None
        assert normalize_pipeline_label(None) is None

    def test_known_pipelines(self):
        assert classify_pipeline("GEP Services") == SessionCategory.GEP_SERVICES
        assert classify_pipeline("Formación Empresa") == SessionCategory.FORMACION_EMPRESA
        assert classify_pipeline("FORMACIÓN EMPRESAS") == SessionCategory.FORMACION_EMPRESA
        assert classify_pipeline("Formacion Abierta") == SessionCategory.FORMACION_ABIERTA

    def test_unknown_pipelines_are_unclassified(self):
        """Solo igualdad exacta tras normalizar, sin coincidencias parciales"""
        assert classify_pipeline("Formación") is None
        assert classify_pipeline("gep service") is None
        assert classify_pipeline("") is None
        assert classify(SessionEvent(event_date=date(2024, 1, 1))) is None

    def test_classify_event(self):
        event = SessionEvent(event_date=date(2024, 1, 1), pipeline_label="Gep Services")
        assert classify(event) == SessionCategory.GEP_SERVICES


# ===== TESTS DE EVENTOS =====

class TestEventNormalization:
    """Tests para la frontera de normalización de filas"""

    def test_session_from_record(self):
        event = SessionEvent.from_record({
            "starts_at": datetime(2024, 6, 2, 23, 30, tzinfo=timezone(timedelta(hours=-2))),
            "pipeline_label": " Formación Empresa ",
            "site_label": "   ",
            "service_type": None,
            "fundae": "true",
            "caes": False,
            "hotel": None,
            "product_name": " PRL ",
            "product_code": "",
        })
        assert event.event_date == date(2024, 6, 3)
        assert event.pipeline_label == "Formación Empresa"
        assert event.site_label is None
        assert event.fundae is True
        assert event.caes is False
        assert event.hotel is None
        assert event.product_name == "PRL"
        assert event.product_code is None

    def test_session_without_date_is_discarded(self):
        assert SessionEvent.from_record({"starts_at": None, "pipeline_label": "GEP Services"}) is None

    def test_variant_from_record(self):
        event = VariantEvent.from_record({"date": "2024-06-05", "site_label": "Bilbao", "product_name": None, "product_code": "FA-1"})
        assert event.event_date == date(2024, 6, 5)
        assert event.product_code == "FA-1"
        assert VariantEvent.from_record({"date": "not-a-date"}) is None


# ===== TESTS DE CONTEOS =====

class TestBucketing:
    """Tests para conteos por semana ISO y por dimensión"""

    def test_count_by_iso_week_empty(self):
        assert count_by_iso_week([]) == {}

    def test_count_by_iso_week_order_independent(self):
        dates = [date(2024, 3, 4), date(2024, 3, 10), date(2024, 3, 11)]
        expected = {IsoWeekKey(2024, 10): 2, IsoWeekKey(2024, 11): 1}
        assert count_by_iso_week(dates) == expected
        assert count_by_iso_week(reversed(dates)) == expected

    def test_count_by_dimension_sentinel(self):
        """Las etiquetas vacías van al centinela: el total siempre cuadra"""
        events = [
            VariantEvent(event_date=date(2024, 1, 1), site_label="Madrid"),
            VariantEvent(event_date=date(2024, 1, 1), site_label=None),
            VariantEvent(event_date=date(2024, 1, 1), site_label="  "),
        ]
        counts = count_by_dimension(events, lambda e: e.site_label, NO_SITE_LABEL)
        assert counts == {"Madrid": 1, "Sin sede": 2}
        assert sum(counts.values()) == len(events)

    def test_sparkline(self):
        dates = [date(2024, 6, 3), date(2024, 6, 5), date(2024, 5, 28)]
        sparkline = build_sparkline(dates, date(2024, 6, 7), 12)
        assert len(sparkline) == 12
        assert sparkline[-1] == 2
        assert sparkline[-2] == 1
        assert sum(sparkline) == 3


# ===== TESTS DE TENDENCIAS =====

class TestTrendBuilder:
    """Tests para series semanales alineadas"""

    def test_unified_weeks_span_both_ranges(self):
        current = DateRange(date(2024, 3, 1), date(2024, 3, 15))
        previous = DateRange(date(2023, 3, 1), date(2023, 3, 31))
        weeks = unified_weeks(current, previous)
        assert weeks[0] == iso_week_of(date(2023, 3, 1))
        assert weeks[-1] == iso_week_of(date(2024, 3, 15))

    def test_values_outside_own_range_are_zero(self):
        """Una semana fuera del rango actual reporta 0 aunque exista la clave"""
        current = DateRange(date(2024, 3, 1), date(2024, 3, 15))
        previous = DateRange(date(2023, 3, 1), date(2023, 3, 31))
        weeks = unified_weeks(current, previous)

        current_counts = {
            IsoWeekKey(2023, 10): 7,  # fuera del rango actual
            IsoWeekKey(2024, 9): 2,
            IsoWeekKey(2024, 10): 5,
        }
        previous_counts = {
            IsoWeekKey(2023, 10): 4,
            IsoWeekKey(2024, 10): 9,  # fuera del rango de comparativa
        }

        trend = build_trend(
            "Formación Empresa vs comparativa", "formacionEmpresaSessions",
            current_counts, previous_counts, weeks, current, previous
        )
        points = {point.period_label: point for point in trend.points}

        assert len(trend.points) == len(weeks)
        assert points["2023-W10"].current_value == 0
        assert points["2023-W10"].previous_value == 4
        assert points["2024-W10"].current_value == 5
        assert points["2024-W10"].previous_value == 0
        # La semana parcial inicial del rango sigue viva
        assert points["2024-W09"].current_value == 2

    def test_empty_counts_produce_zero_series(self):
        current = DateRange(date(2024, 6, 1), date(2024, 6, 7))
        previous = DateRange(date(2023, 6, 1), date(2023, 6, 7))
        weeks = unified_weeks(current, previous)
        trend = build_trend("x", "metric", {}, {}, weeks, current, previous)
        assert all(p.current_value == 0 and p.previous_value == 0 for p in trend.points)


# ===== TESTS DE RANKING Y DESGLOSES =====

class TestRankingAndBreakdowns:
    """Tests para ranking, desgloses, mezclas sí/no y variaciones"""

    def test_delta_percentage_edge_cases(self):
        assert compute_delta_percentage(0, 0) == 0
        assert compute_delta_percentage(5, 0) == 100
        assert compute_delta_percentage(0, 5) == -100
        assert compute_delta_percentage(10, 5) == 100
        assert compute_delta_percentage(3, 1) == 200
        assert compute_delta_percentage(1, 2) == -50

    def test_product_label_fallback(self):
        assert product_label(" PRL ", "P-1") == "PRL"
        assert product_label("  ", "P-1") == "P-1"
        assert product_label(None, None) == NO_PRODUCT_LABEL == "Sin producto"

    def test_rank_products(self):
        day = date(2024, 6, 3)
        current = [
            VariantEvent(event_date=day, product_name="A"),
            VariantEvent(event_date=day, product_name="B"),
            VariantEvent(event_date=day, product_name="B"),
            VariantEvent(event_date=day, product_code="C-01"),
            VariantEvent(event_date=day),
        ]
        previous = [
            VariantEvent(event_date=day, product_name="A"),
            VariantEvent(event_date=day, product_name="A"),
            VariantEvent(event_date=day, product_name="D"),
        ]

        rows = rank_products(current, previous, "formacionAbierta")

        assert [row.label for row in rows] == ["B", "A", "C-01", "Sin producto", "D"]
        assert [row.rank for row in rows] == [1, 2, 3, 4, 5]
        assert rows[1].current_value == 1 and rows[1].previous_value == 2
        assert rows[1].delta_percentage == -50
        assert rows[-1].delta_percentage == -100
        assert all(row.category == "formacionAbierta" for row in rows)

    def test_rank_ties_ignore_accents(self):
        day = date(2024, 6, 3)
        items = [
            VariantEvent(event_date=day, product_name="Zeta"),
            VariantEvent(event_date=day, product_name="Árbol"),
        ]
        rows = rank_products(items, [], "formacionEmpresa")
        assert [row.label for row in rows] == ["Árbol", "Zeta"]

    def test_rank_products_empty(self):
        assert rank_products([], [], "gepServices") == []

    def test_merge_breakdown(self):
        rows = merge_breakdown(
            {"Madrid": 2, "Sin sede": 1},
            {"Barcelona": 3, "Madrid": 1},
            "formacionEmpresaSite"
        )
        assert [(r.label, r.current, r.previous) for r in rows] == [
            ("Madrid", 2, 1),
            ("Sin sede", 1, 0),
            ("Barcelona", 0, 3),
        ]
        assert rows[0].delta_percentage == 100
        assert rows[2].delta_percentage == -100
        assert all(r.dimension == "formacionEmpresaSite" for r in rows)

    def test_binary_mix_missing_flag_counts_as_no(self):
        day = date(2024, 6, 3)
        events = [
            SessionEvent(event_date=day, fundae=True),
            SessionEvent(event_date=day, fundae=False),
            SessionEvent(event_date=day, fundae=None),
        ]
        mix = binary_mix("formacionEmpresaFundae", "Formación Empresa · FUNDAE", events, lambda e: e.fundae)
        assert (mix.yes, mix.no) == (1, 2)


# ===== TESTS DEL SERVICIO =====

class TestComparativeReportService:
    """Tests de orquestación completa"""

    def test_resolve_ranges(self):
        current, previous = ComparativeReportService.resolve_ranges(
            "2024-06-01", "2024-06-07", "2023-06-01", "2023-06-07"
        )
        assert current == DateRange(date(2024, 6, 1), date(2024, 6, 7))
        assert previous == DateRange(date(2023, 6, 1), date(2023, 6, 7))

    @pytest.mark.parametrize("params, message", [
        ((None, "2024-06-07", "2023-06-01", "2023-06-07"), "Fecha inicio es obligatoria"),
        (("2024-06-01", "2024/06/07", "2023-06-01", "2023-06-07"), "Fecha fin debe tener formato YYYY-MM-DD"),
        (("2024-06-01", "2024-06-07", "2023-02-30", "2023-06-07"), "Fecha inicio comparativa no es una fecha válida"),
        (("2024-06-01", "2024-06-07", "2023-06-01", ""), "Fecha fin comparativa es obligatoria"),
        ((None, "2024-06-07", "2023-06-01", "bad"), "Fecha inicio es obligatoria"),
        (("2024-06-01", "9999-12-31", "2023-06-01", "2023-06-07"), "Fecha fin no es una fecha válida"),
        (("0001-02-01", "2024-06-07", "2023-06-01", "2023-06-07"), "Fecha inicio no es una fecha válida"),
    ])
    def test_resolve_ranges_reports_failing_field(self, params, message):
        with pytest.raises(ApiError) as exc_info:
            ComparativeReportService.resolve_ranges(*params)
        assert exc_info.value.status_code == 400
        assert exc_info.value.error_code == "INVALID_DATE"
        assert exc_info.value.message == message

    def test_resolve_ranges_rejects_inverted_range(self):
        with pytest.raises(ApiError) as exc_info:
            ComparativeReportService.resolve_ranges("2024-06-07", "2024-06-01", "2023-06-01", "2023-06-07")
        assert exc_info.value.error_code == "INVALID_DATE_RANGE"

    def test_highlights(self, june_report):
        """3 sesiones de empresa frente a 1 -> +200%"""
        highlights = {item["key"]: item for item in june_report["highlights"]}
        assert [item["key"] for item in june_report["highlights"]] == [
            "gepServicesSessions", "formacionEmpresaSessions", "formacionAbiertaVariantesSessions"
        ]

        empresa = highlights["formacionEmpresaSessions"]
        assert (empresa["value"], empresa["last_year_value"], empresa["delta_percentage"]) == (3, 1, 200)
        assert len(empresa["sparkline"]) == 12
        assert empresa["sparkline"][-1] == 3

        gep = highlights["gepServicesSessions"]
        assert (gep["value"], gep["last_year_value"], gep["delta_percentage"]) == (1, 0, 100)
        # 2024-06-02 es domingo: cae en la semana anterior
        assert gep["sparkline"][-2:] == [1, 0]

        abierta = highlights["formacionAbiertaVariantesSessions"]
        assert (abierta["value"], abierta["last_year_value"]) == (1, 0)

    def test_unclassified_sessions_excluded(self, june_report):
        assert sum(item["value"] for item in june_report["highlights"]) == 5
        ranking_labels = [row["label"] for row in june_report["ranking"] if row["category"] == "formacionEmpresa"]
        assert ranking_labels == ["PRL Básico", "EXT-01"]
        prl = june_report["ranking"][0]
        assert (prl["current_value"], prl["previous_value"], prl["rank"]) == (2, 1, 1)

    def test_breakdowns(self, june_report):
        rows = [(r["dimension"], r["label"], r["current"], r["previous"]) for r in june_report["breakdowns"]]
        assert rows == [
            ("formacionEmpresaSite", "Madrid", 2, 0),
            ("formacionEmpresaSite", "Sin sede", 1, 0),
            ("formacionEmpresaSite", "Sevilla", 0, 1),
            ("formacionAbiertaSite", "Bilbao", 1, 0),
            ("gepServicesType", "Coordinación CAE", 1, 0),
        ]

    def test_binary_mixes(self, june_report):
        mixes = {mix["key"]: (mix["yes"], mix["no"]) for mix in june_report["binary_mixes"]}
        assert mixes == {
            "formacionEmpresaFundae": (1, 2),
            "formacionEmpresaCaes": (0, 3),
            "formacionEmpresaHotel": (1, 2),
            "gepServicesCaes": (1, 0),
        }

    def test_trends(self, june_report):
        assert [t["metric"] for t in june_report["trends"]] == ["formacionEmpresaSessions", "gepServicesSessions"]
        points = {p["period_label"]: p for p in june_report["trends"][0]["points"]}
        assert points["2024-W23"]["current_value"] == 3
        assert points["2023-W23"]["previous_value"] == 1
        assert points["2023-W23"]["current_value"] == 0

    def test_reserved_sections_are_empty(self, june_report):
        assert june_report["revenue_mix"] == []
        assert june_report["heatmap"] == []
        assert june_report["funnel"] == []

    def test_fetches_use_exclusive_end(self, fake_source, june_ranges):
        service = ComparativeReportService(source=fake_source)
        asyncio.run(service.get_comparative_report(*june_ranges))
        assert sorted(fake_source.calls) == sorted([
            ("sessions", date(2024, 6, 1), date(2024, 6, 8)),
            ("sessions", date(2023, 6, 1), date(2023, 6, 8)),
            ("variants", date(2024, 6, 1), date(2024, 6, 8)),
            ("variants", date(2023, 6, 1), date(2023, 6, 8)),
        ])

    def test_custom_sparkline_length(self, fake_source, june_ranges):
        service = ComparativeReportService(source=fake_source, sparkline_weeks=4)
        report = asyncio.run(service.get_comparative_report(*june_ranges))
        assert all(len(item["sparkline"]) == 4 for item in report["highlights"])

    def test_empty_source(self, june_ranges):
        service = ComparativeReportService(source=FakeComparativeSource())
        report = asyncio.run(service.get_comparative_report(*june_ranges))
        assert all(item["value"] == 0 and item["delta_percentage"] == 0 for item in report["highlights"])
        assert report["breakdowns"] == []
        assert report["ranking"] == []
        assert all((mix["yes"], mix["no"]) == (0, 0) for mix in report["binary_mixes"])

    def test_source_failure_aborts_report(self, june_ranges):
        service = ComparativeReportService(source=FakeComparativeSource(fail=True))
        with pytest.raises(RuntimeError):
            asyncio.run(service.get_comparative_report(*june_ranges))

    @pytest.mark.parametrize("params", [
        ("9998-12-01", "9998-12-31", "9998-11-01", "9998-11-30"),
        ("0002-01-16", "0002-02-01", "0002-01-01", "0002-01-15"),
    ])
    def test_extreme_accepted_years(self, params):
        """Los años límite aceptados se calculan sin desbordar el calendario"""
        current, previous = ComparativeReportService.resolve_ranges(*params)
        service = ComparativeReportService(source=FakeComparativeSource(), sparkline_weeks=52)

        report = asyncio.run(service.get_comparative_report(current, previous))

        assert report["ok"] is True
        assert all(len(item["sparkline"]) == 52 for item in report["highlights"])
        assert report["trends"][0]["points"]

    def test_open_enrollment_sessions(self):
        """Las sesiones de Formación Abierta suman con las variantes salvo en el desglose por sede"""
        source = FakeComparativeSource(
            sessions=[
                SessionEvent(
                    event_date=date(2024, 6, 4), pipeline_label="Formación Abierta",
                    site_label="Valencia", product_name="Extinción"
                ),
            ],
            variants=[
                VariantEvent(event_date=date(2024, 6, 5), site_label="Bilbao", product_name="Extinción"),
            ],
        )
        service = ComparativeReportService(source=source)
        report = asyncio.run(service.get_comparative_report(
            DateRange(date(2024, 6, 1), date(2024, 6, 7)),
            DateRange(date(2023, 6, 1), date(2023, 6, 7)),
        ))

        highlights = {item["key"]: item["value"] for item in report["highlights"]}
        assert highlights["formacionAbiertaVariantesSessions"] == 2

        ranking = [(r["category"], r["label"], r["current_value"]) for r in report["ranking"]]
        assert ranking == [("formacionAbierta", "Extinción", 2)]

        sites = [(r["dimension"], r["label"], r["current"]) for r in report["breakdowns"]]
        assert sites == [("formacionAbiertaSite", "Bilbao", 1)]


# ===== TESTS DE LA FUENTE SQLALCHEMY =====

class _FakeResult:
    def __init__(self, rows):
        self._rows = rows

    def mappings(self):
        return self

    def all(self):
        return self._rows


class _FakeSession:
    def __init__(self, rows, statements):
        self.rows = rows
        self.statements = statements

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return False

    async def execute(self, statement):
        self.statements.append(statement)
        return _FakeResult(self.rows)


class TestSqlAlchemySource:
    """Tests de la fuente relacional con una sesión simulada"""

    def test_fetch_sessions_normalizes_rows(self):
        statements = []
        rows = [
            {"starts_at": datetime(2024, 6, 3, 9, 0, tzinfo=timezone.utc), "pipeline_label": "GEP Services",
             "site_label": None, "service_type": " Auditoría ", "fundae": None, "caes": True, "hotel": None,
             "product_name": None, "product_code": "AUD"},
            {"starts_at": None, "pipeline_label": "GEP Services"},
        ]
        tenant_id = uuid4()
        source = SqlAlchemyComparativeSource(lambda: _FakeSession(rows, statements), tenant_id)

        events = asyncio.run(source.fetch_sessions(date(2024, 6, 1), date(2024, 6, 8)))

        assert events == [SessionEvent(
            event_date=date(2024, 6, 3), pipeline_label="GEP Services", service_type="Auditoría",
            caes=True, product_code="AUD"
        )]
        sql = str(statements[0].compile(dialect=postgresql.dialect()))
        assert "training_sessions.tenant_id" in sql
        assert "training_sessions.start_at >=" in sql
        assert "training_sessions.start_at <" in sql

    def test_each_query_opens_its_own_session(self):
        opened = []

        def factory():
            session = _FakeSession([{"date": datetime(2024, 6, 5, tzinfo=timezone.utc), "site_label": "Bilbao",
                                     "product_name": "Extinción", "product_code": None}], [])
            opened.append(session)
            return session

        source = SqlAlchemyComparativeSource(factory, uuid4())

        async def fetch_both():
            return await asyncio.gather(
                source.fetch_variants(date(2024, 6, 1), date(2024, 6, 8)),
                source.fetch_variants(date(2023, 6, 1), date(2023, 6, 8)),
            )

        current, previous = asyncio.run(fetch_both())
        assert len(opened) == 2
        assert current[0].site_label == "Bilbao"
        assert len(previous) == 1


# ===== TESTS DE CONFIGURACIÓN =====

class TestSettings:
    """Tests de configuración"""

    def test_sparkline_weeks_must_be_positive(self):
        with pytest.raises(ValidationError):
            Settings(COMPARATIVE_SPARKLINE_WEEKS=0)
        with pytest.raises(ValidationError):
            Settings(COMPARATIVE_SPARKLINE_WEEKS=53)
        assert Settings(COMPARATIVE_SPARKLINE_WEEKS=52).COMPARATIVE_SPARKLINE_WEEKS == 52

    def test_debug_flag_parsing(self):
        assert Settings(DEBUG="yes").DEBUG is True
        assert Settings(DEBUG="'false'").DEBUG is False


# ===== TESTS DE API ENDPOINTS =====

class TestComparativeAPI:
    """Tests de endpoints API"""

    def test_get_report(self, api_client, tenant_headers, june_params):
        response = api_client.get(REPORT_URL, params=june_params, headers=tenant_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["ok"] is True
        assert set(data) == {
            "ok", "highlights", "trends", "breakdowns", "revenueMix",
            "binaryMixes", "heatmap", "funnel", "ranking"
        }
        empresa = data["highlights"][1]
        assert empresa["key"] == "formacionEmpresaSessions"
        assert empresa["value"] == 3
        assert empresa["lastYearValue"] == 1
        assert empresa["deltaPercentage"] == 200
        assert empresa["unit"] == "number"
        assert data["revenueMix"] == [] and data["heatmap"] == [] and data["funnel"] == []
        point = data["trends"][0]["points"][0]
        assert set(point) == {"periodLabel", "isoYear", "isoWeek", "currentValue", "previousValue"}
        assert response.headers["X-Tenant-ID"] == tenant_headers["X-Company-ID"]

    def test_invalid_date_envelope(self, api_client, tenant_headers, june_params):
        params = {**june_params, "currentEndDate": "07/06/2024"}
        response = api_client.get(REPORT_URL, params=params, headers=tenant_headers)

        assert response.status_code == 400
        assert response.json() == {
            "ok": False,
            "error_code": "INVALID_DATE",
            "message": "Fecha fin debe tener formato YYYY-MM-DD",
        }

    def test_missing_date(self, api_client, tenant_headers, june_params):
        params = {k: v for k, v in june_params.items() if k != "previousStartDate"}
        response = api_client.get(REPORT_URL, params=params, headers=tenant_headers)
        assert response.status_code == 400
        assert response.json()["message"] == "Fecha inicio comparativa es obligatoria"

    def test_method_not_allowed(self, api_client, tenant_headers):
        response = api_client.post(REPORT_URL, headers=tenant_headers)
        assert response.status_code == 405
        assert response.json() == {"ok": False, "error_code": "METHOD_NOT_ALLOWED", "message": "Método no permitido"}

    def test_method_checked_before_tenant(self, api_client):
        """Un método incorrecto da 405 aunque falte la cabecera de empresa"""
        response = api_client.post(REPORT_URL)
        assert response.status_code == 405
        assert response.json()["error_code"] == "METHOD_NOT_ALLOWED"

    def test_missing_tenant_header(self, api_client, june_params):
        response = api_client.get(REPORT_URL, params=june_params)
        assert response.status_code == 400
        assert response.json()["error_code"] == "MISSING_TENANT"

    def test_unknown_path_still_needs_tenant(self, api_client):
        response = api_client.post("/api/v1/reports/unknown")
        assert response.status_code == 400
        assert response.json()["error_code"] == "MISSING_TENANT"

    def test_source_failure_returns_500(self, tenant_headers, june_params):
        app.dependency_overrides[get_comparative_source] = lambda: FakeComparativeSource(fail=True)
        try:
            response = TestClient(app).get(REPORT_URL, params=june_params, headers=tenant_headers)
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 500
        assert response.json()["error_code"] == "REPORT_ERROR"

    def test_export_ranking_csv(self, api_client, tenant_headers, june_params):
        response = api_client.get(REPORT_URL, params={**june_params, "export": "csv"}, headers=tenant_headers)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert "comparativa_ranking_2024-06-01_2024-06-07.csv" in response.headers["content-disposition"]
        lines = response.text.splitlines()
        assert lines[0] == "Categoría,Posición,Producto,Periodo Actual,Comparativa,Variación %"
        assert lines[1] == "formacionEmpresa,1,PRL Básico,2,1,100.00"

    def test_export_breakdowns_csv(self, api_client, tenant_headers, june_params):
        params = {**june_params, "export": "csv", "section": "breakdowns"}
        response = api_client.get(REPORT_URL, params=params, headers=tenant_headers)
        lines = response.text.splitlines()
        assert lines[0] == "Dimensión,Etiqueta,Periodo Actual,Comparativa,Variación %"
        assert len(lines) == 6

    def test_export_empty_report_keeps_titles(self, tenant_headers, june_params):
        app.dependency_overrides[get_comparative_source] = lambda: FakeComparativeSource()
        try:
            response = TestClient(app).get(
                REPORT_URL, params={**june_params, "export": "csv"}, headers=tenant_headers
            )
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 200
        assert response.text.splitlines() == ["Categoría,Posición,Producto,Periodo Actual,Comparativa,Variación %"]

    def test_security_headers(self, api_client, tenant_headers, june_params):
        response = api_client.get(REPORT_URL, params=june_params, headers=tenant_headers)
        assert response.headers["X-Frame-Options"] == "DENY"
        assert response.headers["X-Content-Type-Options"] == "nosniff"

    def test_out_of_range_year_is_rejected(self, api_client, tenant_headers, june_params):
        """Un año sin margen para el fin exclusivo da 400, nunca 500"""
        params = {**june_params, "currentStartDate": "9999-12-01", "currentEndDate": "9999-12-31"}
        response = api_client.get(REPORT_URL, params=params, headers=tenant_headers)
        assert response.status_code == 400
        assert response.json() == {
            "ok": False,
            "error_code": "INVALID_DATE",
            "message": "Fecha inicio no es una fecha válida",
        }

    def test_invalid_export_format(self, api_client, tenant_headers, june_params):
        response = api_client.get(REPORT_URL, params={**june_params, "export": "pdf"}, headers=tenant_headers)
        assert response.status_code == 400
        assert response.json()["error_code"] == "VALIDATION_ERROR"

    def test_health_needs_no_tenant(self, api_client):
        response = api_client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
