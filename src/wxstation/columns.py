"""Heuristic mapping from vendor header text to canonical metric roles.

Vendor exports label the same sensor differently depending on firmware and
UI language (``Temperatur Aussen(℃)``, ``Outdoor Temperature(℃)``,
``CH3 Wärmeindex``...). The tables below list, per metric, the name stems
each locale uses; :func:`match_metric` is the only code that reads them.
"""

from __future__ import annotations

import unicodedata
from dataclasses import dataclass, field
from typing import Iterable, Literal, Mapping, Sequence

from wxstation.errors import WxStationError
from wxstation.rows import TIME_COLUMNS
from wxstation.units import ColumnSpec

TEMPERATURE = "temperature"
DEW = "dew"
FEELS_LIKE = "feels_like"
HUMIDITY = "humidity"
WIND = "wind"
GUST = "gust"
RAIN_DAILY = "rain_daily"
RAIN_HOURLY = "rain_hourly"
RAIN_GENERIC = "rain_generic"

SPEED_METRICS = (WIND, GUST)
RAIN_METRICS = (RAIN_DAILY, RAIN_HOURLY, RAIN_GENERIC)

RainMode = Literal["daily", "sum"]

_UMLAUTS = {"ä": "ae", "ö": "oe", "ü": "ue", "Ä": "Ae", "Ö": "Oe", "Ü": "Ue", "ß": "ss"}


class ColumnNotFound(WxStationError, LookupError):
    """Raised when a required metric has no column for the requested scope."""

    def __init__(self, metric: str, scope: str) -> None:
        super().__init__(f"No {metric} column found for {scope}")
        self.metric = metric
        self.scope = scope


def normalize_name(name: str) -> str:
    """Fold a header to lowercase ASCII alphanumerics for stem matching."""

    text = "".join(_UMLAUTS.get(ch, ch) for ch in str(name)).replace("°", "")
    text = unicodedata.normalize("NFKD", text)
    text = "".join(ch for ch in text if not unicodedata.combining(ch))
    return "".join(ch for ch in text.lower() if ch.isascii() and ch.isalnum())


@dataclass(frozen=True)
class Term:
    """A stem rule: every ``all_of``, at least one ``any_of``, no ``none_of``."""

    locale: str
    any_of: tuple[str, ...]
    all_of: tuple[str, ...] = ()
    none_of: tuple[str, ...] = ()

    def matches(self, key: str) -> bool:
        if not any(stem in key for stem in self.any_of):
            return False
        if not all(stem in key for stem in self.all_of):
            return False
        return not any(stem in key for stem in self.none_of)


@dataclass(frozen=True)
class Tier:
    """Terms tried together; later tiers only run when earlier ones found nothing."""

    terms: tuple[Term, ...]
    first_only: bool = False


@dataclass(frozen=True)
class MetricVocabulary:
    tiers: tuple[Tier, ...]
    preferred: tuple[str, ...] = ()


_PERIOD_EXCLUDES = ("rate", "year", "jahr", "month", "monat", "week", "woche")
_WIND_EXCLUDES = ("direction", "richtung", "dir", "gust", "boe")

STATION_VOCABULARY: Mapping[str, MetricVocabulary] = {
    TEMPERATURE: MetricVocabulary(
        tiers=(
            Tier(
                terms=(
                    Term("de", any_of=("aussen", "draussen"), all_of=("temperatur",)),
                    Term("en", any_of=("outdoor", "outside"), all_of=("temp",)),
                )
            ),
            Tier(
                terms=(
                    Term(
                        "de",
                        any_of=("temperatur",),
                        none_of=("innen", "indoor", "inside", "gefuehlte", "gefuhlte", "feels", "taupunkt", "dew"),
                    ),
                ),
                first_only=True,
            ),
        ),
        preferred=("Outdoor Temperature(℃)",),
    ),
    DEW: MetricVocabulary(
        tiers=(
            Tier(
                terms=(
                    Term("de", any_of=("taupunkt",)),
                    Term("en", any_of=("dewpoint", "dewtemp")),
                )
            ),
        ),
    ),
    FEELS_LIKE: MetricVocabulary(
        tiers=(
            Tier(
                terms=(
                    Term("de", any_of=("gefuehlte", "gefuhlte", "waermeindex")),
                    Term("en", any_of=("feelslike", "heatindex", "realfeel")),
                )
            ),
        ),
    ),
    RAIN_DAILY: MetricVocabulary(
        tiers=(
            Tier(
                terms=(
                    Term("de", any_of=("tag", "tages", "heute"), none_of=_PERIOD_EXCLUDES),
                    Term("en", any_of=("daily", "24h", "24", "today"), none_of=_PERIOD_EXCLUDES),
                ),
            ),
        ),
        preferred=("Daily Rain(mm)", "Regen/Tag(mm)"),
    ),
    RAIN_HOURLY: MetricVocabulary(
        tiers=(
            Tier(
                terms=(
                    Term("de", any_of=("stunde", "minute"), none_of=("rate",)),
                    Term("en", any_of=("hour", "min"), none_of=("rate",)),
                )
            ),
        ),
    ),
    RAIN_GENERIC: MetricVocabulary(
        tiers=(
            Tier(
                terms=(
                    Term("de", any_of=("regen", "niederschlag"), none_of=_PERIOD_EXCLUDES),
                    Term("en", any_of=("rain",), none_of=_PERIOD_EXCLUDES),
                )
            ),
        ),
    ),
    GUST: MetricVocabulary(
        tiers=(
            Tier(
                terms=(
                    Term("de", any_of=("boe",)),
                    Term("en", any_of=("gust",)),
                )
            ),
        ),
    ),
    WIND: MetricVocabulary(
        tiers=(Tier(terms=(Term("*", any_of=("wind",), none_of=_WIND_EXCLUDES),)),),
    ),
}

# Every rain metric also needs a rain stem.
_RAIN_GATE = Term("*", any_of=("rain", "regen", "niederschlag"))

CHANNEL_VOCABULARY: Mapping[str, tuple[tuple[str, str], ...]] = {
    TEMPERATURE: (("de", "Temperatur"), ("en", "Temperature")),
    FEELS_LIKE: (
        ("de", "Gefühlte Temperatur"),
        ("de", "Wärmeindex"),
        ("en", "Feels Like"),
        ("en", "Heat Index"),
    ),
    DEW: (("de", "Taupunkt"), ("en", "Dew Point")),
    HUMIDITY: (("de", "Luftfeuchtigkeit"), ("en", "Humidity"), ("en", "hum")),
}


@dataclass
class MetricColumns:
    """Best-guess primary column plus every matching candidate, in header order."""

    primary: str | None = None
    candidates: list[str] = field(default_factory=list)

    def __bool__(self) -> bool:
        return self.primary is not None

    def names(self) -> list[str]:
        names = list(self.candidates)
        if self.primary and self.primary not in names:
            names.insert(0, self.primary)
        return names


@dataclass
class ColumnHints:
    """Discovered columns for one scope (``station`` or a channel like ``ch3``)."""

    scope: str
    metrics: dict[str, MetricColumns] = field(default_factory=dict)
    rain_mode: RainMode = "sum"

    def get(self, metric: str) -> MetricColumns:
        return self.metrics.get(metric) or MetricColumns()

    def primary(self, metric: str) -> str | None:
        return self.get(metric).primary

    def require(self, metric: str) -> str:
        """Return the primary column or raise :class:`ColumnNotFound`."""

        primary = self.primary(metric)
        if primary is None:
            raise ColumnNotFound(metric, self.scope)
        return primary

    @property
    def rain_column(self) -> str | None:
        for metric in RAIN_METRICS:
            if self.primary(metric):
                return self.primary(metric)
        return None

    def specs(self, metric: str) -> list[ColumnSpec]:
        """Unit-tagged descriptors for every candidate of ``metric``."""

        if metric in SPEED_METRICS:
            return [ColumnSpec.speed(name) for name in self.get(metric).names()]
        return [ColumnSpec(name) for name in self.get(metric).names()]

    def speed_specs(self) -> dict[str, ColumnSpec]:
        specs: dict[str, ColumnSpec] = {}
        for metric in SPEED_METRICS:
            for spec in self.specs(metric):
                specs.setdefault(spec.name, spec)
        return specs

    def hint_groups(self) -> list[str | None]:
        """Primary and candidate names in the order used for output headers."""

        groups: list[str | None] = [self.rain_column]
        for metric in RAIN_METRICS:
            groups.extend(self.get(metric).candidates)
        for metric in (TEMPERATURE, DEW, FEELS_LIKE, WIND, GUST):
            columns = self.get(metric)
            groups.append(columns.primary)
            groups.extend(columns.candidates)
        return groups

    def validate(self, names: Iterable[str]) -> None:
        """Check that every primary and candidate is a literal header name."""

        available = set(names)
        for metric, columns in self.metrics.items():
            for name in columns.names():
                if name not in available:
                    raise ValueError(f"{metric} candidate {name!r} is not in the header set")


def match_metric(
    names: Sequence[str],
    vocabulary: MetricVocabulary,
    *,
    gate: Term | None = None,
) -> MetricColumns:
    """
    Apply one metric vocabulary to a header list.

    The first name matched in header order becomes the primary; a literal
    ``preferred`` name, when present, is promoted ahead of it.
    """

    keyed = [(name, normalize_name(name)) for name in names]
    candidates: list[str] = []
    for tier in vocabulary.tiers:
        for name, key in keyed:
            if gate is not None and not gate.matches(key):
                continue
            if any(term.matches(key) for term in tier.terms) and name not in candidates:
                candidates.append(name)
                if tier.first_only:
                    break
        if candidates:
            break
    present = [name for name in vocabulary.preferred if name in names]
    for name in reversed(present):
        if name in candidates:
            candidates.remove(name)
        candidates.insert(0, name)
    return MetricColumns(primary=candidates[0] if candidates else None, candidates=candidates)


def discover_station_columns(names: Sequence[str]) -> ColumnHints:
    """Classify the main station export header."""

    names = list(dict.fromkeys(names))
    hints = ColumnHints(scope="station")
    for metric in (TEMPERATURE, DEW, FEELS_LIKE, WIND, GUST):
        hints.metrics[metric] = match_metric(names, STATION_VOCABULARY[metric])

    # Hourly and generic sums are only consulted when no daily counter exists.
    for metric in RAIN_METRICS:
        hints.metrics[metric] = MetricColumns()
    for metric in RAIN_METRICS:
        found = match_metric(names, STATION_VOCABULARY[metric], gate=_RAIN_GATE)
        if found:
            hints.metrics[metric] = found
            hints.rain_mode = "daily" if metric == RAIN_DAILY else "sum"
            break
    return hints


def channel_prefix(channel: str | int) -> str:
    """Map ``"ch3"``, ``"CH3"`` or ``3`` to the header prefix ``"CH3 "``."""

    text = str(channel).strip().lower()
    if text.startswith("ch"):
        text = text[2:]
    if not text.isdigit():
        raise ValueError(f"Invalid channel {channel!r}")
    return f"CH{int(text)} "


def discover_channel_columns(names: Sequence[str], channel: str | int) -> ColumnHints:
    """Classify the columns of one auxiliary sensor channel."""

    prefix = channel_prefix(channel)
    hints = ColumnHints(scope=prefix.strip().lower())
    scoped = [name for name in dict.fromkeys(names) if name.startswith(prefix)]
    for metric, labels in CHANNEL_VOCABULARY.items():
        stems = [normalize_name(label) for _, label in labels]
        candidates = [
            name
            for name in scoped
            if any(normalize_name(name[len(prefix):]).startswith(stem) for stem in stems)
        ]
        hints.metrics[metric] = MetricColumns(
            primary=candidates[0] if candidates else None,
            candidates=candidates,
        )
    return hints


def numeric_column_names(columns: Iterable[tuple[str, str]]) -> list[str]:
    """Names of described columns whose inferred type is numeric-like."""

    result: list[str] = []
    for name, inferred in columns:
        kind = str(inferred or "").upper()
        if not kind or "VARCHAR" in kind or "STRING" in kind or "BOOL" in kind:
            continue
        if not name or name in TIME_COLUMNS:
            continue
        result.append(name)
    return result


def order_columns(
    hints: ColumnHints | None,
    all_names: Sequence[str],
    numeric_names: Sequence[str],
) -> list[str]:
    """
    Build the aggregate header: temperature first, then typed numeric columns,
    then any remaining discovered candidates. Unknown names are skipped.
    """

    available = set(all_names)
    ordered: list[str] = []

    def push(name: str | None) -> None:
        if name and name in available and name not in ordered and name not in TIME_COLUMNS:
            ordered.append(name)

    if hints is not None:
        push(hints.primary(TEMPERATURE))
    for name in numeric_names:
        push(name)
    if hints is not None:
        for name in hint_names(hints):
            push(name)
    return ordered


def hint_names(hints: ColumnHints) -> list[str]:
    return [name for name in hints.hint_groups() if name]
