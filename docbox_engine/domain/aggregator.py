"""Field aggregator - merges per-file extractions of one box into conflict-aware values"""

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from docbox_engine.domain.exceptions import InvalidOverrideError
from docbox_engine.domain.models import (
    AggregatedField,
    DocType,
    ExtractionRecord,
    FieldSource,
    ValueCluster,
)
from docbox_engine.utils.normalize import digits_only, parse_amount, parse_date, text_key

logger = logging.getLogger(__name__)

# Amounts closer than this are the same figure read twice
AMOUNT_TOLERANCE = 0.5


class FieldKind(str, Enum):
    NUMERIC = "numeric"
    TEXT = "text"
    DATE = "date"
    IDENTIFIER = "identifier"


@dataclass(frozen=True)
class FieldSpec:
    name: str
    attr: str
    kind: FieldKind
    # Multi-valued fields (document numbers, doc types) differ legitimately per file
    tracks_conflict: bool = True
    positive_only: bool = False


FIELD_SPECS: Tuple[FieldSpec, ...] = (
    FieldSpec("amount", "amount", FieldKind.NUMERIC),
    FieldSpec("vat_amount", "vat_amount", FieldKind.NUMERIC, positive_only=True),
    FieldSpec("contact_name", "contact_name", FieldKind.TEXT),
    FieldSpec("description", "description", FieldKind.TEXT),
    FieldSpec("document_date", "document_date", FieldKind.DATE),
    FieldSpec("tax_id", "tax_id", FieldKind.IDENTIFIER),
    FieldSpec("document_number", "document_number", FieldKind.TEXT, tracks_conflict=False),
    FieldSpec("doc_type", "type", FieldKind.TEXT, tracks_conflict=False),
)
FIELDS_BY_NAME: Dict[str, FieldSpec] = {spec.name: spec for spec in FIELD_SPECS}


def _normalize(spec: FieldSpec, raw: Any) -> Tuple[Any, Any]:
    """Return (value, equivalence key) or (None, None) when the value is absent"""
    if isinstance(raw, Enum):
        raw = raw.value
    if spec.kind == FieldKind.NUMERIC:
        number = parse_amount(raw)
        if number is None or (spec.positive_only and number <= 0):
            return None, None
        return number, number
    if spec.kind == FieldKind.DATE:
        parsed = parse_date(raw)
        return parsed, parsed
    if spec.kind == FieldKind.IDENTIFIER:
        key = digits_only(raw) or text_key(raw)
        return (str(raw).strip(), key) if key else (None, None)
    key = text_key(raw)
    return (str(raw).strip(), key) if key else (None, None)


def _source_rank(source: FieldSource) -> Tuple[float, str, str]:
    return (-source.confidence, source.file_name, source.file_id)


def _cluster(spec: FieldSpec, observations: List[Tuple[Any, Any, FieldSource]]) -> List[ValueCluster]:
    """
    Group observations into equivalence clusters.

    Numbers use single-linkage over sorted values (neighbours closer than
    AMOUNT_TOLERANCE join), other kinds group on their exact key. Both only
    depend on the set of observations, never their order.
    """
    groups: List[List[Tuple[Any, Any, FieldSource]]] = []

    if spec.kind == FieldKind.NUMERIC:
        ordered = sorted(observations, key=lambda o: (o[1], _source_rank(o[2])))
        for obs in ordered:
            if groups and obs[1] - groups[-1][-1][1] < AMOUNT_TOLERANCE:
                groups[-1].append(obs)
            else:
                groups.append([obs])
    else:
        by_key: Dict[Any, List[Tuple[Any, Any, FieldSource]]] = {}
        for obs in observations:
            by_key.setdefault(obs[1], []).append(obs)
        groups = list(by_key.values())

    clusters = []
    for group in groups:
        ranked = sorted(group, key=lambda o: _source_rank(o[2]))
        # Representative: value from the most confident source
        clusters.append(ValueCluster(value=ranked[0][0], sources=[o[2] for o in ranked]))

    return sorted(
        clusters,
        key=lambda c: (-c.count, -c.sources[0].confidence, str(c.value)),
    )


def _resolve(spec: FieldSpec, clusters: List[ValueCluster]) -> Any:
    if not clusters:
        return None
    if len(clusters) == 1:
        return clusters[0].value
    if not spec.tracks_conflict:
        if spec.name == "doc_type":
            for cluster in clusters:
                if DocType.coerce(cluster.value) == DocType.TAX_INVOICE:
                    return cluster.value
        return clusters[0].value
    # Disagreeing figures are left for a human to pick
    return None


def _aggregate_field(spec: FieldSpec, records: List[ExtractionRecord]) -> AggregatedField:
    observations = []
    for record in records:
        raw = getattr(record.data, spec.attr)
        value, key = _normalize(spec, raw)
        if key is None:
            if raw is not None:
                logger.debug(
                    "Dropping unparseable value",
                    extra={"field": spec.name, "file_id": record.file_id},
                )
            continue
        source = FieldSource(
            file_id=record.file_id,
            file_name=record.file_name,
            confidence=record.data.confidence or 0.0,
        )
        observations.append((value, key, source))

    clusters = _cluster(spec, observations)
    return AggregatedField(
        value=_resolve(spec, clusters),
        has_conflict=spec.tracks_conflict and len(clusters) > 1,
        all_values=clusters,
    )


def _check_override(name: str, value: Any) -> Any:
    spec = FIELDS_BY_NAME.get(name)
    if spec is None:
        raise InvalidOverrideError(f"Unknown field: {name}")
    if spec.kind == FieldKind.NUMERIC:
        number = parse_amount(value)
        if number is None:
            raise InvalidOverrideError(f"Override for {name} is not a number: {value!r}")
        return number
    if spec.kind == FieldKind.DATE:
        parsed = parse_date(value)
        if parsed is None:
            raise InvalidOverrideError(f"Override for {name} is not a date: {value!r}")
        return parsed
    return value


def aggregate(
    records: Iterable[ExtractionRecord],
    previous: Optional[Mapping[str, AggregatedField]] = None,
    overrides: Optional[Mapping[str, Any]] = None,
) -> Dict[str, AggregatedField]:
    """
    Merge all usable extraction records of a box, field by field.

    Pending and failed records contribute nothing. A field keeps its
    user-chosen value when `previous` marks it as overridden, or takes the
    value given in `overrides`; its clusters are still recomputed so new
    disagreement stays visible.
    """
    usable = [r for r in records if r.usable]
    chosen = {name: _check_override(name, value) for name, value in (overrides or {}).items()}

    result: Dict[str, AggregatedField] = {}
    for spec in FIELD_SPECS:
        merged = _aggregate_field(spec, usable)

        if spec.name in chosen:
            merged = replace(merged, value=chosen[spec.name], user_override=True)
        elif previous and spec.name in previous and previous[spec.name].user_override:
            merged = replace(merged, value=previous[spec.name].value, user_override=True)

        result[spec.name] = merged

    return result


def apply_override(fields: Mapping[str, AggregatedField], name: str, value: Any) -> Dict[str, AggregatedField]:
    """Record a human choice for one field; the rest is left untouched"""
    checked = _check_override(name, value)
    updated = dict(fields)
    current = updated.get(name) or AggregatedField(value=None, has_conflict=False, all_values=[])
    updated[name] = replace(current, value=checked, user_override=True)
    return updated


def clear_override(
    fields: Mapping[str, AggregatedField], name: str, records: Iterable[ExtractionRecord]
) -> Dict[str, AggregatedField]:
    """Drop a human choice and fall back to what the files say"""
    if name not in FIELDS_BY_NAME:
        raise InvalidOverrideError(f"Unknown field: {name}")
    kept = {k: v for k, v in fields.items() if k != name}
    return aggregate(records, previous=kept)


def conflicting_fields(fields: Mapping[str, AggregatedField]) -> List[str]:
    """Fields that still need a human decision (conflict without override)"""
    return [
        spec.name
        for spec in FIELD_SPECS
        if spec.name in fields and fields[spec.name].has_conflict and not fields[spec.name].user_override
    ]


def has_vat(fields: Mapping[str, AggregatedField]) -> bool:
    vat = fields.get("vat_amount")
    return bool(vat and vat.all_values)


def final_value(fields: Mapping[str, AggregatedField], name: str) -> Any:
    field = fields.get(name)
    return field.value if field is not None else None
