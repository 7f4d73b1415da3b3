"""Best-effort fetchers turning raw engine shapes into models."""

from typing import Any, Awaitable, Dict, List, Optional, TypeVar

from loguru import logger

from .models import Field, MasterDimension, MasterMeasure, Sheet, Variable
from .provider import EngineClient, MissingDocumentError

T = TypeVar("T")


async def optional_result(request: Awaitable[T], what: str, item_id: str = "") -> Optional[T]:
    """
    Await a single engine request, turning its failure into None.

    None means "this item contributed nothing". A missing document is not a
    per-item failure and is propagated.
    """
    try:
        return await request
    except MissingDocumentError:
        raise
    except Exception as e:
        logger.debug(f"{what} failed for '{item_id}': {e}")
        return None


def _as_list(value: Any) -> List[Any]:
    if isinstance(value, list):
        return value
    if value is None or value == "":
        return []
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    return [value]


def _strings(value: Any) -> List[str]:
    return [str(v) for v in _as_list(value) if v is not None]


def _yes_no(value: Any) -> Optional[bool]:
    return value if isinstance(value, bool) else None


def _owner_name(meta: Dict[str, Any]) -> str:
    owner = meta.get("owner")
    if isinstance(owner, dict):
        return str(owner.get("name") or owner.get("userId") or "")
    return str(owner or "")


async def fetch_sheets(client: EngineClient) -> List[Sheet]:
    """List sheets."""
    items = await client.list_sheets()
    sheets = []
    for item in items:
        info = item.get("qInfo") or {}
        meta = item.get("qMeta") or {}
        sheets.append(Sheet(
            id=str(info.get("qId") or ""),
            title=str(meta.get("title") or ""),
            description=str(meta.get("description") or ""),
            owner=_owner_name(meta)
        ))
    return sheets


def dimension_from_properties(dimension_id: str, props: Dict[str, Any],
                              meta_fallback: Optional[Dict[str, Any]] = None) -> MasterDimension:
    """Build a MasterDimension from resolved dimension properties."""
    meta = props.get("qMetaDef") or {}
    fallback = meta_fallback or {}
    q_dim = props.get("qDim") or {}
    return MasterDimension(
        id=dimension_id,
        title=str(meta.get("title") or fallback.get("title") or ""),
        field_defs=_strings(q_dim.get("qFieldDefs")),
        drill_down_field_defs=_strings(q_dim.get("qDrillDownFieldDefs")),
        label_expression=str(q_dim.get("qLabelExpression") or ""),
        description=str(meta.get("description") or fallback.get("description") or ""),
        tags=_strings(meta.get("tags") or fallback.get("tags"))
    )


def measure_from_properties(measure_id: str, props: Dict[str, Any],
                            meta_fallback: Optional[Dict[str, Any]] = None) -> MasterMeasure:
    """Build a MasterMeasure from resolved measure properties."""
    meta = props.get("qMetaDef") or {}
    fallback = meta_fallback or {}
    q_measure = props.get("qMeasure") or {}
    return MasterMeasure(
        id=measure_id,
        title=str(meta.get("title") or fallback.get("title") or ""),
        expression=str(q_measure.get("qDef") or ""),
        label=str(q_measure.get("qLabel") or ""),
        label_expression=str(q_measure.get("qLabelExpression") or ""),
        description=str(meta.get("description") or fallback.get("description") or ""),
        tags=_strings(meta.get("tags") or fallback.get("tags"))
    )


async def fetch_dimensions(client: EngineClient) -> List[MasterDimension]:
    """List master dimensions, resolving each one's full definition."""
    items = await client.list_dimensions()
    results = []
    for item in items:
        dimension_id = (item.get("qInfo") or {}).get("qId")
        if not dimension_id:
            continue
        meta = item.get("qMeta") or {}
        props = await optional_result(client.get_dimension_properties(dimension_id), "Dimension properties", dimension_id)
        results.append(dimension_from_properties(dimension_id, props or {}, meta))
    logger.debug(f"Fetched {len(results)} master dimensions")
    return results


async def fetch_measures(client: EngineClient) -> List[MasterMeasure]:
    """List master measures, resolving each one's full definition."""
    items = await client.list_measures()
    results = []
    for item in items:
        measure_id = (item.get("qInfo") or {}).get("qId")
        if not measure_id:
            continue
        meta = item.get("qMeta") or {}
        props = await optional_result(client.get_measure_properties(measure_id), "Measure properties", measure_id)
        results.append(measure_from_properties(measure_id, props or {}, meta))
    logger.debug(f"Fetched {len(results)} master measures")
    return results


async def fetch_fields(client: EngineClient) -> List[Field]:
    """List data model fields."""
    items = await client.list_fields()
    return [
        Field(
            name=str(item.get("qName") or ""),
            tags=_strings(item.get("qTags")),
            source_tables=_strings(item.get("qSrcTables"))
        )
        for item in items
    ]


async def fetch_variables(client: EngineClient) -> List[Variable]:
    """List variables, preferring resolved properties over list data."""
    items = await optional_result(client.list_variables(), "Variable list") or []
    variables = []
    for item in items:
        name = item.get("qName") or (item.get("qInfo") or {}).get("qName") or ""
        if not name:
            continue
        props = await optional_result(client.get_variable_properties(name), "Variable properties", name) or {}
        data = item.get("qData") or {}

        def pick(prop_key: str, data_key: str, default: Any = "") -> Any:
            for source in (props.get(prop_key), item.get(prop_key), data.get(data_key)):
                if source is not None:
                    return source
            return default

        tags = (props.get("qMetaDef") or {}).get("tags")
        if tags is None:
            tags = item.get("qTags", data.get("tags"))

        variables.append(Variable(
            name=name,
            definition=str(pick("qDefinition", "definition")),
            comment=str(pick("qComment", "comment")),
            tags=_strings(tags),
            is_script_created=_yes_no(pick("qIsScriptCreated", "isScriptCreated", None)),
            is_reserved=_yes_no(pick("qIsReserved", "isReserved", None))
        ))
    return variables
