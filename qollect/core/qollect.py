"""Main Qollect orchestration class"""

import asyncio
import sys
from pathlib import Path
from typing import Any, Awaitable, List, Optional, Sequence

from loguru import logger

from .config import Config
from ..engine.fetchers import fetch_dimensions, fetch_fields, fetch_measures, fetch_sheets, fetch_variables, \
    optional_result
from ..engine.provider import EngineClient, MissingDocumentError
from ..objects.inventory import ObjectInventory
from ..objects.summary import ItemsSummaryBuilder, title_from_properties
from ..objects.walker import ObjectGraphWalker
from ..report.rows import (
    REPORT_SECTIONS, ChartRow, DimensionRow, FieldRow, MeasureRow, MetadataReport, OverviewRow, SheetRow, VariableRow
)
from ..report.script import parse_script_metadata
from ..usage.aggregator import UsageAggregator
from ..usage.master_cache import MasterItemCache
from ..usage.master_usage import MasterUsageCounter


class Qollect:
    """Collects an app's metadata and usage analysis into a MetadataReport"""

    def __init__(self, client: EngineClient, config_path: str | Path | None = None, config: Config | None = None):
        """
        Initialize Qollect

        Args:
            client: Engine client for the app to analyse
            config_path: Path to configuration YAML file
            config: Optional Config object (overrides config_path)
        """
        if config:
            self.config = config
        elif config_path:
            self.config = Config.from_yaml(config_path)
        else:
            self.config = Config()

        self._setup_logging()

        self.client = client
        self.walker = ObjectGraphWalker(max_depth=self.config.traversal.max_walk_depth)

        logger.info(f"{self.config.system.name} {self.config.system.version} initialized")

    def _setup_logging(self) -> None:
        """Setup logging configuration"""
        log_level = self.config.system.log_level
        log_file = self.config.system.log_file

        logger.remove()
        logger.add(
            sys.stderr,
            level=log_level,
            format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"
        )
        if log_file:
            Path(log_file).parent.mkdir(parents=True, exist_ok=True)
            logger.add(
                log_file,
                level=log_level,
                rotation="10 MB",
                retention="7 days",
                format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function} - {message}"
            )

    async def _section_list(self, request: Awaitable[List[Any]], what: str) -> List[Any]:
        """Await a list fetch; a failure empties that section only."""
        try:
            return await request
        except MissingDocumentError:
            raise
        except Exception as e:
            logger.warning(f"{what} unavailable: {e}")
            return []

    @staticmethod
    async def _skipped() -> List[Any]:
        return []

    async def collect(self, sections: Optional[Sequence[str]] = None) -> MetadataReport:
        """
        Collect the requested report sections.

        Args:
            sections: Section names (defaults to the configured sections)

        Returns:
            MetadataReport, sorted

        Raises:
            MissingDocumentError: If the engine document is unavailable
            ValueError: If a section name is unknown
        """
        sections = list(sections) if sections else list(self.config.report.sections)
        unknown = [s for s in sections if s not in REPORT_SECTIONS]
        if unknown:
            raise ValueError(f"Unknown report sections: {', '.join(unknown)}")
        wanted = set(sections)

        await self.client.ensure_document()
        logger.info(f"Collecting sections: {', '.join(sections)}")

        overview = "overview" in wanted
        need_dimensions = overview or bool(wanted & {"dimensions", "fields"})
        need_measures = overview or bool(wanted & {"measures", "fields"})
        need_variables = overview or bool(wanted & {"variables", "fields"})
        need_fields = overview or "fields" in wanted
        need_sheets = overview or "sheets" in wanted
        need_inventory = overview or bool(wanted & {"charts", "dimensions", "measures", "fields"})

        dimensions, measures, variables, fields, sheets, inventory = await asyncio.gather(
            self._section_list(fetch_dimensions(self.client), "Master dimensions") if need_dimensions else self._skipped(),
            self._section_list(fetch_measures(self.client), "Master measures") if need_measures else self._skipped(),
            self._section_list(fetch_variables(self.client), "Variables") if need_variables else self._skipped(),
            self._section_list(fetch_fields(self.client), "Fields") if need_fields else self._skipped(),
            self._section_list(fetch_sheets(self.client), "Sheets") if need_sheets else self._skipped(),
            self._section_list(ObjectInventory(self.client).enumerate(), "Object inventory") if need_inventory
            else self._skipped(),
        )

        cache = MasterItemCache(self.client)
        cache.prime(dimensions, measures)

        report = MetadataReport(sections=sections)

        dimension_counts = {}
        measure_counts = {}
        if wanted & {"dimensions", "measures"}:
            usage = MasterUsageCounter(max_depth=self.config.traversal.max_walk_depth).count(inventory)
            dimension_counts = usage.dimension_usage
            measure_counts = usage.measure_usage

        report.dimensions = [DimensionRow.from_model(d, dimension_counts.get(d.id, 0)) for d in dimensions] \
            if "dimensions" in wanted else []
        report.measures = [MeasureRow.from_model(m, measure_counts.get(m.id, 0)) for m in measures] \
            if "measures" in wanted else []

        if "fields" in wanted:
            aggregator = UsageAggregator(
                cache=cache,
                walker=self.walker,
                max_macro_depth=self.config.expressions.max_macro_depth,
                key_field_tag=self.config.expressions.key_field_tag
            )
            usage_result = await aggregator.find_unused(fields, dimensions, measures, variables, inventory)
            report.fields = [FieldRow.from_model(f, usage_result) for f in fields if f.name]

        if "sheets" in wanted:
            report.sheets = [SheetRow.from_model(s) for s in sheets]

        if "variables" in wanted:
            report.variables = [VariableRow.from_model(v) for v in variables]

        charts = []
        if overview or "charts" in wanted:
            charts = await self._chart_rows(inventory, cache, build_items="charts" in wanted)
            if "charts" in wanted:
                report.charts = charts

        if overview:
            app_layout = await optional_result(self.client.get_app_layout(), "App layout") or {}
            report.overview = OverviewRow(
                app_name=str(app_layout.get("qTitle") or ""),
                app_id=self.client.app_id,
                dimensions=len(dimensions),
                measures=len(measures),
                fields=len(fields),
                sheets=len(sheets),
                charts=len(charts),
                variables=len(variables)
            )

        if "script" in wanted:
            script = await optional_result(self.client.get_script(), "Load script")
            if script:
                report.script = parse_script_metadata(script)
            else:
                report.script_available = False
                logger.warning("Script metadata not available")

        logger.info("Collection complete")
        return report.sort()

    async def _chart_rows(self, inventory, cache: MasterItemCache, build_items: bool = True) -> List[ChartRow]:
        """One row per object placed directly on a sheet."""
        extension_ids = await optional_result(self.client.list_extensions(), "Extension list") or []
        extension_ids = {str(e).lower() for e in extension_ids}
        builder = ItemsSummaryBuilder(
            cache,
            preview_length=self.config.report.expression_preview_length,
            max_container_depth=self.config.traversal.max_container_depth,
            max_search_depth=self.config.traversal.max_search_depth
        )

        rows = []
        for obj in inventory:
            if not obj.is_top_level:
                continue
            items = ""
            if build_items:
                try:
                    items = await builder.build_for_object(obj, inventory)
                except MissingDocumentError:
                    raise
                except Exception as e:
                    logger.debug(f"Items summary failed for '{obj.object_id}': {e}")
            rows.append(ChartRow.from_model(obj, title_from_properties(obj.properties), items, extension_ids))
        return rows
