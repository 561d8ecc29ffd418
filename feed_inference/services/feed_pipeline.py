"""
End-to-end feed inference pipeline.

Steps:

1. Endpoint discovery (sequential, network bound)
2. Completeness verification: item counts per collected file
3. Schema mapping per collected file, fanned out over a thread pool
4. Relationship analysis per schema report
5. Report assembly (single-threaded merge)

Every intermediate artifact is written through the storage collaborator:
``schema_<label>.json``, ``graph_<label>.json``, ``relationships.json`` and
``report.json``.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
import uuid
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Collection, Dict, List, Mapping, Optional, Tuple

from ..ingestion.discovery import (
    DiscoveryOptions,
    FeedDiscoveryService,
    count_root_items,
    is_valid_url,
    strip_page_param,
)
from ..ingestion.feed_client import FeedClient
from ..models.discovery import (
    CollectedFile,
    CompletenessReport,
    DiscoveryErrorEntry,
    DiscoveryManifest,
    EndpointCompleteness,
)
from ..models.graph import CombinedRelationships, RelationshipGraph
from ..models.report import Report
from ..models.schema import SchemaReport
from ..storage.feed_storage import FeedFileStorage, url_hash
from ..utils.constants import DEFAULT_MAX_PAGES
from ..utils.exceptions import FeedInferenceError, ValidationError
from ..utils.logging_config import reset_run_id, set_run_id
from ..utils.naming import slugify
from .relationship_analyzer import RelationshipAnalyzer
from .report_builder import ReportBuilder
from .schema_mapper import SchemaMapper

logger = logging.getLogger(__name__)

REPORT_NAME = "report.json"
RELATIONSHIPS_NAME = "relationships.json"

_PAGE_LABEL_RE = re.compile(r"^page_\d+$")
_LABEL_PREFIX_RE = re.compile(r"^(page_\d+|embedded_|primary_)")


@dataclass
class PipelineOptions:
    max_pages: int = DEFAULT_MAX_PAGES
    sample_size: Optional[int] = None
    probe_entities: bool = True
    detect_region: bool = True

    def discovery_options(self) -> DiscoveryOptions:
        return DiscoveryOptions(
            max_pages=self.max_pages,
            probe_entities=self.probe_entities,
            detect_region=self.detect_region,
        )


@dataclass
class PipelineResult:
    """Everything one pipeline run produced."""

    run_id: str
    manifest: Optional[DiscoveryManifest] = None
    completeness: Optional[CompletenessReport] = None
    schemas: Dict[str, SchemaReport] = field(default_factory=dict)
    graphs: Dict[str, RelationshipGraph] = field(default_factory=dict)
    report: Optional[Report] = None
    artifacts: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.report is not None


def entity_label(label: str) -> str:
    """
    Entity name behind a collected-file label.

    Example:
        >>> entity_label("embedded_blocks")
        'blocks'
        >>> entity_label("page_3")
        ''
    """
    return _LABEL_PREFIX_RE.sub("", label).strip("_")


def artifact_name(prefix: str, label: str, url: str = "", taken: Collection[str] = ()) -> str:
    """
    Artifact file name for one collected file, keyed by its label.

    A label whose slug is already taken gets a short hash of the full URL.

    Example:
        >>> artifact_name("graph", "primary_region")
        'graph_primary_region.json'
    """
    name = f"{prefix}_{slugify(label)}.json"
    if name in taken:
        name = f"{prefix}_{slugify(label)}_{url_hash(url)[:8]}.json"
    return name


class FeedPipeline:
    """
    Orchestrates discovery, inference and artifact storage for one feed.

    Args:
        client: HTTP fetch collaborator
        storage: Raw payload and artifact storage
        mapper: Schema mapper (shared by the worker threads)
        analyzer: Relationship analyzer
        builder: Report builder
        max_workers: Threads used for schema mapping
    """

    def __init__(
        self,
        client: FeedClient,
        storage: FeedFileStorage,
        mapper: Optional[SchemaMapper] = None,
        analyzer: Optional[RelationshipAnalyzer] = None,
        builder: Optional[ReportBuilder] = None,
        max_workers: int = 4,
    ):
        self.client = client
        self.storage = storage
        self.mapper = mapper or SchemaMapper()
        self.analyzer = analyzer or RelationshipAnalyzer()
        self.builder = builder or ReportBuilder(enum_threshold=self.mapper.enum_threshold)
        self.max_workers = max(1, max_workers)

    @classmethod
    def from_settings(cls, settings: Any, **client_overrides: Any) -> "FeedPipeline":
        """Wire every collaborator from the application ``Settings``."""
        return cls(
            client=FeedClient.from_settings(settings, **client_overrides),
            storage=FeedFileStorage(settings.storage.base_dir),
            mapper=SchemaMapper.from_settings(settings.schema_mapping),
            max_workers=settings.max_workers,
        )

    async def close(self) -> None:
        await self.client.close()

    async def __aenter__(self) -> "FeedPipeline":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Full run
    # ------------------------------------------------------------------

    async def run(
        self,
        primary_url: str,
        options: Optional[PipelineOptions] = None,
    ) -> PipelineResult:
        """
        Discover, analyze and report on one feed.

        Args:
            primary_url: Feed URL to start from
            options: Discovery limits and the list sample size

        Returns:
            PipelineResult; ``report`` is None when nothing could be analyzed

        Raises:
            ValidationError: If ``primary_url`` is not an absolute http(s) URL
        """
        if not is_valid_url(primary_url):
            raise ValidationError(f"Not an absolute http(s) URL: {primary_url!r}")

        options = options or PipelineOptions()
        result = PipelineResult(run_id=uuid.uuid4().hex[:12])
        token = set_run_id(result.run_id)
        try:
            await self._run(primary_url, options, result)
        finally:
            reset_run_id(token)
        return result

    async def _run(self, primary_url: str, options: PipelineOptions, result: PipelineResult) -> None:
        discovery = FeedDiscoveryService(self.client, self.storage)
        manifest = await discovery.discover(primary_url, options.discovery_options())
        result.manifest = manifest

        if not manifest.collected_files:
            logger.error(f"No files collected from {primary_url}, nothing to analyze")
            return

        documents = await asyncio.to_thread(self._load_documents, manifest)
        result.completeness = self.verify_completeness(manifest, documents)
        logger.info(
            f"Completeness: {result.completeness.total_files} files, "
            f"entity counts {result.completeness.entity_counts}"
        )

        mapper = self._mapper_for(options)
        selected = self._select_for_mapping(manifest, documents)
        labels = {entry.url: entry.label for entry in selected}
        result.schemas = await self._map_schemas(
            mapper, [(entry.url, documents[entry.path]) for entry in selected]
        )
        if not result.schemas:
            logger.error(f"Schema analysis produced no results for {primary_url}")
            return

        for url, schema in result.schemas.items():
            name = artifact_name("schema", labels[url], url, result.artifacts)
            result.artifacts[name] = await asyncio.to_thread(self.storage.save_json, name, schema)

        result.graphs = self._analyze_relationships(result.schemas)
        for url, graph in result.graphs.items():
            name = artifact_name("graph", labels[url], url, result.artifacts)
            result.artifacts[name] = await asyncio.to_thread(self.storage.save_json, name, graph)

        result.report = self.builder.build(manifest, result.schemas, result.graphs)
        result.artifacts[RELATIONSHIPS_NAME] = await asyncio.to_thread(
            self.storage.save_json, RELATIONSHIPS_NAME, CombinedRelationships.combine(result.graphs)
        )
        result.artifacts[REPORT_NAME] = await asyncio.to_thread(
            self.storage.save_json, REPORT_NAME, result.report
        )
        logger.info(f"Report saved: {result.artifacts[REPORT_NAME]}")

    # ------------------------------------------------------------------
    # In-memory analysis
    # ------------------------------------------------------------------

    async def analyze_documents(
        self,
        documents: Mapping[str, Any],
        manifest: Optional[DiscoveryManifest] = None,
    ) -> PipelineResult:
        """
        Map, relate and report on already decoded documents.

        No discovery and no storage: useful for tests and for payloads that
        were fetched elsewhere.

        Args:
            documents: Source URL to decoded JSON document
            manifest: Optional discovery manifest for the report metadata

        Returns:
            PipelineResult without artifacts
        """
        result = PipelineResult(run_id=uuid.uuid4().hex[:12], manifest=manifest)
        result.schemas = await self._map_schemas(self.mapper, list(documents.items()))
        result.graphs = self._analyze_relationships(result.schemas)
        result.report = self.builder.build(manifest, result.schemas, result.graphs)
        return result

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _load_documents(self, manifest: DiscoveryManifest) -> Dict[str, Any]:
        """Decode every collected file; failures become manifest errors."""
        documents: Dict[str, Any] = {}
        for entry in manifest.collected_files:
            if entry.path in documents:
                continue
            try:
                documents[entry.path] = json.loads(self.storage.load_raw(entry.path))
            except (FeedInferenceError, ValueError, UnicodeDecodeError) as e:
                logger.warning(f"Skipping {entry.label}: cannot load {entry.path} ({e})")
                manifest.errors.append(
                    DiscoveryErrorEntry(
                        url=entry.url, label=entry.label, message=f"Cannot decode stored payload: {e}"
                    )
                )
        return documents

    @staticmethod
    def verify_completeness(
        manifest: DiscoveryManifest,
        documents: Mapping[str, Any],
    ) -> CompletenessReport:
        """
        Count items per collected file and roll them up by entity label.

        Files missing from ``documents`` (unreadable payloads) are left out.
        """
        report = CompletenessReport(
            total_files=len(manifest.collected_files),
            total_bytes=manifest.total_bytes,
            total_mb=manifest.total_size_mb,
            region_filter=manifest.region_filter,
            pagination=dict(manifest.pagination_info),
        )

        for entry in manifest.collected_files:
            if entry.path not in documents:
                continue
            count = count_root_items(documents[entry.path])
            report.endpoints.append(
                EndpointCompleteness(
                    label=entry.label, url=entry.url, bytes=entry.bytes, item_count=count
                )
            )
            name = entity_label(entry.label)
            if count > 0 and name:
                report.entity_counts[name] = report.entity_counts.get(name, 0) + count

        return report

    @staticmethod
    def _select_for_mapping(
        manifest: DiscoveryManifest,
        documents: Mapping[str, Any],
    ) -> List[CollectedFile]:
        """
        Files worth mapping, in collection order.

        Later pages of an endpoint share its schema, so a ``page_N`` file is
        skipped once its page-stripped URL has been selected.
        """
        selected: List[CollectedFile] = []
        urls = set()
        for entry in manifest.collected_files:
            if entry.path not in documents or entry.url in urls:
                continue
            if _PAGE_LABEL_RE.match(entry.label) and strip_page_param(entry.url) in urls:
                logger.debug(f"Skipping {entry.label}, schema already mapped from page 1")
                continue
            selected.append(entry)
            urls.add(entry.url)
        return selected

    def _mapper_for(self, options: PipelineOptions) -> SchemaMapper:
        if options.sample_size is None or options.sample_size == self.mapper.array_sample_size:
            return self.mapper
        return SchemaMapper(
            max_depth=self.mapper.max_depth,
            array_sample_size=options.sample_size,
            example_max_length=self.mapper.example_max_length,
            enum_threshold=self.mapper.enum_threshold,
        )

    async def _map_schemas(
        self,
        mapper: SchemaMapper,
        items: List[Tuple[str, Any]],
    ) -> Dict[str, SchemaReport]:
        """Run the mapper over ``(url, document)`` pairs on worker threads."""
        if not items:
            return {}

        loop = asyncio.get_running_loop()
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            reports = await asyncio.gather(
                *(
                    loop.run_in_executor(executor, mapper.analyze, document, url)
                    for url, document in items
                )
            )

        schemas: Dict[str, SchemaReport] = {}
        for (url, _), report in zip(items, reports):
            schemas[url] = report
            logger.info(
                f"Mapped {url}: {report.stats.total_fields} fields, "
                f"{report.stats.total_entities} entities, depth {report.stats.max_depth}"
            )
        return schemas

    def _analyze_relationships(
        self,
        schemas: Mapping[str, SchemaReport],
    ) -> Dict[str, RelationshipGraph]:
        graphs: Dict[str, RelationshipGraph] = {}
        for url, schema in schemas.items():
            graph = self.analyzer.analyze(schema, url)
            graphs[url] = graph
            logger.info(
                f"Relationships for {url}: "
                f"{len(graph.entities)} entities, {len(graph.relationships)} relationships"
            )
        return graphs
