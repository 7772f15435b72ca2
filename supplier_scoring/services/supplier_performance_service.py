"""
Supplier Performance Service.

Async orchestrator over the scoring pipeline: fetches metrics through the
provider boundary, scores every supplier concurrently, ranks the set and
derives trends, comparisons, recommendations and alerts. Results are cached
through the injected cache collaborator.
"""

import asyncio
import logging
import statistics
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple, Type, TypeVar

from pydantic import BaseModel

from supplier_scoring.core.cache import CacheKeys, ResultCache, build_cache, make_cache_key, supplier_set_fingerprint
from supplier_scoring.core.config import Settings, settings as default_settings
from supplier_scoring.core.exceptions import (
    MetricsProviderUnavailableError,
    SupplierNotFoundError,
    SupplierScoringError,
)
from supplier_scoring.schemas.metrics import AnalysisWindow, SupplierMetricsSnapshot
from supplier_scoring.schemas.scoring import (
    COMPONENTS,
    ComparisonReport,
    ComponentName,
    RankingEntry,
    RankingOptions,
    RankingReport,
    RiskLevel,
    SupplierIdentity,
    SupplierScoreResult,
    Tier,
    TrendRecord,
    WeightProfile,
)
from supplier_scoring.services.supplier_performance.classification import build_score_result
from supplier_scoring.services.supplier_performance.metrics_provider import MetricsProvider
from supplier_scoring.services.supplier_performance.ranking import rank_results, summarize_rankings, tier_distribution
from supplier_scoring.services.supplier_performance.recommendations import build_guidance
from supplier_scoring.services.supplier_performance.scorers import (
    neutral_component,
    peer_average_order_value,
    score_components,
    score_sparse_components,
)
from supplier_scoring.services.supplier_performance.trends import diff_rankings, insufficient_trend
from supplier_scoring.services.supplier_performance.weights import resolve_weight_profile

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

COMPOSITE_CATEGORY = "composite"


class SupplierPerformanceService:
    """Scores, ranks and compares suppliers over an analysis window."""

    def __init__(
        self,
        provider: MetricsProvider,
        cache: Optional[ResultCache] = None,
        config: Optional[Settings] = None,
    ):
        self.provider = provider
        self.config = config or default_settings
        self.cache = cache if cache is not None else build_cache(self.config)
        self._in_flight: Dict[str, asyncio.Task] = {}

    # ==================== PROVIDER BOUNDARY ====================

    async def _call_provider(self, operation: str, call: Awaitable[Any]) -> Any:
        """Await a provider call under the configured timeout."""
        timeout = self.config.metrics_timeout_seconds
        try:
            return await asyncio.wait_for(call, timeout=timeout)
        except SupplierScoringError:
            raise
        except asyncio.TimeoutError as e:
            logger.warning(f"Metrics provider timed out during {operation} after {timeout}s")
            raise MetricsProviderUnavailableError(operation, f"timed out after {timeout}s") from e
        except Exception as e:
            logger.warning(f"Metrics provider failed during {operation}: {e}")
            raise MetricsProviderUnavailableError(operation, str(e)) from e

    async def _require_supplier(self, supplier_id: int) -> SupplierIdentity:
        identity = await self._call_provider("get_supplier", self.provider.get_supplier(supplier_id))
        if identity is None:
            raise SupplierNotFoundError(supplier_id)
        return identity

    # ==================== CACHE ====================

    def _cache_key(self, prefix: str, window: AnalysisWindow, profile: WeightProfile, **params) -> str:
        digest = make_cache_key(
            window.start.isoformat(),
            window.end.isoformat(),
            profile.name,
            {name.value: weight for name, weight in profile.weights.items()},
            **params,
        )
        return f"{prefix}:{digest}"

    async def _cached(self, key: str, model: Type[ModelT], compute: Callable[[], Awaitable[ModelT]]) -> ModelT:
        """Serve ``key`` from the cache, or compute it once and store it."""
        if self.cache is not None:
            hit = self.cache.load(key, model)
            if hit is not None:
                return hit

        if self.config.single_flight:
            shared = self._in_flight.get(key)
            if shared is not None:
                logger.debug(f"Joining in-flight computation for {key}")
                return await asyncio.shield(shared)

        async def compute_and_store() -> ModelT:
            value = await compute()
            if self.cache is not None:
                self.cache.save(key, value)
            return value

        task = asyncio.ensure_future(compute_and_store())
        if self.config.single_flight:
            self._in_flight[key] = task
            task.add_done_callback(lambda _: self._in_flight.pop(key, None))
        return await task

    def invalidate_cache(self) -> None:
        """Drop every cached score and ranking."""
        if self.cache is not None:
            self.cache.invalidate(CacheKeys.SCORE, CacheKeys.RANKINGS)

    # ==================== PIPELINE ====================

    async def _score_snapshot(
        self,
        snapshot: SupplierMetricsSnapshot,
        window: AnalysisWindow,
        peer_mean: Optional[float],
        profile: WeightProfile,
    ) -> SupplierScoreResult:
        """Fetch detail concurrently, then run the component scorers for one supplier."""
        supplier_id = snapshot.supplier_id
        delivery, quality = await asyncio.gather(
            self._call_provider("get_delivery_detail", self.provider.get_delivery_detail(supplier_id, window)),
            self._call_provider("get_quality_detail", self.provider.get_quality_detail(supplier_id, window)),
            return_exceptions=True,
        )
        for outcome in (delivery, quality):
            if isinstance(outcome, BaseException) and not isinstance(outcome, Exception):
                raise outcome

        components = score_components(
            snapshot,
            peer_mean,
            delivery_records=None if isinstance(delivery, Exception) else delivery,
            quality_detail=None if isinstance(quality, Exception) else quality,
            config=self.config,
        )
        for name, outcome in ((ComponentName.DELIVERY, delivery), (ComponentName.QUALITY, quality)):
            if isinstance(outcome, Exception):
                logger.warning(f"Supplier {supplier_id} {name.value} score degraded to neutral: {outcome}")
                components[name] = neutral_component(
                    f"{name.value.capitalize()} detail unavailable ({outcome}); neutral score applied",
                    self.config,
                )

        return build_score_result(snapshot, window, components, profile, self.config)

    async def _run_pipeline(
        self,
        window: AnalysisWindow,
        profile: WeightProfile,
        supplier_ids: Optional[List[int]],
        min_transactions: int,
    ) -> Tuple[List[SupplierScoreResult], List[int]]:
        """Score every qualifying supplier. Returns the results and the ids excluded by policy."""
        snapshots = await self._call_provider(
            "get_supplier_metrics",
            self.provider.get_supplier_metrics(window, supplier_ids, min_transactions),
        )
        if not snapshots:
            return [], []

        peer_mean = peer_average_order_value(snapshots)
        results = await asyncio.gather(
            *(self._score_snapshot(s, window, peer_mean, profile) for s in snapshots)
        )

        if not self.config.exclude_all_neutral:
            return list(results), []
        kept = [r for r in results if not r.scores.all_neutral]
        excluded = [r.supplier_id for r in results if r.scores.all_neutral]
        if excluded:
            logger.info(f"Excluded {len(excluded)} suppliers with no scorable metrics: {excluded}")
        return kept, excluded

    # ==================== SCORE ====================

    async def score_supplier(
        self,
        supplier_id: int,
        window: AnalysisWindow,
        weight_profile: Optional[str] = None,
        custom_weights: Optional[Dict[str, float]] = None,
    ) -> SupplierScoreResult:
        """Score one supplier against the peer set of the window."""
        profile = resolve_weight_profile(weight_profile, custom_weights, self.config)
        key = self._cache_key(CacheKeys.SCORE, window, profile, supplier_id=supplier_id)
        return await self._cached(
            key, SupplierScoreResult, lambda: self._compute_score(supplier_id, window, profile)
        )

    async def _compute_score(self, supplier_id: int, window: AnalysisWindow, profile: WeightProfile) -> SupplierScoreResult:
        identity = await self._require_supplier(supplier_id)
        required = self.config.min_transactions

        snapshots = await self._call_provider(
            "get_supplier_metrics", self.provider.get_supplier_metrics(window, None, 0)
        )
        own = next((s for s in snapshots if s.supplier_id == supplier_id), None)
        if own is not None and own.order_count >= required:
            peers = [s for s in snapshots if s.order_count >= required]
            return await self._score_snapshot(own, window, peer_average_order_value(peers), profile)

        if own is None:
            own = SupplierMetricsSnapshot(
                supplier_id=supplier_id,
                supplier_code=identity.code,
                supplier_name=identity.name,
                category=identity.category,
            )
        logger.info(
            f"Supplier {supplier_id} has {own.order_count} transactions in window "
            f"({required} required); transaction components scored neutral"
        )
        components = score_sparse_components(own, required, self.config)
        return build_score_result(own, window, components, profile, self.config, insufficient_data=True)

    # ==================== RANK ====================

    async def rank_suppliers(self, window: AnalysisWindow, options: Optional[RankingOptions] = None) -> RankingReport:
        """Rank every qualifying supplier of the window."""
        options = options or RankingOptions()
        profile = resolve_weight_profile(options.weight_profile, options.custom_weights, self.config)
        min_transactions = (
            options.min_transactions if options.min_transactions is not None else self.config.min_transactions
        )
        key = self._cache_key(
            CacheKeys.RANKINGS,
            window,
            profile,
            suppliers=supplier_set_fingerprint(options.supplier_ids),
            min_transactions=min_transactions,
            threshold=options.performance_threshold,
        )
        return await self._cached(
            key,
            RankingReport,
            lambda: self._compute_rankings(window, profile, options, min_transactions),
        )

    async def _compute_rankings(
        self,
        window: AnalysisWindow,
        profile: WeightProfile,
        options: RankingOptions,
        min_transactions: int,
    ) -> RankingReport:
        started = time.perf_counter()
        results, excluded = await self._run_pipeline(window, profile, options.supplier_ids, min_transactions)

        entries = rank_results(results)
        recommendations, alerts = build_guidance(entries)

        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(
            f"Ranked {len(entries)} suppliers in {elapsed_ms:.0f}ms "
            f"(profile={profile.name}, window={window.start.date()}..{window.end.date()})"
        )
        return RankingReport(
            window=window,
            weight_profile=profile,
            rankings=entries,
            tier_distribution=tier_distribution(entries) if entries else [],
            summary=summarize_rankings(entries, profile, options.performance_threshold),
            recommendations=recommendations,
            alerts=alerts,
            excluded_supplier_ids=excluded,
            warnings=list(profile.warnings),
        )

    # ==================== TRENDS ====================

    async def _previous_rankings(
        self, window: AnalysisWindow, options: RankingOptions
    ) -> Tuple[Optional[List[RankingEntry]], Optional[str]]:
        previous = window.previous()
        try:
            report = await self.rank_suppliers(previous, options)
        except MetricsProviderUnavailableError as e:
            logger.warning(f"Previous-period rankings unavailable for {previous.start}..{previous.end}: {e}")
            return None, f"Previous period unavailable: {e}"
        return report.rankings, None

    async def _ranked_pair(
        self, window: AnalysisWindow, options: RankingOptions
    ) -> Tuple[RankingReport, Optional[List[RankingEntry]], Optional[str]]:
        """Current rankings, then the previous window over the suppliers ranked now."""
        current = await self.rank_suppliers(window, options)
        if not current.rankings:
            return current, None, None

        ranked_ids = [entry.supplier_id for entry in current.rankings]
        previous, note = await self._previous_rankings(
            window, options.model_copy(update={"supplier_ids": ranked_ids})
        )
        return current, previous, note

    async def track_trends(self, window: AnalysisWindow, options: Optional[RankingOptions] = None) -> List[TrendRecord]:
        """Trend records for the whole ranked set of the window."""
        options = options or RankingOptions()
        current, previous, note = await self._ranked_pair(window, options)
        return diff_rankings(current.rankings, previous, self.config, note)

    async def track_supplier_trend(
        self,
        supplier_id: int,
        window: AnalysisWindow,
        weight_profile: Optional[str] = None,
    ) -> TrendRecord:
        """Rank movement of one supplier between the window and the one before it."""
        identity = await self._require_supplier(supplier_id)
        options = RankingOptions(weight_profile=weight_profile)
        current, previous, note = await self._ranked_pair(window, options)

        entry = current.entry_for(supplier_id)
        if entry is None:
            return insufficient_trend(
                identity, None, "Supplier does not qualify for ranking in the current period"
            )
        return diff_rankings([entry], previous, self.config, note)[0]

    # ==================== COMPARE ====================

    async def compare_suppliers(
        self,
        supplier_ids: Sequence[int],
        window: AnalysisWindow,
        weight_profile: Optional[str] = None,
        custom_weights: Optional[Dict[str, float]] = None,
    ) -> ComparisonReport:
        """Side-by-side comparison of a few suppliers, scored against the full peer set."""
        if not supplier_ids:
            raise ValueError("At least one supplier id is required for comparison")

        requested = list(dict.fromkeys(supplier_ids))
        wanted = set(requested)
        report = await self.rank_suppliers(
            window, RankingOptions(weight_profile=weight_profile, custom_weights=custom_weights)
        )
        found = {e.supplier_id: e.result for e in report.rankings if e.supplier_id in wanted}
        entries = rank_results(list(found.values()))

        best: Dict[str, int] = {}
        averages: Dict[str, float] = {}
        if entries:
            categories: List[Tuple[str, Callable[[RankingEntry], float]]] = [
                (name.value, lambda e, name=name: e.result.scores.get(name)) for name in COMPONENTS
            ]
            categories.append((COMPOSITE_CATEGORY, lambda e: e.composite_score))
            for category, value in categories:
                best[category] = min(entries, key=lambda e: (-value(e), e.supplier_id)).supplier_id
                averages[category] = round(statistics.fmean(value(e) for e in entries), 2)

        return ComparisonReport(
            window=window,
            weight_profile=report.weight_profile,
            entries=entries,
            best_in_category=best,
            category_averages=averages,
            top_performer=entries[0].supplier_id if entries else None,
            at_risk_supplier_ids=[
                e.supplier_id for e in entries
                if e.tier == Tier.PROBATION or e.result.risk_level == RiskLevel.HIGH
            ],
            missing_supplier_ids=[i for i in requested if i not in found],
        )
