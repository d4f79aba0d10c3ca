"""
Dashboard consumer: progressive load of the home dashboard.
"""

from datetime import timedelta
from typing import Any, Optional, Protocol, runtime_checkable

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from sahayak.consumers.base import OptimizedConsumer
from sahayak.consumers.state import ConsumerState
from sahayak.orchestration.coordinator import RequestCoordinator
from sahayak.orchestration.refresh import StalenessPolicy
from sahayak.utils.clock import Clock, utcnow

# section name -> (DashboardData field, progressive operation name)
SECTIONS: dict[str, tuple[str, str]] = {
    "stats": ("user_stats", "primary_user_stats"),
    "activities": ("recent_activities", "primary_recent_activities"),
    "analytics": ("analytics", "secondary_analytics"),
    "recommendations": ("recommendations", "secondary_recommendations"),
    "insights": ("insights", "tertiary_insights"),
    "achievements": ("achievements", "tertiary_achievements"),
}


class DashboardData(BaseModel):
    """Dashboard payload; missing sections are empty."""

    model_config = ConfigDict(frozen=True)

    user_stats: dict[str, Any] = Field(default_factory=dict)
    recent_activities: list[Any] = Field(default_factory=list)
    analytics: dict[str, Any] = Field(default_factory=dict)
    recommendations: list[Any] = Field(default_factory=list)
    insights: dict[str, Any] = Field(default_factory=dict)
    achievements: list[Any] = Field(default_factory=list)

    @classmethod
    def from_results(cls, results: dict[str, Any]) -> "DashboardData":
        """Build from progressive-loading results keyed by operation name."""
        return cls(
            **{
                field_name: results[operation]
                for field_name, operation in SECTIONS.values()
                if results.get(operation) is not None
            }
        )

    def update_section(self, section: str, data: Any) -> "DashboardData":
        """Copy with one section replaced; unknown sections return self."""
        if section not in SECTIONS:
            return self
        field_name, _ = SECTIONS[section]
        return self.model_copy(update={field_name: data})


class DashboardState(ConsumerState):
    dashboard_data: Optional[DashboardData] = None


@runtime_checkable
class DashboardService(Protocol):
    """Remote calls backing the dashboard."""

    async def get_user_stats(self) -> dict[str, Any]: ...

    async def get_recent_activities(self) -> list[Any]: ...

    async def get_analytics_data(self) -> dict[str, Any]: ...

    async def get_recommendations(self) -> list[Any]: ...

    async def get_insights(self) -> dict[str, Any]: ...

    async def get_achievements(self) -> list[Any]: ...

    async def load_dashboard_data(self, force_refresh: bool = False) -> DashboardData: ...


class DashboardConsumer(OptimizedConsumer[DashboardState]):
    """
    Loads the dashboard in three tiers: stats and recent activities first,
    then analytics and recommendations, then insights and achievements.
    """

    def __init__(
        self,
        coordinator: RequestCoordinator,
        service: DashboardService,
        refresh_interval: timedelta | float | None = None,
        staleness: Optional[StalenessPolicy] = None,
        clock: Clock = utcnow,
    ):
        super().__init__(
            coordinator,
            "dashboard",
            DashboardState(),
            refresh_interval=refresh_interval,
            staleness=staleness,
            clock=clock,
        )
        self.service = service
        self._section_loaders = {
            "stats": (self.service.get_user_stats, "user_stats"),
            "activities": (self.service.get_recent_activities, "recent_activities"),
            "analytics": (self.service.get_analytics_data, "analytics"),
            "recommendations": (self.service.get_recommendations, "recommendations"),
            "insights": (self.service.get_insights, "insights"),
            "achievements": (self.service.get_achievements, "achievements"),
        }

    async def load_dashboard(self, silent: bool = False) -> None:
        """Load every section progressively. Silent loads raise instead of setting `error`."""
        if not silent:
            self.emit(self.state.model_copy(update={"is_loading": True, "error": None}))

        try:
            results = await self.execute_progressive_loading(
                {
                    operation: self._section_call(section)
                    for section, (_, operation) in SECTIONS.items()
                }
            )
        except Exception as e:
            if silent:
                raise
            logger.error(f"Dashboard load failed: {e}")
            self.emit(
                self.state.model_copy(
                    update={"is_loading": False, "is_refreshing": False, "error": str(e)}
                )
            )
            return

        self.emit(
            self.state.model_copy(
                update={
                    "is_loading": False,
                    "is_refreshing": False,
                    "dashboard_data": DashboardData.from_results(results),
                    "last_updated": self.clock(),
                    "is_from_cache": False,
                    "error": None,
                }
            )
        )

    async def refresh_dashboard(self, silent: bool = False) -> None:
        """
        Reload the whole dashboard from the service, bypassing the cache.

        A silent refresh never touches the loading flags or `error`; its
        failures propagate to `handle_silent_refresh`, which reports them.
        """
        if not silent:
            self.emit(self.state.model_copy(update={"is_refreshing": True, "error": None}))

        try:
            data = await self.execute_optimized_call(
                "refresh_dashboard",
                lambda: self.service.load_dashboard_data(force_refresh=True),
                enable_caching=False,
            )
        except Exception as e:
            if silent:
                raise
            logger.warning(f"Dashboard refresh failed: {e}")
            self.emit(
                self.state.model_copy(
                    update={"is_loading": False, "is_refreshing": False, "error": str(e)}
                )
            )
            return

        self.emit(
            self.state.model_copy(
                update={
                    "is_loading": False,
                    "is_refreshing": False,
                    "dashboard_data": DashboardData.model_validate(data),
                    "last_updated": self.clock(),
                    "is_from_cache": False,
                    "error": None,
                }
            )
        )

    async def load_section(self, section: str) -> None:
        """Reload one section without touching the loading flags."""
        try:
            data = await self.execute_optimized_call(
                f"load_section_{section}",
                self._section_call(section),
                cache_key=f"dashboard_section_{section}",
            )
        except Exception as e:
            logger.warning(f"Failed to load dashboard section {section}: {e}")
            return

        current = self.state.dashboard_data or DashboardData()
        self.emit(self.state.model_copy(update={"dashboard_data": current.update_section(section, data)}))

    async def perform_silent_refresh(self) -> None:
        await self.refresh_dashboard(silent=True)

    def _section_call(self, section: str):
        if section not in self._section_loaders:
            raise ValueError(f"Unknown section: {section}")
        fetch, name = self._section_loaders[section]

        async def call() -> Any:
            return await self.execute_optimized_call(name, fetch, cache_key=f"dashboard_{name}")

        return call
