"""
Composition Root for MonthWise

Builds the one StorageEngine of the process and hands it to every repository
and service that needs it. Nothing else in the package creates an engine, and
nothing reaches for a module-level database.

    components = create_app_components()
    overview = await components.overview.load_year(2026)
    await components.close()

The database is not touched here; the engine opens itself on the first
repository call.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

import structlog

from monthwise.config import Settings, get_settings
from monthwise.logger import configure_logging
from monthwise.repositories import (
    AllowanceSourceRepository,
    CategoryRepository,
    ExpenseRepository,
    MonthRepository,
    ProfileRepository,
    SettingsRepository,
)
from monthwise.services import BackupService, ProfileSecurityService, YearOverviewService
from monthwise.storage import StorageEngine

logger = structlog.get_logger(__name__)


@dataclass
class AppComponents:
    """Everything a UI layer consumes, wired to one engine."""

    settings: Settings
    engine: StorageEngine
    profiles: ProfileRepository
    categories: CategoryRepository
    allowance_sources: AllowanceSourceRepository
    months: MonthRepository
    expenses: ExpenseRepository
    app_settings: SettingsRepository
    overview: YearOverviewService
    backup: BackupService
    security: ProfileSecurityService

    async def close(self) -> None:
        await self.engine.close()


def create_app_components(
    settings: Optional[Settings] = None,
    database_path: Optional[Union[str, Path]] = None,
    setup_logging: bool = True,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        settings: Settings to use. If None, loaded from the environment.
        database_path: Overrides the configured database path
                      (tests pass a temporary file or ":memory:").
        setup_logging: Whether to configure structlog.

    Returns:
        AppComponents sharing a single, not yet opened StorageEngine
    """
    settings = settings or get_settings()
    if setup_logging:
        configure_logging(settings.logging)

    app_settings = settings.app
    path = database_path if database_path is not None else settings.storage.database_path
    engine = StorageEngine(path)

    profiles = ProfileRepository(engine, max_profiles=app_settings.max_profiles)
    allowance_sources = AllowanceSourceRepository(engine)
    months = MonthRepository(engine)
    expenses = ExpenseRepository(engine)

    components = AppComponents(
        settings=settings,
        engine=engine,
        profiles=profiles,
        categories=CategoryRepository(engine),
        allowance_sources=allowance_sources,
        months=months,
        expenses=expenses,
        app_settings=SettingsRepository(engine),
        overview=YearOverviewService(allowance_sources, months, expenses),
        backup=BackupService(engine, app_version=app_settings.app_version),
        security=ProfileSecurityService(profiles),
    )
    logger.debug("app_components_created", database_path=str(path))
    return components
