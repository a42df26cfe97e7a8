"""Shared fixtures for the leadflow tests.

Database tests run against a temporary SQLite file through aiosqlite, with
the engine installed on DatabaseManager so every stage's ``get_db_session``
uses it.
"""

import pytest_asyncio

from leadflow.models import Campaign, CampaignStatus, DatabaseManager, create_test_engine, get_db_session


@pytest_asyncio.fixture
async def database(tmp_path):
    """Fresh schema in a temporary SQLite file."""
    engine = create_test_engine(f"sqlite+aiosqlite:///{tmp_path / 'leadflow-test.db'}")
    DatabaseManager.use_engine(engine)
    await DatabaseManager.create_tables()
    yield engine
    await DatabaseManager.close()


@pytest_asyncio.fixture
async def campaign_id(database):
    """A pending campaign row."""
    async with get_db_session() as session:
        campaign = Campaign(
            owner_id="owner-1",
            status=CampaignStatus.PENDING,
            scraper_parameters={
                "target_platforms": ["google_maps"],
                "boolean_search_strings": ["marketing agency"],
                "target_job_titles": ["CEO"],
            },
        )
        session.add(campaign)
        await session.flush()
        return campaign.id
