# app/cli/create_tables.py
import asyncio
import click
from sqlalchemy.ext.asyncio import create_async_engine
from app.database import Base, database_url

# Import all models so they're registered with the Base
from app import models  # noqa: F401


@click.command()
@click.option('--echo/--no-echo', default=False, help='Echo SQL statements')
def create_tables(echo):
    """Create all database tables directly using SQLAlchemy"""

    async def _create_tables():
        engine = create_async_engine(database_url, echo=echo)
        async with engine.begin() as conn:
            # This will create all tables defined in models that inherit from Base
            await conn.run_sync(Base.metadata.create_all)
        await engine.dispose()
        click.echo("All tables created successfully!")

    asyncio.run(_create_tables())

if __name__ == "__main__":
    create_tables()
