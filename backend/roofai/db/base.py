from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

Base = declarative_base()


def create_cache_engine(database_url: str) -> Engine:
    """Engine for the durable cache store."""
    pool_config = {
        "pool_pre_ping": True,
        "echo": False,
    }

    if database_url.startswith("sqlite"):
        # Cache reads/writes run in worker threads
        pool_config["connect_args"] = {"check_same_thread": False}
    else:
        pool_config.update({
            "pool_size": 5,
            "max_overflow": 2,
            "pool_recycle": 300,
            "pool_timeout": 20,
        })

    return create_engine(database_url, **pool_config)


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)
