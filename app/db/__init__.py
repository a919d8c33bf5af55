from .base import Base
from .session import create_db_engine, create_session_factory


def init_db(engine):
    # 导入模型以注册到 Base.metadata
    from app import models  # noqa: F401

    Base.metadata.create_all(bind=engine)


__all__ = ["Base", "create_db_engine", "create_session_factory", "init_db"]
