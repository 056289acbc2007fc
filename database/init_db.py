"""
Database initialization
Uygulama açılışında ve komut satırından tablo oluşturma
"""
import logging
from typing import List, Optional

from sqlalchemy.engine import Engine

from database.connection import engine as default_engine, Base
from database import models  # noqa: F401  (tabloları metadata'ya kaydeder)

logger = logging.getLogger(__name__)


def init_database(bind: Optional[Engine] = None) -> List[str]:
    """Eksik tabloları oluşturur, kayıtlı tablo adlarını döner"""
    bind = bind or default_engine
    Base.metadata.create_all(bind=bind)
    tables = sorted(Base.metadata.tables)
    logger.info(f"✅ Database initialized ({len(tables)} tables)")
    return tables


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    for table_name in init_database():
        print(f"  - {table_name}")
