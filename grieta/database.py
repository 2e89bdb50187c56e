# database.py – SQLAlchemy setup + journal des snapshots de rang + index des invocateurs

from datetime import datetime, timezone
from pathlib import Path
from sqlalchemy import (
    create_engine, Column, String, Integer, DateTime, Index
)
from sqlalchemy.orm import declarative_base, sessionmaker

from grieta.config import settings


# Si on utilise SQLite, créer le dossier parent du fichier .db
if settings.DB_URL.startswith("sqlite:///"):
    db_file = settings.DB_URL.replace("sqlite:///", "")
    if db_file and db_file != ":memory:":
        Path(db_file).parent.mkdir(parents=True, exist_ok=True)

# Engine & session
engine = create_engine(settings.DB_URL, future=True)
SessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
    future=True,
)

# Base pour les modèles
Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RankSnapshotRow(Base):
    """Rang observé à chaque visite de profil. Append-only : jamais modifié."""
    __tablename__ = 'rank_snapshots'
    id = Column(Integer, primary_key=True, autoincrement=True)
    puuid = Column(String, nullable=False)
    region = Column(String, nullable=False)
    queue_type = Column(String, nullable=False)   # RANKED_SOLO_5x5 …
    tier = Column(String, nullable=False)
    division = Column(String, nullable=True)      # NULL pour Master+
    league_points = Column(Integer, nullable=False)
    wins = Column(Integer, nullable=False, default=0)
    losses = Column(Integer, nullable=False, default=0)
    fetched_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        Index('ix_rank_snapshots_player_queue_time', 'puuid', 'region', 'queue_type', 'fetched_at'),
    )


class SummonerRow(Base):
    """Index de recherche : un invocateur par (puuid, région), mis à jour à chaque visite."""
    __tablename__ = 'summoners'
    puuid = Column(String, primary_key=True)
    region = Column(String, primary_key=True)
    riot_id = Column(String, nullable=False)       # "Nom#TAG"
    riot_id_lower = Column(String, nullable=False)  # clé de recherche
    profile_icon_id = Column(Integer, nullable=True)
    summoner_level = Column(Integer, nullable=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        Index('ix_summoners_region_riot_id_lower', 'region', 'riot_id_lower'),
    )


def init_db(bind=None):
    """Créer les tables si elles n'existent pas encore."""
    Base.metadata.create_all(bind=bind or engine)
