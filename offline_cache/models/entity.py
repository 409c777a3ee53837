"""
@description 电影/剧集实体记录模型
@responsibility 按目录 ID 持久化内容详情，基础、媒体、AI 三层字段各自记录缓存时间
"""

from sqlalchemy import JSON, Boolean, Column, DateTime, Float, Integer, String, Text

from offline_cache.core.database import Base


class MovieRecord(Base):
    __tablename__ = "movie"

    id = Column(Integer, primary_key=True, autoincrement=False)

    # 基础数据（列表/搜索结果）
    title = Column(String(512), nullable=False, default="")
    original_title = Column(String(512), nullable=False, default="")
    overview = Column(Text, nullable=False, default="")
    poster_path = Column(String(255), nullable=True)
    backdrop_path = Column(String(255), nullable=True)
    vote_average = Column(Float, nullable=False, default=0.0)
    vote_count = Column(Integer, nullable=False, default=0)
    release_date = Column(String(32), nullable=True)
    genre_ids = Column(JSON, nullable=False, default=list)
    original_language = Column(String(16), nullable=False, default="")
    popularity = Column(Float, nullable=False, default=0.0)
    adult = Column(Boolean, nullable=False, default=False)

    # 媒体数据（详情页）
    runtime = Column(Integer, nullable=True)
    genres = Column(JSON, nullable=False, default=list)
    cast = Column(JSON, nullable=True)
    crew = Column(JSON, nullable=True)
    trailer_key = Column(String(64), nullable=True)
    videos = Column(JSON, nullable=True)
    images = Column(JSON, nullable=True)
    keywords = Column(JSON, nullable=True)
    release_dates = Column(JSON, nullable=True)
    production_companies = Column(JSON, nullable=True)
    spoken_languages = Column(JSON, nullable=True)
    belongs_to_collection = Column(JSON, nullable=True)
    budget = Column(Integer, nullable=True)
    revenue = Column(Integer, nullable=True)
    tagline = Column(Text, nullable=True)
    imdb_id = Column(String(32), nullable=True)
    content_rating = Column(String(32), nullable=True)

    # AI 生成数据
    ai_similar = Column(JSON, nullable=True)
    ai_trivia = Column(JSON, nullable=True)
    ai_tags = Column(JSON, nullable=True)

    # 各层缓存时间
    cached_at = Column(DateTime, nullable=True, index=True)
    media_cached_at = Column(DateTime, nullable=True)
    ai_generated_at = Column(DateTime, nullable=True)
    has_full_details = Column(Boolean, nullable=False, default=False)


class TVShowRecord(Base):
    __tablename__ = "tv_show"

    id = Column(Integer, primary_key=True, autoincrement=False)

    # 基础数据（列表/搜索结果）
    name = Column(String(512), nullable=False, default="")
    original_name = Column(String(512), nullable=False, default="")
    overview = Column(Text, nullable=False, default="")
    poster_path = Column(String(255), nullable=True)
    backdrop_path = Column(String(255), nullable=True)
    vote_average = Column(Float, nullable=False, default=0.0)
    vote_count = Column(Integer, nullable=False, default=0)
    first_air_date = Column(String(32), nullable=True)
    genre_ids = Column(JSON, nullable=False, default=list)
    original_language = Column(String(16), nullable=False, default="")
    popularity = Column(Float, nullable=False, default=0.0)
    origin_country = Column(JSON, nullable=False, default=list)

    # 媒体数据（详情页）
    last_air_date = Column(String(32), nullable=True)
    number_of_seasons = Column(Integer, nullable=True)
    number_of_episodes = Column(Integer, nullable=True)
    genres = Column(JSON, nullable=False, default=list)
    cast = Column(JSON, nullable=True)
    crew = Column(JSON, nullable=True)
    trailer_key = Column(String(64), nullable=True)
    videos = Column(JSON, nullable=True)
    images = Column(JSON, nullable=True)
    keywords = Column(JSON, nullable=True)
    content_ratings = Column(JSON, nullable=True)
    created_by = Column(JSON, nullable=True)
    networks = Column(JSON, nullable=True)
    production_companies = Column(JSON, nullable=True)
    spoken_languages = Column(JSON, nullable=True)
    status = Column(String(64), nullable=True)
    type = Column(String(64), nullable=True)
    tagline = Column(Text, nullable=True)
    episode_run_time = Column(JSON, nullable=False, default=list)
    content_rating = Column(String(32), nullable=True)

    # AI 生成数据
    ai_similar = Column(JSON, nullable=True)
    ai_trivia = Column(JSON, nullable=True)
    ai_tags = Column(JSON, nullable=True)

    # 各层缓存时间
    cached_at = Column(DateTime, nullable=True, index=True)
    media_cached_at = Column(DateTime, nullable=True)
    ai_generated_at = Column(DateTime, nullable=True)
    has_full_details = Column(Boolean, nullable=False, default=False)
