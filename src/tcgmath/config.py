import os


class Settings:
    PROJECT_NAME: str = "tcgmath"
    DEBUG: bool = os.getenv("TCGMATH_DEBUG", "0") == "1"
    LOG_DIR: str = "log"
    LOG_FILE: str = "tcgmath.log"
    REDIS_URL: str = os.getenv("TCGMATH_REDIS_URL", "redis://localhost:6379/0")
    CARD_DIR: str = "cards"

    # Persisted record layout
    CURRENT_VERSION: str = "2.0"
    COLLECTION_KEY: str = "tcgmath:collection"
    SETTINGS_KEY: str = "tcgmath:settings"
    SESSION_KEY: str = "tcgmath:session"

    # Card sources
    POKEMON_TCG_API_URL: str = "https://api.pokemontcg.io/v2"
    POKEMON_TCG_API_KEY: str = os.getenv("POKEMON_TCG_API_KEY", "")
    TCGDEX_API_URL: str = "https://api.tcgdex.net/v2/en"
    MIN_QUIZ_CARDS: int = 10
    SET_DETAIL_LIMIT: int = 20

    PLAYER_COOKIE_NAME: str = "player_id"
    SESSION_COOKIE_NAME: str = "quiz_session_id"
    SESSION_TIMEOUT_MINUTES: int = 120


settings = Settings()
