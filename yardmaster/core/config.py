from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Dict, List, Literal, Optional
from dataclasses import dataclass


@dataclass(frozen=True)
class PlanningPolicy:
    """Policy values shared by the planners for one planning pass."""
    depot: str = "Muttom"
    entrance: str = "Muttom_Entrance"
    maintenance_bay: str = "Muttom_Maint01"
    inspection_bay: str = "Muttom_Inspect01"
    light_clean_bay: str = "Muttom_Clean01"
    deep_clean_bay: str = "Muttom_Clean02"
    default_source: str = "Muttom_Stb01_S1"
    stabling_bays: int = 13
    stabling_slots_per_bay: int = 2
    entrance_capacity: int = 8
    night_start_hour: int = 22
    day_start_hour: int = 6
    a_service_interval_days: int = 15
    b_service_interval_days: int = 45
    light_clean_stale_days: int = 3
    deep_clean_stale_days: int = 30
    cleaning_slot_minutes: int = 10
    light_clean_minutes: int = 10
    deep_clean_minutes: int = 120
    log_stagger_seconds: int = 30
    default_priority_policy: str = "branding_then_mileage"

    def is_night(self, hour: int) -> bool:
        """Night mode covers [night_start_hour, 24) and [0, day_start_hour)."""
        return hour >= self.night_start_hour or hour < self.day_start_hour


class Settings(BaseSettings):
    # Application metadata
    PROJECT_NAME: str = "Yardmaster"
    PROJECT_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # API settings
    API_V1_STR: str = "/api/v1"

    # CORS settings
    BACKEND_CORS_ORIGINS: str = "http://localhost:5173,http://localhost:8000"

    # External table store
    STORE_BASE_URL: str = "http://localhost:3000/api"
    STORE_API_KEY: Optional[str] = None
    STORE_TIMEOUT: int = 30  # seconds

    # Redis settings
    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_PASSWORD: Optional[str] = None
    REDIS_DB: int = 0
    REDIS_SOCKET_TIMEOUT: int = 5  # seconds
    REDIS_CONNECT_TIMEOUT: int = 5  # seconds
    REDIS_RETRY_ON_TIMEOUT: bool = True

    # Feature flags
    ENABLE_REDIS: bool = False

    # Cache settings (seconds)
    CACHE_TTL: int = 20
    LOGS_CACHE_TTL: int = 15
    CLEANING_SLOTS_CACHE_TTL: int = 30
    JOB_CARDS_CACHE_TTL: int = 30
    REFERENCE_CACHE_TTL: int = 60
    GEOMETRY_CACHE_TTL: int = 600

    # Depot vocabulary
    DEPOT_NAME: str = "Muttom"
    ENTRANCE_LOCATION: str = "Muttom_Entrance"
    MAINTENANCE_BAY: str = "Muttom_Maint01"
    INSPECTION_BAY: str = "Muttom_Inspect01"
    LIGHT_CLEAN_BAY: str = "Muttom_Clean01"
    DEEP_CLEAN_BAY: str = "Muttom_Clean02"
    DEFAULT_SOURCE_LOCATION: str = "Muttom_Stb01_S1"
    STABLING_BAYS: int = 13
    STABLING_SLOTS_PER_BAY: int = 2

    # Planning policy
    ENTRANCE_CAPACITY: int = 8
    NIGHT_START_HOUR: int = 22
    DAY_START_HOUR: int = 6
    A_SERVICE_INTERVAL_DAYS: int = 15
    B_SERVICE_INTERVAL_DAYS: int = 45
    LIGHT_CLEAN_STALE_DAYS: int = 3
    DEEP_CLEAN_STALE_DAYS: int = 30
    CLEANING_SLOT_MINUTES: int = 10
    LIGHT_CLEAN_MINUTES: int = 10
    DEEP_CLEAN_MINUTES: int = 120
    LOG_STAGGER_SECONDS: int = 30
    DEFAULT_PRIORITY_POLICY: Literal["branding_then_mileage", "mileage_only"] = "branding_then_mileage"

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse the CORS origins string into a list."""
        return [origin.strip() for origin in self.BACKEND_CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def redis_config(self) -> dict:
        """Get Redis configuration as a dictionary."""
        return {
            "url": self.REDIS_URL,
            "password": self.REDIS_PASSWORD,
            "db": self.REDIS_DB,
            "socket_timeout": self.REDIS_SOCKET_TIMEOUT,
            "socket_connect_timeout": self.REDIS_CONNECT_TIMEOUT,
            "retry_on_timeout": self.REDIS_RETRY_ON_TIMEOUT,
        }

    @property
    def table_ttls(self) -> Dict[str, int]:
        """Time-to-live per store table, volatile tables expire first."""
        return {
            "logs": self.LOGS_CACHE_TTL,
            "cleaning_slots": self.CLEANING_SLOTS_CACHE_TTL,
            "job_cards": self.JOB_CARDS_CACHE_TTL,
            "vehicles": self.REFERENCE_CACHE_TTL,
            "fitness_certificates": self.REFERENCE_CACHE_TTL,
            "mileage": self.REFERENCE_CACHE_TTL,
            "branding": self.REFERENCE_CACHE_TTL,
            "light_clean": self.REFERENCE_CACHE_TTL,
            "deep_clean": self.REFERENCE_CACHE_TTL,
            "a_service_check": self.REFERENCE_CACHE_TTL,
            "b_service_check": self.REFERENCE_CACHE_TTL,
            "stabling_geometry": self.GEOMETRY_CACHE_TTL,
        }

    def policy(self) -> PlanningPolicy:
        """Build the immutable planning policy from the current settings."""
        return PlanningPolicy(
            depot=self.DEPOT_NAME,
            entrance=self.ENTRANCE_LOCATION,
            maintenance_bay=self.MAINTENANCE_BAY,
            inspection_bay=self.INSPECTION_BAY,
            light_clean_bay=self.LIGHT_CLEAN_BAY,
            deep_clean_bay=self.DEEP_CLEAN_BAY,
            default_source=self.DEFAULT_SOURCE_LOCATION,
            stabling_bays=self.STABLING_BAYS,
            stabling_slots_per_bay=self.STABLING_SLOTS_PER_BAY,
            entrance_capacity=self.ENTRANCE_CAPACITY,
            night_start_hour=self.NIGHT_START_HOUR,
            day_start_hour=self.DAY_START_HOUR,
            a_service_interval_days=self.A_SERVICE_INTERVAL_DAYS,
            b_service_interval_days=self.B_SERVICE_INTERVAL_DAYS,
            light_clean_stale_days=self.LIGHT_CLEAN_STALE_DAYS,
            deep_clean_stale_days=self.DEEP_CLEAN_STALE_DAYS,
            cleaning_slot_minutes=self.CLEANING_SLOT_MINUTES,
            light_clean_minutes=self.LIGHT_CLEAN_MINUTES,
            deep_clean_minutes=self.DEEP_CLEAN_MINUTES,
            log_stagger_seconds=self.LOG_STAGGER_SECONDS,
            default_priority_policy=self.DEFAULT_PRIORITY_POLICY,
        )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",  # Ignore extra fields in .env files
    )

settings = Settings()
