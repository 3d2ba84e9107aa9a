import os
from typing import Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

# Membership duration policies (months)
STANDARD_DURATIONS: Tuple[int, ...] = (1, 3, 6, 12)
MONTHLY_DURATIONS: Tuple[int, ...] = tuple(range(1, 13))

DEFAULT_DATABASE_URL = 'mongodb://localhost:27017'


def _env_bool(name: str, default: Optional[bool]) -> Optional[bool]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == '':
        return default
    return raw.strip().lower() in ('1', 'true', 'yes', 'on')


def _env_list(name: str, default: str) -> Tuple[str, ...]:
    raw = os.getenv(name, default)
    return tuple(part.strip() for part in raw.split(',') if part.strip())


class Settings(BaseModel):
    """Process-wide configuration, built once at startup and handed to collaborators."""
    model_config = ConfigDict(frozen=True)

    database_url: str = DEFAULT_DATABASE_URL
    database_name: str = 'gym_roster'
    db_timeout_ms: int = Field(5000, gt=0)
    port: int = 8000

    photo_storage: Literal['local', 'cloudinary'] = 'local'
    photo_dir: str = 'public'
    photo_url_prefix: str = '/public'
    photo_max_bytes: int = Field(1 * 1024 * 1024, gt=0)
    # None: release local files, keep CDN images
    release_replaced_photos: Optional[bool] = None

    cloudinary_cloud_name: Optional[str] = None
    cloudinary_api_key: Optional[str] = None
    cloudinary_api_secret: Optional[str] = None
    cloudinary_folder: str = 'gym_members'
    cloudinary_max_width: int = Field(1000, gt=0)

    allowed_durations: Tuple[int, ...] = STANDARD_DURATIONS
    expiring_soon_days: int = Field(7, ge=0)

    cors_origins: Tuple[str, ...] = ('*',)
    log_level: str = 'INFO'

    @classmethod
    def from_env(cls) -> 'Settings':
        durations: Optional[str] = os.getenv('ALLOWED_DURATIONS')
        if durations is None or durations.strip() == '':
            allowed = STANDARD_DURATIONS
        elif durations.strip().lower() == 'monthly':
            allowed = MONTHLY_DURATIONS
        else:
            allowed = tuple(int(part) for part in durations.split(',') if part.strip())

        return cls(
            database_url=os.getenv('DATABASE_URL', DEFAULT_DATABASE_URL),
            database_name=os.getenv('DATABASE_NAME', 'gym_roster'),
            db_timeout_ms=int(os.getenv('DB_TIMEOUT_MS', 5000)),
            port=int(os.getenv('PORT', 8000)),
            photo_storage=os.getenv('PHOTO_STORAGE', 'local').strip().lower(),
            photo_dir=os.getenv('PHOTO_DIR', 'public'),
            photo_url_prefix=os.getenv('PHOTO_URL_PREFIX', '/public'),
            photo_max_bytes=int(os.getenv('PHOTO_MAX_BYTES', 1 * 1024 * 1024)),
            release_replaced_photos=_env_bool('RELEASE_REPLACED_PHOTOS', None),
            cloudinary_cloud_name=os.getenv('CLOUDINARY_CLOUD_NAME'),
            cloudinary_api_key=os.getenv('CLOUDINARY_API_KEY'),
            cloudinary_api_secret=os.getenv('CLOUDINARY_API_SECRET'),
            cloudinary_folder=os.getenv('CLOUDINARY_FOLDER', 'gym_members'),
            allowed_durations=allowed,
            expiring_soon_days=int(os.getenv('EXPIRING_SOON_DAYS', 7)),
            cors_origins=_env_list('CORS_ORIGINS', '*'),
            log_level=os.getenv('LOG_LEVEL', 'INFO').upper(),
        )

    @property
    def releases_photos(self) -> bool:
        if self.release_replaced_photos is not None:
            return self.release_replaced_photos
        return self.photo_storage == 'local'

    @property
    def database_url_configured(self) -> bool:
        return self.database_url != DEFAULT_DATABASE_URL
