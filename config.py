import os
from pathlib import Path
from typing import List

from dotenv import load_dotenv
from pydantic import BaseModel

ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / '.env')


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == 'true'


class Settings(BaseModel):
    invenio_api_base: str = ""
    invenio_api_key: str = ""
    invenio_bp_uuid: str = ""
    invenio_timeout: float = 20.0
    image_timeout: float = 15.0
    map_timeout: float = 20.0
    mapbox_access_token: str = ""
    use_sample_villas: bool = False
    mongo_url: str = ""
    db_name: str = "move2ibiza"
    use_in_memory_db: bool = True
    contact_email: str = "hello@move2ibiza.com"
    whatsapp_number: str = "34671349592"
    site_url: str = "https://m2i-qjvb.vercel.app/"
    cors_origins: List[str] = ["*"]

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            invenio_api_base=os.getenv('INVENIO_API_BASE', '').rstrip('/'),
            invenio_api_key=os.getenv('INVENIO_API_KEY', '').strip(),
            invenio_bp_uuid=os.getenv('INVENIO_BP_UUID', '').strip(),
            invenio_timeout=float(os.getenv('INVENIO_TIMEOUT', '20')),
            image_timeout=float(os.getenv('IMAGE_TIMEOUT', '15')),
            map_timeout=float(os.getenv('MAP_TIMEOUT', '20')),
            mapbox_access_token=os.getenv('MAPBOX_ACCESS_TOKEN', '').strip(),
            use_sample_villas=_flag('USE_SAMPLE_VILLAS', 'false'),
            mongo_url=os.getenv('MONGO_URL', ''),
            db_name=os.getenv('DB_NAME', 'move2ibiza'),
            use_in_memory_db=_flag('USE_IN_MEMORY_DB', 'true'),
            contact_email=os.getenv('CONTACT_EMAIL', 'hello@move2ibiza.com'),
            whatsapp_number=os.getenv('WHATSAPP_NUMBER', '34671349592'),
            site_url=os.getenv('SITE_URL', 'https://m2i-qjvb.vercel.app/'),
            cors_origins=[o.strip() for o in os.getenv('CORS_ORIGINS', '*').split(',') if o.strip()],
        )

    @property
    def invenio_configured(self) -> bool:
        return bool(self.invenio_api_base and self.invenio_api_key and self.invenio_bp_uuid)

    @property
    def villa_list_url(self) -> str:
        return f"{self.invenio_api_base}/plapi/getdata/api_villa_list_lr"


settings = Settings.from_env()


def get_settings() -> Settings:
    return settings
