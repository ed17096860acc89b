from pydantic_settings import BaseSettings
from typing import Dict, List, Optional

NOT_A_RECIPIENT = "Not an Award Recipient"
NOMINEE_CATEGORY = "Nominee / Partner"


class Settings(BaseSettings):
    # Application
    PROJECT_NAME: str = "GuestPass Check-In"
    VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "production"
    APP_BASE_URL: str = "https://events.macl.aero"

    # Database
    DATABASE_URL: str = "sqlite:///./guestpass.db"

    # Security
    SECRET_KEY: str = "change-me-0b5e4b0f3c9a4f7d8e2a61c7d94f05ab"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24
    ADMIN_EMAIL: str = "admin@example.com"
    ADMIN_PASSWORD: str = "admin123"

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = "guestpass.log"

    # Event
    EVENT_NAME: str = "Velana Awards 2026"
    EVENT_DATE: str = "12th February 2026, Thursday"
    EVENT_TIME: str = "1915 HRS"
    EVENT_LOCATION: str = "Crossroads Maldives"
    EVENT_SUB_LOCATION: str = "Departure from Jetty-1 from Male'"

    # Roster
    NOMINEE_ORGANIZATIONS: List[str] = [
        "Maldivian",
        "Emirates",
        "Qatar Airways",
        "SriLankan Airlines",
        "FlyDubai",
        "Singapore Airlines",
        "Turkish Airlines",
        "Aeroflot",
        "Indigo",
        "British Airways",
        "Trans Maldivian Airways",
        "Manta Air",
    ]
    ADDITIONAL_INVITED_ORGANIZATIONS: List[str] = [
        "Villa Air",
        "Island Aviation",
        "Maldives Airports Company Ltd",
        "Ministry of Transport",
        "Maldives Customs Service",
        "Immigration Maldives",
    ]
    DEFAULT_GUEST_CATEGORIES: List[str] = [
        NOT_A_RECIPIENT,
        NOMINEE_CATEGORY,
        "VIP",
        "Media",
        "Organizing Team",
        "Government Official",
        "Sponsor",
    ]
    AWARD_SECTIONS: Dict[str, List[str]] = {
        "Passenger Awards": [
            "Top Airline for Passenger Growth",
            "Top Domestic Airline for Passenger Growth",
            "Top Passenger Airline",
            "Top Domestic Airline",
        ],
        "Cargo Awards": [
            "Top Air-to-Air Import Airline",
            "Top Air-to-Air Export Airline",
            "Top Sea-to-Air Export Airline",
            "Top Cargo Partner",
            "Freighter of the Year",
        ],
        "Lounge Awards": [
            "Vilu Partner of the Year Award",
            "Maamahi Partner of the Year Award",
            "Leeli Partner of the Year Award",
        ],
    }
    DEFAULT_COUNTRY_CODE: str = "+960"

    # Email (Microsoft Graph)
    GRAPH_API_URL: str = "https://graph.microsoft.com/v1.0"
    GRAPH_ACCESS_TOKEN: Optional[str] = None
    EMAIL_TIMEOUT_SECONDS: float = 15.0

    # Scanner
    SCANNER_FACING_MODE: str = "rear"
    SCANNER_INIT_TIMEOUT_SECONDS: float = 10.0

    # Destructive action confirmation
    CONFIRMATION_TTL_SECONDS: int = 120

    # File Upload
    MAX_UPLOAD_SIZE_MB: int = 5

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"

    @property
    def invited_organizations(self) -> List[str]:
        return self.NOMINEE_ORGANIZATIONS + self.ADDITIONAL_INVITED_ORGANIZATIONS


settings = Settings()
