from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    DEV: bool = False
    DATABASE_URL: str = "sqlite:///./lockedin.db"

    # Verificación de tokens: "jwt" (local) o "supabase" (introspección remota)
    AUTH_VERIFIER: str = "jwt"
    SECRET_KEY: str = "change_me_in_env"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24  # 24h
    SUPABASE_URL: str = ""
    SUPABASE_SERVICE_ROLE_KEY: str = ""
    AUTH_TIMEOUT_SECONDS: float = 5.0

    # Email: "emailjs" o "recording" (solo tests/dev local: no envía nada,
    # guarda los últimos envíos en memoria)
    EMAIL_BACKEND: str = "emailjs"
    EMAILJS_URL: str = "https://api.emailjs.com/api/v1.0/email/send"
    EMAILJS_SERVICE_ID: str = ""
    EMAILJS_USER_ID: str = ""
    EMAILJS_INVITATION_TEMPLATE_ID: str = ""
    EMAILJS_CONFLICT_TEMPLATE_ID: str = ""
    EMAILJS_ACCESS_TOKEN: str = ""
    EMAIL_TIMEOUT_SECONDS: float = 10.0
    EMAIL_STAGGER_SECONDS: float = 0.3
    EMAIL_ORGANIZER: str = "LockedIn Team"
    SUPPORT_URL: str = "https://lockedin-wits.vercel.app/support"

    PUBLIC_BASE_URL: str = "http://localhost:8000"
    CORS_ORIGINS: list[str] = [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]

    model_config = SettingsConfigDict(env_file=".env", env_ignore_empty=True)


settings = Settings()
