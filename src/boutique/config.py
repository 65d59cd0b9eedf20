"""
Configuration de l'application.

Les valeurs sont lues depuis les variables d'environnement et validées
par pydantic-settings, avec des valeurs par défaut adaptées au
développement local. Une variable mal formée (EMAIL_PORT=abc) fait
échouer le démarrage au lieu de produire une erreur plus tard.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=None, extra="ignore")

    # Base de données
    database_uri: str = Field(
        default="sqlite:///boutique.db", validation_alias="BOUTIQUE_DATABASE_URI"
    )

    # Emails
    email_host: str = Field(default="localhost", validation_alias="EMAIL_HOST")
    email_port: int = Field(default=587, validation_alias="EMAIL_PORT")
    email_expéditeur: str = Field(
        default="commandes@example.com", validation_alias="EMAIL_EXPEDITEUR"
    )
    # Durée maximale (en secondes) d'un envoi SMTP en cours
    email_timeout: float = Field(default=10.0, gt=0, validation_alias="EMAIL_TIMEOUT")

    log_level: str = Field(default="INFO", validation_alias="BOUTIQUE_LOG_LEVEL")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


def get_database_uri() -> str:
    return get_settings().database_uri


def get_email_host_and_port() -> dict:
    settings = get_settings()
    return dict(host=settings.email_host, port=settings.email_port)


def get_expéditeur_par_défaut() -> str:
    return get_settings().email_expéditeur


def get_email_timeout() -> float:
    return get_settings().email_timeout


def get_log_level() -> str:
    return get_settings().log_level.upper()
