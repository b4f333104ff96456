"""Data model for extracted article records"""
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_record_id() -> str:
    return str(uuid.uuid4())


def _split_names(value: Any) -> Any:
    """Accept a comma-separated string or a list of names"""
    if value is None:
        return []
    if isinstance(value, str):
        return [part.strip() for part in value.split(',') if part.strip()]
    return value


def _join_text(value: Any) -> Any:
    """Collapse a list answer into one free-text value"""
    if isinstance(value, list):
        parts = [str(v).strip() for v in value if v is not None and str(v).strip()]
        return "; ".join(parts) if parts else None
    return value


class SyncStatus(str, Enum):
    """Where a record lives relative to the remote database"""
    LOCAL = "local"
    PENDING = "pending"
    SYNCED = "synced"
    FAILED = "failed"


class PlantSpecies(BaseModel):
    """A plant species with its ethnobotanical use"""
    model_config = ConfigDict(populate_by_name=True)

    vernacular_names: List[Optional[str]] = Field(default_factory=list, alias="nomeVernacular")
    scientific_names: List[Optional[str]] = Field(default_factory=list, alias="nomeCientifico")
    use_category: Optional[str] = Field(default=None, alias="tipoUso")
    part_used: Optional[str] = Field(default=None, alias="parteUsada")
    preparation: Optional[str] = Field(default=None, alias="preparacao")

    @model_validator(mode="before")
    @classmethod
    def _accept_alternate_keys(cls, data: Any) -> Any:
        # Providers are not consistent about snake_case vs camelCase keys
        if isinstance(data, dict):
            data = dict(data)
            for alt, key in (("nome_vernacular", "nomeVernacular"),
                             ("vernacular", "nomeVernacular"),
                             ("nome_cientifico", "nomeCientifico"),
                             ("tipo_uso", "tipoUso"),
                             ("parte_usada", "parteUsada")):
                if alt in data and key not in data:
                    data[key] = data.pop(alt)
        return data

    @field_validator("vernacular_names", "scientific_names", mode="before")
    @classmethod
    def _names_as_list(cls, value: Any) -> Any:
        return _split_names(value)

    @field_validator("use_category", "part_used", "preparation", mode="before")
    @classmethod
    def _text_as_string(cls, value: Any) -> Any:
        return _join_text(value)


class Community(BaseModel):
    """A traditional or indigenous community studied in the article"""
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = Field(default=None, alias="nome")
    location: Optional[str] = Field(default=None, alias="localizacao")
    economic_activities: List[Optional[str]] = Field(default_factory=list, alias="atividadesEconomicas")
    species: List[Optional[PlantSpecies]] = Field(default_factory=list, alias="plantas")

    @field_validator("economic_activities", mode="before")
    @classmethod
    def _activities_as_list(cls, value: Any) -> Any:
        return _split_names(value)

    @field_validator("species", mode="before")
    @classmethod
    def _species_list(cls, value: Any) -> Any:
        return [] if value is None else value


class ArticleRecord(BaseModel):
    """
    An ethnobotanical article with its extracted metadata.

    Field aliases are the JSON keys used by the desktop application's
    data file, so records round-trip through `model_dump(by_alias=True)`.
    """
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=new_record_id, frozen=True)

    # Mandatory for strict validation, optional in shape (partial records)
    title: Optional[str] = Field(default=None, alias="titulo")
    authors: List[Optional[str]] = Field(default_factory=list, alias="autores")
    year: Optional[int] = Field(default=None, alias="ano")
    abstract: Optional[str] = Field(default=None, alias="resumo")

    # Optional descriptive fields
    doi: Optional[str] = Field(default=None, alias="DOI")
    country: Optional[str] = Field(default=None, alias="pais")
    state: Optional[str] = Field(default=None, alias="estado")
    municipality: Optional[str] = Field(default=None, alias="municipio")
    place: Optional[str] = Field(default=None, alias="local")
    biome: Optional[str] = Field(default=None, alias="bioma")
    methodology: Optional[str] = Field(default=None, alias="metodologia")
    collection_year: Optional[int] = Field(default=None, alias="ano_coleta")

    # Nested entities
    species: List[Optional[PlantSpecies]] = Field(default_factory=list, alias="plantas")
    community: Optional[Community] = Field(default=None, alias="comunidade")

    # Bookkeeping
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")
    updated_at: Optional[datetime] = Field(default=None, alias="updatedAt")
    sync_status: SyncStatus = Field(default=SyncStatus.LOCAL, alias="syncStatus")
    ai_agent: Optional[str] = Field(default=None, alias="agenteIA")
    extraction_seconds: Optional[float] = Field(default=None, alias="tempoExtracao")
    custom_attributes: Dict[str, Any] = Field(default_factory=dict, alias="atributosCustomizados")

    @field_validator("id", mode="before")
    @classmethod
    def _generated_id(cls, value: Any) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            return new_record_id()
        return value

    @field_validator("authors", mode="before")
    @classmethod
    def _authors_list(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            # A single author string, or several separated by semicolons
            return [part.strip() for part in value.split(';') if part.strip()]
        return value

    @field_validator("species", mode="before")
    @classmethod
    def _species_list(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("year", "collection_year", mode="before")
    @classmethod
    def _blank_year(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("custom_attributes", mode="before")
    @classmethod
    def _attributes_dict(cls, value: Any) -> Any:
        return {} if value is None else value

    def to_json_dict(self) -> Dict[str, Any]:
        """Serialize using the data-file keys"""
        return self.model_dump(mode="json", by_alias=True)
