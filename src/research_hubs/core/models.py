from pydantic import BaseModel, ConfigDict, Field


class _OpenAlexModel(BaseModel):
    # OpenAlex returns far more fields than the engine consumes
    model_config = ConfigDict(extra="ignore")


class Author(_OpenAlexModel):
    id: str | None = None
    display_name: str | None = None


class Authorship(_OpenAlexModel):
    author: Author = Field(default_factory=Author)


class Venue(_OpenAlexModel):
    id: str | None = None
    display_name: str | None = None


class Location(_OpenAlexModel):
    source: Venue | None = None


class WorkIds(_OpenAlexModel):
    openalex: str | None = None
    doi: str | None = None


class Concept(_OpenAlexModel):
    display_name: str
    score: float = 0.0


class Work(_OpenAlexModel):
    """An OpenAlex work record, restricted to the fields the engine reads."""

    id: str
    display_name: str | None = None
    title: str | None = None
    publication_year: int | None = None
    host_venue: Venue | None = None
    primary_location: Location | None = None
    authorships: list[Authorship] = Field(default_factory=list)
    ids: WorkIds = Field(default_factory=WorkIds)
    cited_by_count: int = 0
    concepts: list[Concept] = Field(default_factory=list)
    abstract_inverted_index: dict[str, list[int]] | None = None
    referenced_works: list[str] = Field(default_factory=list)

    @property
    def name(self) -> str | None:
        return self.display_name or self.title

    @property
    def author_names(self) -> list[str]:
        return [a.author.display_name for a in self.authorships if a.author.display_name]

    @property
    def venue_name(self) -> str | None:
        if self.host_venue and self.host_venue.display_name:
            return self.host_venue.display_name
        if self.primary_location and self.primary_location.source:
            return self.primary_location.source.display_name
        return None

    @property
    def doi(self) -> str | None:
        return self.ids.doi

    def top_concepts(self, limit: int = 5) -> list[Concept]:
        # OpenAlex already sorts concepts by score
        return self.concepts[:limit]

    def abstract(self) -> str | None:
        if not self.abstract_inverted_index:
            return None
        return reconstruct_abstract(self.abstract_inverted_index) or None


def reconstruct_abstract(inverted_index: dict[str, list[int]]) -> str:
    """Rebuild plain text from an OpenAlex ``abstract_inverted_index``."""
    positioned = [
        (position, word)
        for word, positions in inverted_index.items()
        for position in positions
    ]
    positioned.sort(key=lambda pair: pair[0])
    return " ".join(word for _, word in positioned)


class SyncSettings(BaseModel):
    """User-tunable behaviour of the engine and its triggers."""

    model_config = ConfigDict(extra="ignore", validate_assignment=True)

    auto_process_new_files: bool = False
    create_hubs: bool = True
    create_phantom_links: bool = True
    enable_notifications: bool = True

    max_references_to_process: int = Field(default=100, ge=0)
    max_cited_by_to_process: int = Field(default=50, ge=0, le=200)

    hub_folder: str = "Research-Hubs"
    papers_folder: str = "Papers"

    delay_between_requests_ms: int = Field(default=200, ge=0)
    create_debounce_ms: int = Field(default=2000, ge=0)
    modify_debounce_ms: int = Field(default=3000, ge=0)

    # OpenAlex polite pool
    mailto: str | None = None
    http_timeout: float = Field(default=30.0, gt=0)
    http_retries: int = Field(default=0, ge=0)
