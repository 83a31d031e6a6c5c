from dataclasses import asdict, dataclass, field, fields
from typing import Any, Dict, List, Mapping, Optional, Union


@dataclass
class Page:
    """
    A crawl result as it travels between the fetcher and the document store.
    ``fetched_at`` is a unix timestamp in seconds.

    Envelope keys that are not page fields are kept in ``extra`` and written
    back at the top level of the stored document.
    """
    url: str
    headers: Dict[str, Any] = field(default_factory=dict)
    body: Optional[str] = None
    links: List[str] = field(default_factory=list)
    code: int = 0
    depth: int = 0
    referer: str = ""
    redirect_to: str = ""
    response_time: int = 0
    fetched: bool = False
    user_data: Dict[str, Any] = field(default_factory=dict)
    fetched_at: Optional[int] = None
    error: str = ""
    extra: Dict[str, Any] = field(default_factory=dict)

    def __getattr__(self, name: str) -> Any:
        # only reached for names that are not page fields
        extra = self.__dict__.get("extra")
        if name.startswith("_") or not extra or name not in extra:
            raise AttributeError(name)
        return extra[name]

    def to_dict(self) -> Dict[str, Any]:
        document = asdict(self)
        document.update(document.pop("extra"))
        return document

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Page":
        """Build a page from a decoded document.

        Absent or null fields fall back to the dataclass defaults; unknown
        keys land in ``extra``.
        """
        known = {f.name for f in fields(cls)} - {"extra"}
        values = {k: v for k, v in data.items() if k in known and v is not None}
        values.setdefault("url", data.get("url") or "")
        extra = {k: v for k, v in data.items() if k not in known}
        return cls(**values, extra=extra)

    @classmethod
    def coerce(cls, page: Union["Page", Mapping[str, Any]]) -> "Page":
        if isinstance(page, Page):
            return page
        return cls.from_dict(page)

    def __str__(self) -> str:
        return f"{self.url} [{self.code}]"
