"""Pydantic models describing a JSON scenario file."""

from __future__ import annotations

from typing import Literal, Self

from pydantic import BaseModel, ConfigDict, Field, model_validator

from tabsync.domain.model import WindowType


class ScenarioBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class ScenarioTab(ScenarioBaseModel):
    """A live tab plus what its in-page agent answers when asked for details.

    ``responds=False`` models a tab whose agent never connects.
    """

    id: int
    window_id: int
    index: int = Field(ge=0)
    url: str
    pinned: bool = False
    incognito: bool = False
    active: bool = False
    title: str = ""
    status: str = "complete"
    referrer: str = ""
    history_length: int = Field(default=1, alias="historylength", ge=0)
    session_guid: str | None = None
    responds: bool = True


class ScenarioNode(ScenarioBaseModel):
    """A persisted tree node; hibernated nodes carry no live id."""

    kind: Literal["window", "page"]
    id: str | None = None
    live_id: int | None = None
    title: str | None = None
    hibernated: bool = True
    restorable: bool = True
    incognito: bool = False

    url: str = ""
    referrer: str = ""
    history_length: int = Field(default=1, alias="historylength", ge=0)
    pinned: bool = False
    index: int | None = None
    window_id: int | None = None
    session_guid: str | None = None

    window_type: WindowType = WindowType.NORMAL
    old: bool = False

    children: list[ScenarioNode] = Field(default_factory=list["ScenarioNode"])

    @model_validator(mode="after")
    def _check_kind_fields(self) -> Self:
        if self.kind == "page" and not self.url:
            raise ValueError("page nodes need a url")
        if self.hibernated and self.live_id is not None:
            raise ValueError("hibernated nodes cannot carry a live id")
        return self


class Scenario(ScenarioBaseModel):
    tree: list[ScenarioNode] = Field(default_factory=list["ScenarioNode"])
    archive: list[ScenarioNode] = Field(default_factory=list["ScenarioNode"])
    tabs: list[ScenarioTab] = Field(default_factory=list["ScenarioTab"])
    focused_window_id: int | None = None
    settings: dict[str, object] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _check_tabs(self) -> Self:
        seen: set[int] = set()
        positions: set[tuple[int, int]] = set()
        for tab in self.tabs:
            if tab.id in seen:
                raise ValueError(f"duplicate tab id {tab.id}")
            seen.add(tab.id)
            position = (tab.window_id, tab.index)
            if position in positions:
                raise ValueError(f"two tabs at index {tab.index} of window {tab.window_id}")
            positions.add(position)
        return self
