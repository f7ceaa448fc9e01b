"""Pydantic schema for detail messages sent by in-page agents."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field, field_validator

from tabsync.domain.model import DetailAction

if TYPE_CHECKING:
    from collections.abc import Mapping

    from tabsync.domain.association import AssociationEngine
    from tabsync.domain.model import TreeNode


def _blank_to_none(value: object) -> object:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return value


class AgentBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class PageDetailsMessage(AgentBaseModel):
    action: DetailAction
    run_id: str | None = None
    referrer: str | None = None
    history_length: int | None = Field(default=None, alias="historylength", ge=0)
    session_guid: str | None = None

    _normalize_run_id = field_validator("run_id", mode="before")(_blank_to_none)
    _normalize_session_guid = field_validator("session_guid", mode="before")(_blank_to_none)


async def handle_page_details(
    engine: AssociationEngine,
    tab_id: int,
    payload: Mapping[str, object],
) -> TreeNode | None:
    """Validate ``payload`` and hand it to ``engine``.

    Raises ``pydantic.ValidationError`` for malformed messages.
    """

    message = PageDetailsMessage.model_validate(payload)
    return await engine.on_page_details(
        tab_id,
        action=message.action,
        run_id=message.run_id,
        referrer=message.referrer,
        history_length=message.history_length,
        session_guid=message.session_guid,
    )
