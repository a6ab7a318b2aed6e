from typing import List, Literal, Optional
from pydantic import BaseModel, Field


OPEN_WORKSPACE_INDEX_SETTINGS_BUTTON_ID = "open-settings-for-ws-index"

WORKSPACE_INDEX_DISABLED_MESSAGE = (
    "To add your workspace as context, enable local indexing in your IDE settings. "
    "After enabling, add @workspace to your question, and I'll generate a response "
    "using your workspace as context."
)


class ButtonData(BaseModel):
    """Action button attached to an advisory"""
    id: str
    text: str
    icon: Optional[str] = None
    status: Literal["main", "primary", "clear", "info", "success", "warning", "error"] = "info"
    keep_card_after_click: bool = False


class AdvisoryPayload(BaseModel):
    """One-shot message with optional actions, shown in place of an answer block"""
    body: str
    buttons: List[ButtonData] = Field(default_factory=list)

    @classmethod
    def workspace_index_disabled(cls) -> "AdvisoryPayload":
        """Sent when @workspace is used while local indexing is off"""
        return cls(
            body=WORKSPACE_INDEX_DISABLED_MESSAGE,
            buttons=[
                ButtonData(
                    id=OPEN_WORKSPACE_INDEX_SETTINGS_BUTTON_ID,
                    text="Open settings",
                    icon="external",
                    status="info",
                    keep_card_after_click=False
                )
            ]
        )
